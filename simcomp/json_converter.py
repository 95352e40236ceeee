"""cattrs converter configuration for JSON serialization.

Configures cattrs to turn structural descriptions of a model (item
summaries, connections and build errors) into JSON-ready dicts with
camelCase keys, and back.
"""

from __future__ import annotations

from dataclasses import MISSING, fields
from typing import Any, Callable, Union

import cattrs

from .errors import ErrorCode, ErrorDetail
from .parameters import ExternalParameterConnection, InternalParameterConnection
from .types import ItemInfo

Connection = Union[InternalParameterConnection, ExternalParameterConnection]


def _to_camel_case(snake_str: str) -> str:
    """Convert a snake_case string to camelCase."""
    components = snake_str.split("_")
    return components[0] + "".join(x.title() for x in components[1:])


def _make_omit_default_hook(
    cls: type,
    conv: cattrs.Converter,
    required_fields: set[str] | None = None,
) -> Callable[[Any], dict[str, Any]]:
    """Create an unstructure hook that omits fields equal to their defaults.

    Only omits a value if it equals the field's declared default, so
    meaningful values like 0 or False survive when the default is None.
    Tuples are written as lists. Output field names are camelCase.

    Args:
        cls: The dataclass type
        conv: The cattrs converter
        required_fields: Set of field names that must always be included (even if default)
    """
    if required_fields is None:
        required_fields = set()

    _NO_DEFAULT = object()

    # (python_name, json_name, default, is_required)
    field_info: list[tuple[str, str, Any, bool]] = []
    for fld in fields(cls):
        if fld.default is not MISSING:
            default = fld.default
        elif fld.default_factory is not MISSING:
            default = fld.default_factory()
        else:
            default = _NO_DEFAULT
        field_info.append((fld.name, _to_camel_case(fld.name), default, fld.name in required_fields))

    def unstructure(obj: Any) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for py_name, json_name, default, is_required in field_info:
            val = getattr(obj, py_name)
            if not is_required and default is not _NO_DEFAULT and val == default:
                continue
            if isinstance(val, tuple):
                val = list(val)
            result[json_name] = conv.unstructure(val)
        return result

    return unstructure


def _make_camel_structure_hook(cls: type) -> Callable[[dict[str, Any], type], Any]:
    """Create a structure hook reading camelCase keys into a dataclass.

    Missing keys fall back to the field defaults; lists become tuples where
    the field's default is a tuple.
    """
    names = {_to_camel_case(fld.name): fld for fld in fields(cls)}

    def structure(d: dict[str, Any], _: type) -> Any:
        kwargs: dict[str, Any] = {}
        for json_name, fld in names.items():
            if json_name not in d:
                continue
            val = d[json_name]
            if isinstance(val, list) and isinstance(fld.default, tuple):
                val = tuple(val)
            kwargs[fld.name] = val
        return cls(**kwargs)

    return structure


def _create_converter() -> cattrs.Converter:
    """Create and configure a cattrs converter for JSON serialization."""
    conv = cattrs.Converter()

    type_required_fields: dict[type, set[str]] = {
        ItemInfo: {"component", "name", "kind"},
        InternalParameterConnection: {"src_comp_name", "src_var_name", "dst_comp_name", "dst_par_name"},
        ExternalParameterConnection: {"comp_name", "param_name", "external_param"},
    }
    item_hooks: dict[type, Callable[[Any], dict[str, Any]]] = {}
    for cls, required in type_required_fields.items():
        item_hooks[cls] = _make_omit_default_hook(cls, conv, required)
        conv.register_unstructure_hook(cls, item_hooks[cls])
        conv.register_structure_hook(cls, _make_camel_structure_hook(cls))

    # ErrorDetail: code as its name
    def unstructure_error(detail: ErrorDetail) -> dict[str, Any]:
        result: dict[str, Any] = {"code": detail.code.name, "message": detail.message}
        if detail.component_name is not None:
            result["componentName"] = detail.component_name
        if detail.item_name is not None:
            result["itemName"] = detail.item_name
        return result

    def structure_error(d: dict[str, Any], _: type) -> ErrorDetail:
        try:
            code = ErrorCode[d["code"]]
        except KeyError:
            raise ValueError(f"Unknown error code {d['code']!r}") from None
        return ErrorDetail(
            code=code,
            message=d.get("message", ""),
            component_name=d.get("componentName"),
            item_name=d.get("itemName"),
        )

    conv.register_unstructure_hook(ErrorDetail, unstructure_error)
    conv.register_structure_hook(ErrorDetail, structure_error)

    # Connection tagged union: {"type": "internal", "payload": {...}}
    def unstructure_connection(conn: Connection) -> dict[str, Any]:
        kind = "internal" if isinstance(conn, InternalParameterConnection) else "external"
        return {"type": kind, "payload": item_hooks[type(conn)](conn)}

    def structure_connection(d: dict[str, Any], _: type) -> Connection:
        type_name = d["type"]
        if type_name == "internal":
            return conv.structure(d["payload"], InternalParameterConnection)
        elif type_name == "external":
            return conv.structure(d["payload"], ExternalParameterConnection)
        raise ValueError(f"Unknown connection type {type_name!r}; expected 'internal' or 'external'")

    conv.register_unstructure_hook(Connection, unstructure_connection)
    conv.register_structure_hook(Connection, structure_connection)

    return conv


# Global converter instance
converter: cattrs.Converter = _create_converter()
