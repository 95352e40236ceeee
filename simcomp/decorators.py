"""Declarative component authoring.

Provides the @defcomp decorator, which turns a class body of field
declarations and hook functions into a ComponentDef.

Field types:
- Index: a dimension the component's data may be indexed by
- Parameter: a component input
- Variable: a component output
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Union

from .defs import ComponentDef
from .errors import SimcompDefinitionError
from .types import TIME, _NO_DEFAULT

__all__ = ["defcomp", "Parameter", "Variable", "Index"]


class FieldDescriptor:
    """Declaration of one component field, collected by @defcomp."""

    def __init__(
        self,
        kind: str,
        dimensions: tuple = (),
        default: Any = _NO_DEFAULT,
        datatype: Optional[type] = None,
        unit: str = "",
        description: str = "",
    ) -> None:
        self.kind = kind
        self.dimensions = tuple(dimensions)
        self.default = default
        self.datatype = datatype
        self.unit = unit
        self.description = description

    def __repr__(self) -> str:
        return f"{self.kind.title()}(dimensions={list(self.dimensions)})"


def Index() -> Any:
    """Declare a dimension, named by the attribute it is assigned to.

    Example:
        >>> @defcomp
        ... class emissions:
        ...     regions = Index()
        ...     e = Variable(index=["time", "regions"])
    """
    return FieldDescriptor("index")


def Parameter(
    index: Union[tuple, list] = (),
    default: Any = _NO_DEFAULT,
    datatype: Optional[type] = None,
    unit: str = "",
    description: str = "",
) -> Any:
    """Declare a parameter.

    Args:
        index: Dimension names (or fixed lengths); empty for a scalar
        default: Value used when nothing else binds the parameter
        datatype: Element type; None uses the model's number type
        unit: Units, compared when the parameter is connected
        description: Documentation
    """
    return FieldDescriptor("parameter", tuple(index), default, datatype, unit, description)


def Variable(
    index: Union[tuple, list] = (),
    datatype: Optional[type] = None,
    unit: str = "",
    description: str = "",
) -> Any:
    """Declare a variable computed by the component's hooks."""
    return FieldDescriptor("variable", tuple(index), _NO_DEFAULT, datatype, unit, description)


def _hook(body: dict[str, Any], name: str) -> Optional[Callable]:
    hook = body.get(name)
    if isinstance(hook, staticmethod):
        hook = hook.__func__
    if hook is not None and not callable(hook):
        raise SimcompDefinitionError(f"'{name}' must be a function")
    return hook


def defcomp(cls: Optional[type] = None, *, name: Optional[str] = None) -> Any:
    """Build a ComponentDef from a class body.

    Fields are taken in declaration order. ``run_timestep(p, v, d, t)`` and
    ``init(p, v, d)`` are picked up when defined. The decorated name is
    bound to the resulting ComponentDef, not to a class.

    Usage:
        @defcomp
        class grosseconomy:
            tfp = Parameter(index=["time"])
            ygross = Variable(index=["time"], unit="$B")

            def run_timestep(p, v, d, t):
                v["ygross"][t] = p["tfp"][t] * 10

        m.add_comp(grosseconomy)
    """

    def wrap(klass: type) -> ComponentDef:
        body = dict(vars(klass))
        comp = ComponentDef(
            name or klass.__name__,
            run_timestep=_hook(body, "run_timestep"),
            init=_hook(body, "init"),
        )
        fields = [(attr, value) for attr, value in body.items() if isinstance(value, FieldDescriptor)]
        for attr, fd in fields:
            if fd.kind == "index":
                if attr == TIME:
                    raise SimcompDefinitionError(f"'{TIME}' is always available and cannot be declared as an Index")
                comp.add_dimension(attr)
        for attr, fd in fields:
            if fd.kind == "parameter":
                comp.add_parameter(attr, fd.dimensions, fd.default, fd.datatype, fd.unit, fd.description)
            elif fd.kind == "variable":
                comp.add_variable(attr, fd.dimensions, fd.datatype, fd.unit, fd.description)
        return comp

    if cls is None:
        return wrap
    return wrap(cls)
