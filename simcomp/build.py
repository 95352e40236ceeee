"""Compile a ModelDef into a runnable ModelInstance.

The build walks the definition tree once to fix windows and allocate
variable storage, then resolves every leaf parameter to exactly one source:
an internal connection, an external parameter or its default. All problems
found are reported together in one SimcompBindingError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

import numpy as np
from numpy.typing import NDArray

from .arrays import ConnectedArray, TimestepArray
from .clock import Clock
from .defs import AbstractComponentDef, ComponentDef, CompositeComponentDef, ModelDef
from .dimensions import Dimension
from .errors import ErrorCode, ErrorDetail, SimcompBindingError
from ._keys import is_uniform, time_step
from .parameters import (
    ArrayModelParameter,
    ExternalParameterConnection,
    InternalParameterConnection,
    ModelParameter,
    ScalarModelParameter,
    make_model_parameter,
)
from .instances import ComponentInstance, CompositeInstance, ModelInstance
from .types import TIME, ParameterDef, VariableDef

logger = logging.getLogger(__name__)

Path = tuple[str, ...]


def _dotted(path: Path) -> str:
    return ".".join(path)


@dataclass
class _Leaf:
    """Build-time bookkeeping for one leaf."""

    path: Path
    comp_def: ComponentDef
    scopes: list[CompositeComponentDef]
    first: int
    last: int
    order: int
    variables: dict[str, Any]
    parameters: dict[str, Any]
    shapes: dict[str, tuple[int, ...]]
    dim_dict: dict[str, list[int]]


@dataclass
class _Binding:
    scope: CompositeComponentDef
    scope_path: Path
    conn: Union[InternalParameterConnection, ExternalParameterConnection]
    src_path: Optional[Path] = None


class _Builder:
    def __init__(self, md: ModelDef) -> None:
        self.md = md
        self.errors: list[ErrorDetail] = []
        self.leaves: dict[Path, _Leaf] = {}
        self.bindings: dict[tuple[Path, str], _Binding] = {}
        self.shared_cache: dict[tuple, Any] = {}

        time = md.time
        self.times: tuple = time.keys() if time is not None else ()
        self.n = len(self.times)
        self.uniform = is_uniform(self.times)

    def error(self, code: ErrorCode, message: str, comp: Optional[str] = None, item: Optional[str] = None) -> None:
        self.errors.append(ErrorDetail(code, message, comp, item))

    # -- windows and clocks ---------------------------------------------

    def _window(self, cd: AbstractComponentDef, name: str, default: tuple[int, int]) -> tuple[int, int]:
        """Active window of a child, which must lie inside its parent's window ``default``."""
        first, last = default
        time = self.md.time
        for attr in ("first", "last"):
            label = getattr(cd, attr)
            if label is None:
                continue
            if label not in time:
                self.error(ErrorCode.BAD_WINDOW, f"{attr} {label} is not a time label of the model", name)
                continue
            idx = time.position(label) - 1
            if not default[0] <= idx <= default[1]:
                self.error(
                    ErrorCode.BAD_WINDOW,
                    f"{attr} {label} lies outside the enclosing window "
                    f"({self.times[default[0]]}..{self.times[default[1]]})",
                    name,
                )
                continue
            if attr == "first":
                first = idx
            else:
                last = idx
        if first > last:
            self.error(ErrorCode.BAD_WINDOW, f"active window is empty ({first + 1}..{last + 1})", name)
        return first, last

    def clock(self, first: int, last: int) -> Clock:
        if self.uniform:
            return Clock.fixed(self.times[first], time_step(self.times), self.times[last], origin=first)
        return Clock.variable(self.times[first : last + 1], origin=first)

    # -- storage ---------------------------------------------------------

    def _lookup_dim(self, name: str, scopes: list[CompositeComponentDef]) -> Optional[Dimension]:
        for scope in reversed(scopes):
            if name in scope.dim_dict:
                return scope.dim_dict[name]
        return None

    def _shape(self, leaf: _Leaf, datum: VariableDef) -> Optional[tuple[int, ...]]:
        shape = []
        for dim in datum.dimensions:
            if isinstance(dim, int):
                shape.append(dim)
                continue
            found = self._lookup_dim(dim, leaf.scopes)
            if found is None:
                self.error(
                    ErrorCode.UNKNOWN_DIMENSION,
                    f"dimension '{dim}' used by '{datum.name}' has not been set",
                    _dotted(leaf.path),
                    datum.name,
                )
                return None
            shape.append(len(found))
            leaf.dim_dict[dim] = found.indices()
        return tuple(shape)

    def _dtype(self, datum: VariableDef) -> Any:
        return datum.datatype or self.md.number_type

    def _allocate(self, leaf: _Leaf) -> None:
        for dim in leaf.comp_def.dimensions:
            found = self._lookup_dim(dim, leaf.scopes)
            if found is not None:
                leaf.dim_dict[dim] = found.indices()
        for name, vdef in leaf.comp_def.variables.items():
            shape = self._shape(leaf, vdef)
            if shape is None:
                continue
            dtype = np.dtype(self._dtype(vdef))
            fill = np.nan if dtype.kind in "fc" else 0
            data = np.full(shape, fill, dtype=dtype)
            leaf.shapes[name] = shape
            leaf.variables[name] = TimestepArray(data) if vdef.has_time else data
        for name, pdef in leaf.comp_def.parameters.items():
            shape = self._shape(leaf, pdef)
            if shape is not None:
                leaf.shapes[name] = shape

    # -- tree walk -------------------------------------------------------

    def collect(
        self,
        ccd: CompositeComponentDef,
        path: Path,
        scopes: list[CompositeComponentDef],
        window: tuple[int, int],
    ) -> None:
        scopes = scopes + [ccd]
        for name in ccd.sorted_comps:
            child = ccd.comps_dict[name]
            child_path = path + (name,)
            child_window = self._window(child, _dotted(child_path), window)
            if child.is_composite:
                self.collect(child, child_path, scopes, child_window)
                continue
            leaf = _Leaf(child_path, child, scopes, child_window[0], child_window[1], len(self.leaves), {}, {}, {}, {})
            leaf.dim_dict[TIME] = list(range(self.n))
            self.leaves[child_path] = leaf
            self._allocate(leaf)

    def _locate(self, scope: CompositeComponentDef, scope_path: Path, comp: str, item: str, kind: str) -> Optional[Path]:
        """Path of the leaf that owns ``item`` under child ``comp`` of ``scope``."""
        if comp not in scope.comps_dict:
            self.error(ErrorCode.NOT_FOUND, f"Component {comp} does not exist in {scope.name}.", comp, item)
            return None
        child = scope.comps_dict[comp]
        if not child.is_composite:
            table = child.parameters if kind == "parameter" else child.variables
            if item not in table:
                self.error(ErrorCode.NOT_FOUND, f"{kind} {item} not found in component {comp}", comp, item)
                return None
            return scope_path + (comp,)
        owners = child.find_owners(item, kind)
        if not owners:
            self.error(
                ErrorCode.NOT_FOUND, f"{kind} {item} not found in any of the components of {comp}", comp, item
            )
            return None
        if len(owners) > 1:
            found = ", ".join(_dotted(o) for o in owners)
            self.error(
                ErrorCode.AMBIGUOUS_PARAMETER,
                f"{kind} name {item} found in more than one component of {comp} ({found})",
                comp,
                item,
            )
            return None
        return scope_path + (comp,) + owners[0]

    def _bind(self, dst: Path, par: str, binding: _Binding) -> None:
        key = (dst, par)
        if key in self.bindings:
            prior = self.bindings[key]
            self.error(
                ErrorCode.DUPLICATE_BINDING,
                f"parameter is bound in both '{prior.scope.name}' and '{binding.scope.name}'",
                _dotted(dst),
                par,
            )
            return
        self.bindings[key] = binding

    def collect_bindings(self, ccd: CompositeComponentDef, path: Path) -> None:
        for conn in ccd.internal_param_conns:
            dst = self._locate(ccd, path, conn.dst_comp_name, conn.dst_par_name, "parameter")
            src = self._locate(ccd, path, conn.src_comp_name, conn.src_var_name, "variable")
            if dst is not None and src is not None:
                self._bind(dst, conn.dst_par_name, _Binding(ccd, path, conn, src))
        for conn in ccd.external_param_conns:
            dst = self._locate(ccd, path, conn.comp_name, conn.param_name, "parameter")
            if dst is not None:
                self._bind(dst, conn.param_name, _Binding(ccd, path, conn))
        for name in ccd.sorted_comps:
            child = ccd.comps_dict[name]
            if child.is_composite:
                self.collect_bindings(child, path + (name,))

    # -- parameter resolution --------------------------------------------

    def _convert(self, value: ModelParameter, pdef: ParameterDef, leaf: _Leaf) -> Any:
        try:
            return value.coerce(self._dtype(pdef))
        except TypeError as err:
            self.error(ErrorCode.TYPE_CONVERSION, str(err), _dotted(leaf.path), pdef.name)
            return None

    def _place(self, values: NDArray[Any], pdef: ParameterDef, leaf: _Leaf) -> Optional[NDArray[Any]]:
        """Fit literal values onto the parameter's storage shape."""
        shape = leaf.shapes[pdef.name]
        if values.shape == shape:
            return values
        window = leaf.last - leaf.first + 1
        if pdef.has_time and values.shape == (window,) + shape[1:]:
            full = np.full(shape, np.nan if values.dtype.kind in "fc" else 0, dtype=values.dtype)
            full[leaf.first : leaf.last + 1] = values
            return full
        self.error(
            ErrorCode.SHAPE_MISMATCH,
            f"values of shape {values.shape} do not match the parameter's shape {shape}",
            _dotted(leaf.path),
            pdef.name,
        )
        return None

    def _literal(self, value: ModelParameter, pdef: ParameterDef, leaf: _Leaf, cache_key: Optional[tuple]) -> Any:
        if pdef.is_scalar:
            if isinstance(value, ArrayModelParameter) and value.values.ndim != 0:
                self.error(
                    ErrorCode.SHAPE_MISMATCH,
                    f"array value of shape {value.shape} given for a scalar parameter",
                    _dotted(leaf.path),
                    pdef.name,
                )
                return None
            if isinstance(value, ArrayModelParameter):
                value = ScalarModelParameter(value.values.item())
            converted = self._convert(value, pdef, leaf)
            return None if converted is None else np.array(converted)

        if isinstance(value, ScalarModelParameter):
            self.error(
                ErrorCode.SHAPE_MISMATCH,
                f"scalar value given for a parameter with dimensions {list(pdef.dimensions)}",
                _dotted(leaf.path),
                pdef.name,
            )
            return None
        named = tuple(d for d in pdef.dimensions if isinstance(d, str))
        if value.dimensions and tuple(value.dimensions) != named:
            self.error(
                ErrorCode.DIMENSION_MISMATCH,
                f"values are indexed by {list(value.dimensions)} but the parameter by {list(named)}",
                _dotted(leaf.path),
                pdef.name,
            )
            return None

        if cache_key is not None:
            key = cache_key + (np.dtype(self._dtype(pdef)).str, leaf.first, leaf.last, leaf.shapes[pdef.name])
            if key in self.shared_cache:
                return self.shared_cache[key]

        converted = self._convert(value, pdef, leaf)
        if converted is None:
            return None
        placed = self._place(converted, pdef, leaf)
        if placed is None:
            return None
        placed.flags.writeable = False
        storage = TimestepArray(placed) if pdef.has_time else placed
        if cache_key is not None:
            self.shared_cache[key] = storage
        return storage

    def _internal(self, binding: _Binding, pdef: ParameterDef, leaf: _Leaf) -> Any:
        conn = binding.conn
        src_leaf = self.leaves[binding.src_path]
        vdef = src_leaf.comp_def.variables[conn.src_var_name]
        dst, par = _dotted(leaf.path), pdef.name
        source = src_leaf.variables.get(conn.src_var_name)
        if source is None or par not in leaf.shapes:
            return None

        if not conn.ignoreunits and vdef.unit != pdef.unit:
            self.error(
                ErrorCode.UNIT_MISMATCH,
                f"units of {_dotted(src_leaf.path)}.{vdef.name} ({vdef.unit!r}) do not match ({pdef.unit!r})",
                dst,
                par,
            )
        src_shape = src_leaf.shapes[vdef.name]
        if src_shape != leaf.shapes[par]:
            self.error(
                ErrorCode.DIMENSION_MISMATCH,
                f"{_dotted(src_leaf.path)}.{vdef.name} has shape {src_shape}, parameter has {leaf.shapes[par]}",
                dst,
                par,
            )
            return None
        if not conn.ignoreunits and tuple(vdef.dimensions) != tuple(pdef.dimensions):
            self.error(
                ErrorCode.DIMENSION_MISMATCH,
                f"{_dotted(src_leaf.path)}.{vdef.name} is indexed by {list(vdef.dimensions)}, "
                f"parameter by {list(pdef.dimensions)}",
                dst,
                par,
            )
            return None

        if not isinstance(source, TimestepArray):
            if conn.offset:
                self.error(ErrorCode.DIMENSION_MISMATCH, "an offset requires a time-dimensioned variable", dst, par)
                return None
            view = source.view()
            view.flags.writeable = False
            return view

        covered = src_leaf.first <= leaf.first and leaf.last <= src_leaf.last
        backup = None
        if conn.backup is not None:
            stored = binding.scope.external_params.get(conn.backup)
            if stored is None:
                self.error(ErrorCode.NOT_FOUND, f"backup data '{conn.backup}' is missing", dst, par)
                return None
            values = self._convert(make_model_parameter(stored), pdef, leaf)
            if values is None:
                return None
            window = leaf.last - leaf.first + 1
            expected = (window,) + leaf.shapes[par][1:]
            if values.shape != expected:
                self.error(
                    ErrorCode.SHAPE_MISMATCH,
                    f"backup data has shape {values.shape}; expected {expected} to cover the component's window",
                    dst,
                    par,
                )
                return None
            backup = np.full(leaf.shapes[par], np.nan, dtype=np.result_type(values.dtype, np.float64))
            backup[leaf.first : leaf.last + 1] = values
        elif not covered:
            self.error(
                ErrorCode.MISSING_BACKUP,
                f"{_dotted(src_leaf.path)} is active for positions {src_leaf.first + 1}..{src_leaf.last + 1} "
                f"but this component is active for {leaf.first + 1}..{leaf.last + 1}; "
                f"backup data is required",
                dst,
                par,
            )
            return None

        if conn.offset == 0 and src_leaf.order > leaf.order:
            logger.warning(
                "%s.%s reads %s.%s, which runs later in the same step; it will see values from earlier steps",
                dst,
                par,
                _dotted(src_leaf.path),
                vdef.name,
            )
        return ConnectedArray(source, conn.offset, backup, src_leaf.first, src_leaf.last, name=par)

    def resolve(self, leaf: _Leaf) -> None:
        for name, pdef in leaf.comp_def.parameters.items():
            if name not in leaf.shapes:
                continue
            binding = self.bindings.get((leaf.path, name))
            storage = None
            if binding is not None and isinstance(binding.conn, InternalParameterConnection):
                storage = self._internal(binding, pdef, leaf)
            elif binding is not None:
                ext = binding.conn.external_param
                stored = binding.scope.external_params.get(ext)
                if stored is None:
                    self.error(
                        ErrorCode.NOT_FOUND,
                        f"external parameter '{ext}' not found in {binding.scope.name}",
                        _dotted(leaf.path),
                        name,
                    )
                    continue
                storage = self._literal(stored, pdef, leaf, (id(binding.scope), ext))
            elif pdef.has_default:
                storage = self._literal(make_model_parameter(pdef.default), pdef, leaf, None)
            else:
                self.error(
                    ErrorCode.UNBOUND_PARAMETER,
                    f"parameter {name} of component {_dotted(leaf.path)} is not bound to a value or connection",
                    _dotted(leaf.path),
                    name,
                )
                continue
            if storage is not None:
                leaf.parameters[name] = storage

    # -- instances -------------------------------------------------------

    def instantiate(self, ccd: CompositeComponentDef, path: Path) -> CompositeInstance:
        comps: list[Union[ComponentInstance, CompositeInstance]] = []
        clocks: list[Clock] = []
        for name in ccd.sorted_comps:
            child = ccd.comps_dict[name]
            child_path = path + (name,)
            if child.is_composite:
                ci: Union[ComponentInstance, CompositeInstance] = self.instantiate(child, child_path)
            else:
                leaf = self.leaves[child_path]
                ci = ComponentInstance(
                    leaf.comp_def, name, leaf.variables, leaf.parameters, leaf.dim_dict, leaf.first, leaf.last
                )
            comps.append(ci)
            clocks.append(self.clock(ci.first, ci.last) if ci.last >= ci.first else self.clock(0, 0))
        return CompositeInstance(ccd.name, comps, clocks)

    def build(self) -> ModelInstance:
        md = self.md
        if md.time is None:
            raise SimcompBindingError(
                "Cannot build: the 'time' dimension has not been set",
                [ErrorDetail(ErrorCode.UNKNOWN_DIMENSION, "the 'time' dimension has not been set")],
            )
        if not md.comps_dict:
            raise SimcompBindingError(
                "Cannot build a model with no components",
                [ErrorDetail(ErrorCode.NOT_FOUND, "model has no components")],
            )

        window = self._window(md, md.name, (0, self.n - 1))
        self.collect(md, (), [], window)
        self.collect_bindings(md, ())
        for leaf in self.leaves.values():
            self.resolve(leaf)

        if self.errors:
            summary = "\n".join(f"  {e}" for e in self.errors)
            raise SimcompBindingError(f"Failed to build model ({len(self.errors)} error(s)):\n{summary}", self.errors)

        root = self.instantiate(md, ())
        logger.info(
            "Built model with %d component(s) over %d position(s) (%s timesteps)",
            len(self.leaves),
            self.n,
            "fixed" if self.uniform else "variable",
        )
        return ModelInstance(md, root, md.stamp(), self.times)


def build(md: ModelDef) -> ModelInstance:
    """
    Compile a model definition into a runnable instance.

    Args:
        md: The model definition

    Returns:
        A new ModelInstance

    Raises:
        SimcompBindingError: If any parameter cannot be bound or any connection is invalid
    """
    return _Builder(md).build()
