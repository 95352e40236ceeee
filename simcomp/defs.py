"""Component, composite and model definitions.

Definitions are the mutable, authored blueprint of a model. They hold no
run-time storage; ``simcomp.build`` compiles them into instances.
"""

from __future__ import annotations

import copy
import itertools
import logging
from dataclasses import replace
from typing import Any, Callable, Iterator, Optional

from .dimensions import Dimension
from .errors import ErrorCode, SimcompDefinitionError
from ._keys import is_uniform, validate_number_type
from .parameters import (
    ExternalParameterConnection,
    InternalParameterConnection,
    ModelParameter,
    make_model_parameter,
)
from .types import TIME, DimensionSpec, ParameterDef, VariableDef, _NO_DEFAULT

logger = logging.getLogger(__name__)

# Global mutation stamps; a larger stamp anywhere in a tree means the tree changed.
_stamps = itertools.count(1)

InitHook = Callable[[Any, Any, Any], None]
RunHook = Callable[[Any, Any, Any, Any], None]


def _check_name(name: Any, what: str) -> str:
    if not isinstance(name, str) or not name:
        raise SimcompDefinitionError(f"{what} name must be a non-empty string, got {name!r}")
    return name


class AbstractComponentDef:
    """Interface shared by leaf and composite definitions."""

    def __init__(self, name: str, comp_id: Optional[str] = None) -> None:
        self.name = _check_name(name, "Component")
        self.comp_id = comp_id
        self.first: Any = None
        self.last: Any = None
        self._stamp = next(_stamps)

    @property
    def is_composite(self) -> bool:
        raise NotImplementedError

    @property
    def is_leaf(self) -> bool:
        return not self.is_composite

    def _touch(self) -> None:
        self._stamp = next(_stamps)

    def stamp(self) -> int:
        """Largest mutation stamp in this definition's subtree."""
        return self._stamp

    def set_window(self, first: Any = None, last: Any = None) -> None:
        if first is not None and last is not None and last < first:
            raise SimcompDefinitionError(
                f"Component '{self.name}': last ({last}) precedes first ({first})", ErrorCode.BAD_WINDOW
            )
        self.first = first
        self.last = last
        self._touch()

    def clone(self, name: Optional[str] = None) -> "AbstractComponentDef":
        raise NotImplementedError


class ComponentDef(AbstractComponentDef):
    """
    A leaf calculation unit.

    A leaf declares the dimensions it uses, its parameters and variables, and
    the hooks the engine calls: ``init(p, v, d)`` once at its first active
    position and ``run_timestep(p, v, d, t)`` at every active position.

    Example:
        >>> def step(p, v, d, t):
        ...     v["gdp"][t] = p["tfp"] * 2
        >>> growth = ComponentDef("growth", run_timestep=step)
        >>> growth.add_parameter("tfp", default=1.0)
        >>> growth.add_variable("gdp", dimensions=("time",))
    """

    def __init__(
        self,
        name: str,
        run_timestep: Optional[RunHook] = None,
        init: Optional[InitHook] = None,
        comp_id: Optional[str] = None,
    ) -> None:
        super().__init__(name, comp_id)
        self.run_timestep = run_timestep
        self.init = init
        self.dimensions: dict[str, None] = {}
        self.parameters: dict[str, ParameterDef] = {}
        self.variables: dict[str, VariableDef] = {}

    @property
    def is_composite(self) -> bool:
        return False

    def add_dimension(self, name: str) -> None:
        """Declare that this component's data may be indexed by a dimension."""
        _check_name(name, "Dimension")
        self.dimensions[name] = None
        self._touch()

    def _check_datum(self, name: str, dimensions: tuple) -> tuple[DimensionSpec, ...]:
        _check_name(name, "Datum")
        if name in self.parameters or name in self.variables:
            raise SimcompDefinitionError(
                f"Component '{self.name}' already declares '{name}'", ErrorCode.DUPLICATE_PARAMETER
            )
        dims = tuple(dimensions)
        for pos, dim in enumerate(dims):
            if isinstance(dim, bool) or not isinstance(dim, (str, int)):
                raise SimcompDefinitionError(f"'{self.name}.{name}': invalid dimension {dim!r}")
            if isinstance(dim, int):
                if dim <= 0:
                    raise SimcompDefinitionError(f"'{self.name}.{name}': fixed length must be positive, got {dim}")
                continue
            if dim == TIME:
                if pos != 0:
                    raise SimcompDefinitionError(
                        f"'{self.name}.{name}': '{TIME}' must be the first dimension", ErrorCode.UNKNOWN_DIMENSION
                    )
                continue
            if dim not in self.dimensions:
                raise SimcompDefinitionError(
                    f"'{self.name}.{name}' uses dimension '{dim}' which the component does not declare",
                    ErrorCode.UNKNOWN_DIMENSION,
                )
        return dims

    def add_parameter(
        self,
        name: str,
        dimensions: tuple = (),
        default: Any = _NO_DEFAULT,
        datatype: Optional[type] = None,
        unit: str = "",
        description: str = "",
    ) -> ParameterDef:
        dims = self._check_datum(name, dimensions)
        pdef = ParameterDef(name, dims, datatype, unit, description, default)
        self.parameters[name] = pdef
        self._touch()
        return pdef

    def add_variable(
        self,
        name: str,
        dimensions: tuple = (),
        datatype: Optional[type] = None,
        unit: str = "",
        description: str = "",
    ) -> VariableDef:
        dims = self._check_datum(name, dimensions)
        vdef = VariableDef(name, dims, datatype, unit, description)
        self.variables[name] = vdef
        self._touch()
        return vdef

    def clone(self, name: Optional[str] = None) -> "ComponentDef":
        other = ComponentDef(name or self.name, self.run_timestep, self.init, self.comp_id)
        other.first, other.last = self.first, self.last
        other.dimensions = dict(self.dimensions)
        other.parameters = {
            n: replace(pdef, default=copy.deepcopy(pdef.default)) for n, pdef in self.parameters.items()
        }
        other.variables = dict(self.variables)
        return other

    def __repr__(self) -> str:
        return (
            f"<ComponentDef '{self.name}' with {len(self.parameters)} parameter(s), "
            f"{len(self.variables)} variable(s)>"
        )


class CompositeComponentDef(AbstractComponentDef):
    """
    An ordered container of leaf or composite definitions.

    Children run in insertion order. The composite also owns the connections
    between its children, the external parameters bound to them and any
    dimensions registered at its scope.
    """

    def __init__(self, name: str = "composite", comp_id: Optional[str] = None) -> None:
        super().__init__(name, comp_id)
        self.comps_dict: dict[str, AbstractComponentDef] = {}
        self.internal_param_conns: list[InternalParameterConnection] = []
        self.external_param_conns: list[ExternalParameterConnection] = []
        self.external_params: dict[str, ModelParameter] = {}
        self.backups: list[str] = []
        self.dim_dict: dict[str, Dimension] = {}
        self._sorted_comps: Optional[list[str]] = None

    @property
    def is_composite(self) -> bool:
        return True

    def _touch(self) -> None:
        super()._touch()
        self._sorted_comps = None

    def stamp(self) -> int:
        return max([self._stamp] + [c.stamp() for c in self.comps_dict.values()])

    # -- children --------------------------------------------------------

    @property
    def sorted_comps(self) -> list[str]:
        """Execution order of the children (cached until the next mutation)."""
        if self._sorted_comps is None:
            self._sorted_comps = list(self.comps_dict)
        return self._sorted_comps

    def compdef(self, name: str) -> AbstractComponentDef:
        try:
            return self.comps_dict[name]
        except KeyError:
            raise SimcompDefinitionError(
                f"Component {name} does not exist in {self.name}.", ErrorCode.NOT_FOUND
            ) from None

    def has_comp(self, name: str) -> bool:
        return name in self.comps_dict

    def _validate_window(self, name: str, first: Any, last: Any) -> None:
        if first is not None and last is not None and last < first:
            raise SimcompDefinitionError(
                f"Component '{name}': last ({last}) precedes first ({first})", ErrorCode.BAD_WINDOW
            )

    def add_comp(
        self,
        comp_def: AbstractComponentDef,
        name: Optional[str] = None,
        first: Any = None,
        last: Any = None,
        before: Optional[str] = None,
        after: Optional[str] = None,
    ) -> AbstractComponentDef:
        """
        Add a copy of a definition as a child.

        Args:
            comp_def: Leaf or composite definition to add
            name: Name within this composite (defaults to comp_def.name)
            first: First active time label (None = model start)
            last: Last active time label (None = model end)
            before: Insert before this existing child
            after: Insert after this existing child

        Returns:
            The added child definition

        Raises:
            SimcompDefinitionError: On a duplicate name, an unknown neighbor or an invalid window
        """
        if not isinstance(comp_def, AbstractComponentDef):
            raise TypeError(f"add_comp expects a component definition, got {type(comp_def).__name__}")
        name = _check_name(name or comp_def.name, "Component")
        if name in self.comps_dict:
            raise SimcompDefinitionError(
                f"Cannot add two components of the same name ({name}) to {self.name}",
                ErrorCode.DUPLICATE_COMPONENT,
            )
        if before is not None and after is not None:
            raise SimcompDefinitionError("Cannot specify both 'before' and 'after'")
        neighbor = before if before is not None else after
        if neighbor is not None:
            self.compdef(neighbor)

        first = comp_def.first if first is None else first
        last = comp_def.last if last is None else last
        self._validate_window(name, first, last)

        child = comp_def.clone(name)
        child.first, child.last = first, last

        if neighbor is None:
            self.comps_dict[name] = child
        else:
            items = list(self.comps_dict.items())
            idx = [k for k, _ in items].index(neighbor) + (1 if after is not None else 0)
            items.insert(idx, (name, child))
            self.comps_dict = dict(items)

        self._touch()
        logger.debug("Added component '%s' to '%s'", name, self.name)
        return child

    def delete_comp(self, name: str) -> None:
        """Remove a child and every connection that refers to it."""
        self.compdef(name)
        del self.comps_dict[name]

        dropped = [
            c for c in self.internal_param_conns if c.src_comp_name == name or c.dst_comp_name == name
        ]
        self.internal_param_conns = [c for c in self.internal_param_conns if c not in dropped]
        for conn in dropped:
            self._drop_backup(conn)
        self.external_param_conns = [c for c in self.external_param_conns if c.comp_name != name]
        for ext in [k for k in self.external_params if k.startswith(f"{name}.")]:
            del self.external_params[ext]

        self._touch()
        logger.debug("Deleted component '%s' from '%s' (%d connection(s) removed)", name, self.name, len(dropped))

    def replace_comp(
        self,
        name: str,
        comp_def: AbstractComponentDef,
        first: Any = None,
        last: Any = None,
        reconnect: bool = True,
    ) -> AbstractComponentDef:
        """
        Replace a child's definition in place, keeping its name and position.

        With ``reconnect`` the existing connections are kept and the new
        definition must provide every parameter and variable they use.
        Without it, connections touching the child are removed.
        """
        old = self.compdef(name)
        first = old.first if first is None else first
        last = old.last if last is None else last
        self._validate_window(name, first, last)

        if reconnect and comp_def.is_leaf:
            missing = []
            for conn in self.internal_param_conns:
                if conn.dst_comp_name == name and conn.dst_par_name not in comp_def.parameters:
                    missing.append(conn.dst_par_name)
                if conn.src_comp_name == name and conn.src_var_name not in comp_def.variables:
                    missing.append(conn.src_var_name)
            for conn in self.external_param_conns:
                if conn.comp_name == name and conn.param_name not in comp_def.parameters:
                    missing.append(conn.param_name)
            if missing:
                raise SimcompDefinitionError(
                    f"Cannot replace '{name}': new definition lacks connected item(s) {sorted(set(missing))}",
                    ErrorCode.NOT_FOUND,
                )

        child = comp_def.clone(name)
        child.first, child.last = first, last
        self.comps_dict[name] = child

        if not reconnect:
            dropped = [
                c for c in self.internal_param_conns if c.src_comp_name == name or c.dst_comp_name == name
            ]
            self.internal_param_conns = [c for c in self.internal_param_conns if c not in dropped]
            for conn in dropped:
                self._drop_backup(conn)
            self.external_param_conns = [c for c in self.external_param_conns if c.comp_name != name]
            for ext in [k for k in self.external_params if k.startswith(f"{name}.")]:
                del self.external_params[ext]

        self._touch()
        logger.debug("Replaced component '%s' in '%s'", name, self.name)
        return child

    # -- dimensions ------------------------------------------------------

    def set_dimension(self, name: str, keys: Any) -> Dimension:
        """Register (or replace) a dimension at this composite's scope."""
        _check_name(name, "Dimension")
        if name == TIME:
            raise SimcompDefinitionError(f"The '{TIME}' dimension can only be set on the model")
        try:
            dim = keys if isinstance(keys, Dimension) else Dimension(keys)
        except (TypeError, ValueError) as err:
            raise SimcompDefinitionError(f"Invalid keys for dimension '{name}': {err}", ErrorCode.BAD_DIMENSION_KEYS)
        self.dim_dict[name] = dim
        self._touch()
        return dim

    # -- connections -----------------------------------------------------

    def _check_leaf_item(self, comp_name: str, item: str, kind: str) -> None:
        comp = self.compdef(comp_name)
        if comp.is_composite:
            return
        table = comp.parameters if kind == "parameter" else comp.variables
        if item not in table:
            raise SimcompDefinitionError(
                f"Component '{comp_name}' has no {kind} named '{item}'", ErrorCode.NOT_FOUND
            )

    def _drop_backup(self, conn: InternalParameterConnection) -> None:
        if conn.backup is not None:
            self.external_params.pop(conn.backup, None)
            if conn.backup in self.backups:
                self.backups.remove(conn.backup)

    def disconnect_param(self, comp_name: str, param_name: str) -> bool:
        """
        Remove any binding of a child's parameter at this level.

        Returns:
            True if a connection was removed
        """
        self.compdef(comp_name)
        internal = [
            c for c in self.internal_param_conns if c.dst_comp_name == comp_name and c.dst_par_name == param_name
        ]
        external = [
            c for c in self.external_param_conns if c.comp_name == comp_name and c.param_name == param_name
        ]
        if not internal and not external:
            return False
        self.internal_param_conns = [c for c in self.internal_param_conns if c not in internal]
        for conn in internal:
            self._drop_backup(conn)
        self.external_param_conns = [c for c in self.external_param_conns if c not in external]
        self._touch()
        return True

    def connect_param(
        self,
        dst_comp_name: str,
        dst_par_name: str,
        src_comp_name: str,
        src_var_name: str,
        backup: Any = None,
        ignoreunits: bool = False,
        offset: int = 0,
    ) -> InternalParameterConnection:
        """
        Connect a child's parameter to another child's variable.

        Any existing binding of the parameter at this level is replaced.
        Compatibility of dimensions, units and active windows is checked at
        build time.

        Args:
            dst_comp_name: Receiving child
            dst_par_name: Receiving parameter
            src_comp_name: Producing child
            src_var_name: Producing variable
            backup: Values used where the source is inactive; must cover the
                destination's whole window along time
            ignoreunits: Skip the unit check and allow differently named
                dimensions of equal size
            offset: Positions by which the destination lags the source
        """
        self._check_leaf_item(dst_comp_name, dst_par_name, "parameter")
        self._check_leaf_item(src_comp_name, src_var_name, "variable")
        if not isinstance(offset, int) or offset < 0:
            raise SimcompDefinitionError(f"Connection offset must be a non-negative int, got {offset!r}")

        backup_name = None
        backup_param = None
        if backup is not None:
            backup_name = f"backup_{dst_comp_name}_{dst_par_name}"
            backup_param = make_model_parameter(backup)

        if self.disconnect_param(dst_comp_name, dst_par_name):
            logger.debug("Replacing existing binding of %s.%s", dst_comp_name, dst_par_name)

        if backup_name is not None:
            self.external_params[backup_name] = backup_param
            self.backups.append(backup_name)

        conn = InternalParameterConnection(
            src_comp_name, src_var_name, dst_comp_name, dst_par_name, ignoreunits, backup_name, offset
        )
        self.internal_param_conns.append(conn)
        self._touch()
        return conn

    def set_external_param(self, name: str, value: Any, dimensions: Optional[tuple[str, ...]] = None) -> ModelParameter:
        """Create or replace an external parameter in this composite's store."""
        _check_name(name, "External parameter")
        param = make_model_parameter(value, dimensions)
        self.external_params[name] = param
        self._touch()
        return param

    def update_external_param(self, name: str, value: Any) -> None:
        """
        Replace the value of an existing external parameter.

        Raises:
            KeyError: If no external parameter has this name
            ValueError: If an array value changes shape
        """
        if name not in self.external_params:
            raise KeyError(f"No external parameter named '{name}'")
        old = self.external_params[name]
        new = make_model_parameter(value, getattr(old, "dimensions", None) or None)
        if type(new) is not type(old):
            raise ValueError(f"Cannot update external parameter '{name}': scalar/array kind changed")
        if hasattr(old, "shape") and old.shape != new.shape:
            raise ValueError(
                f"Cannot update external parameter '{name}': expected shape {old.shape}, got {new.shape}"
            )
        self.external_params[name] = new
        self._touch()

    def connect_external(self, comp_name: str, param_name: str, external_name: str) -> ExternalParameterConnection:
        """Bind a child's parameter to an external parameter of this composite."""
        self._check_leaf_item(comp_name, param_name, "parameter")
        if external_name not in self.external_params:
            raise SimcompDefinitionError(f"No external parameter named '{external_name}'", ErrorCode.NOT_FOUND)
        self.disconnect_param(comp_name, param_name)
        conn = ExternalParameterConnection(comp_name, param_name, external_name)
        self.external_param_conns.append(conn)
        self._touch()
        return conn

    def set_param(self, comp_name: str, param_name: str, value: Any, dimensions: Optional[tuple[str, ...]] = None) -> None:
        """Bind a child's parameter to a literal (stored as an unshared external parameter)."""
        self._check_leaf_item(comp_name, param_name, "parameter")
        ext_name = f"{comp_name}.{param_name}"
        self.disconnect_param(comp_name, param_name)
        self.set_external_param(ext_name, value, dimensions)
        self.connect_external(comp_name, param_name, ext_name)

    def connections_to(self, comp_name: str) -> list:
        """Internal and external connections whose destination is a child."""
        return [c for c in self.internal_param_conns if c.dst_comp_name == comp_name] + [
            c for c in self.external_param_conns if c.comp_name == comp_name
        ]

    # -- traversal -------------------------------------------------------

    def leaves(self, prefix: tuple[str, ...] = ()) -> Iterator[tuple[tuple[str, ...], ComponentDef]]:
        """Yield (path, leaf) for every leaf below this composite, in execution order."""
        for name in self.sorted_comps:
            child = self.comps_dict[name]
            path = prefix + (name,)
            if child.is_composite:
                yield from child.leaves(path)
            else:
                yield path, child

    def find_owners(self, item: str, kind: str) -> list[tuple[str, ...]]:
        """Relative paths of the leaves declaring a parameter or variable of this name."""
        owners = []
        for path, leaf in self.leaves():
            table = leaf.parameters if kind == "parameter" else leaf.variables
            if item in table:
                owners.append(path)
        return owners

    def clone(self, name: Optional[str] = None) -> "CompositeComponentDef":
        other = CompositeComponentDef(name or self.name, self.comp_id)
        self._copy_into(other)
        return other

    def _copy_into(self, other: "CompositeComponentDef") -> None:
        other.first, other.last = self.first, self.last
        other.comps_dict = {k: c.clone(k) for k, c in self.comps_dict.items()}
        other.internal_param_conns = list(self.internal_param_conns)
        other.external_param_conns = list(self.external_param_conns)
        other.external_params = {k: p.copy() for k, p in self.external_params.items()}
        other.backups = list(self.backups)
        other.dim_dict = dict(self.dim_dict)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} '{self.name}' with {len(self.comps_dict)} component(s)>"


class ModelDef(CompositeComponentDef):
    """
    The root composite of a model.

    Adds the model timeline (the ``time`` dimension) and the number type
    used for storage whose datum declares no datatype.
    """

    def __init__(self, number_type: Any = float, name: str = "model") -> None:
        super().__init__(name)
        self.number_type = validate_number_type(number_type)

    def set_dimension(self, name: str, keys: Any) -> Dimension:
        if name != TIME:
            return super().set_dimension(name, keys)
        try:
            dim = keys if isinstance(keys, Dimension) else Dimension(keys)
        except (TypeError, ValueError) as err:
            raise SimcompDefinitionError(f"Invalid keys for dimension '{name}': {err}", ErrorCode.BAD_DIMENSION_KEYS)
        if not all(isinstance(k, (int, float)) and not isinstance(k, bool) for k in dim.keys()):
            raise SimcompDefinitionError("Time labels must be numeric", ErrorCode.BAD_DIMENSION_KEYS)
        if list(dim.keys()) != sorted(dim.keys()):
            raise SimcompDefinitionError("Time labels must be increasing", ErrorCode.BAD_DIMENSION_KEYS)
        self.dim_dict[TIME] = dim
        self._touch()
        logger.debug("Set time dimension: %d label(s), uniform=%s", len(dim), is_uniform(dim.keys()))
        return dim

    @property
    def time(self) -> Optional[Dimension]:
        return self.dim_dict.get(TIME)

    @property
    def is_uniform(self) -> bool:
        return self.time is not None and is_uniform(self.time.keys())

    def _validate_window(self, name: str, first: Any, last: Any) -> None:
        super()._validate_window(name, first, last)
        time = self.time
        if time is None:
            return
        for label in (first, last):
            if label is not None and label not in time:
                raise SimcompDefinitionError(
                    f"Component '{name}': {label} is not a time label of the model", ErrorCode.BAD_WINDOW
                )

    def clone(self, name: Optional[str] = None) -> "ModelDef":
        other = ModelDef(self.number_type, name or self.name)
        self._copy_into(other)
        return other
