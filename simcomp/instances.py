"""Built, storage-backed component instances and the execution engine."""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional, Union, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from .arrays import ConnectedArray, TimestepArray
from .clock import Clock
from .errors import ErrorCode, SimcompRuntimeError

if TYPE_CHECKING:
    from .defs import ComponentDef, ModelDef

logger = logging.getLogger(__name__)

Storage = Union[TimestepArray, ConnectedArray, NDArray[Any], Any]


class _ComponentData:
    """Name-keyed view over a component's parameter or variable storage."""

    _kind = "item"

    __slots__ = ("_comp_name", "_data")

    def __init__(self, comp_name: str, data: dict[str, Storage]) -> None:
        self._comp_name = comp_name
        self._data = data

    def _storage(self, name: str) -> Storage:
        try:
            return self._data[name]
        except KeyError:
            raise KeyError(f"Component '{self._comp_name}' has no {self._kind} named '{name}'") from None

    def __getitem__(self, name: str) -> Any:
        value = self._storage(name)
        if isinstance(value, np.ndarray) and value.ndim == 0:
            return value[()]
        return value

    def __contains__(self, name: object) -> bool:
        return name in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def names(self) -> list[str]:
        return list(self._data)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} of '{self._comp_name}': {', '.join(self._data)}>"


class ParametersView(_ComponentData):
    """Read-only parameter access passed to hooks as ``p``."""

    _kind = "parameter"
    __slots__ = ()

    def __setitem__(self, name: str, value: Any) -> None:
        raise SimcompRuntimeError(
            f"Cannot assign to parameter '{name}' of '{self._comp_name}' during a run",
            ErrorCode.READ_ONLY,
            component_name=self._comp_name,
        )


class VariablesView(_ComponentData):
    """Variable access passed to hooks as ``v``.

    Time-dimensioned variables are returned as TimestepArray objects and are
    written by index (``v["x"][t] = ...``). Assigning to the name itself
    overwrites the stored values, which is how scalar variables are set.
    """

    _kind = "variable"
    __slots__ = ()

    def __setitem__(self, name: str, value: Any) -> None:
        storage = self._storage(name)
        if isinstance(storage, TimestepArray):
            storage.data[...] = value
        else:
            storage[...] = value


class DimensionsView:
    """Dimension index lists passed to hooks as ``d``.

    Example:
        >>> for r in d.get("regions"):
        ...     v["gdp"][t, r] = p["tfp"][r]
    """

    __slots__ = ("_dims",)

    def __init__(self, dims: dict[str, list[int]]) -> None:
        self._dims = dims

    def get(self, name: str) -> list[int]:
        """0-based index list of a dimension."""
        try:
            return self._dims[name]
        except KeyError:
            raise KeyError(f"Unknown dimension '{name}'") from None

    def __contains__(self, name: object) -> bool:
        return name in self._dims

    def names(self) -> list[str]:
        return list(self._dims)

    def __repr__(self) -> str:
        return f"<DimensionsView {', '.join(f'{k}[{len(v)}]' for k, v in self._dims.items())}>"


class ComponentInstance:
    """
    A built leaf component.

    Owns its variable storage and the views handed to its hooks. ``first``
    and ``last`` are 0-based indices of its active window on the model
    timeline.
    """

    is_composite = False

    def __init__(
        self,
        comp_def: "ComponentDef",
        name: str,
        variables: dict[str, Storage],
        parameters: dict[str, Storage],
        dim_dict: dict[str, list[int]],
        first: int,
        last: int,
    ) -> None:
        self.comp_def = comp_def
        self.comp_name = name
        self.comp_id = comp_def.comp_id
        self.variables = VariablesView(name, variables)
        self.parameters = ParametersView(name, parameters)
        self.dimensions = DimensionsView(dim_dict)
        self.first = first
        self.last = last
        self.init = comp_def.init
        self.run_timestep = comp_def.run_timestep
        self._initialized = False

    def reset(self) -> None:
        self._initialized = False

    def _fail(self, hook: str, err: Exception, index: int, clock: Optional[Clock]) -> SimcompRuntimeError:
        label = f" (time {clock.time})" if clock is not None else ""
        return SimcompRuntimeError(
            f"{hook} of component '{self.comp_name}' failed at position {index + 1}{label}: {err}",
            ErrorCode.HOOK_FAILED,
            component_name=self.comp_name,
            position=index + 1,
        )

    def step(self, index: int, clock: Clock) -> None:
        """Run this component for one position of the model timeline."""
        p, v, d = self.parameters, self.variables, self.dimensions
        if not self._initialized:
            self._initialized = True
            if self.init is not None:
                try:
                    self.init(p, v, d)
                except Exception as err:
                    raise self._fail("init", err, index, clock) from err
        if self.run_timestep is not None:
            try:
                self.run_timestep(p, v, d, clock.timestep)
            except Exception as err:
                raise self._fail("run_timestep", err, index, clock) from err

    def __repr__(self) -> str:
        return f"<ComponentInstance '{self.comp_name}' [{self.first}..{self.last}]>"


class CompositeInstance:
    """A built composite: ordered children with one clock each."""

    is_composite = True

    def __init__(self, name: str, comps: list[Union[ComponentInstance, "CompositeInstance"]], clocks: list[Clock]) -> None:
        self.comp_name = name
        self.comps_dict = {ci.comp_name: ci for ci in comps}
        self.clocks = clocks
        self.firsts = [ci.first for ci in comps]
        self.lasts = [ci.last for ci in comps]
        self.first = min(self.firsts) if comps else 0
        self.last = max(self.lasts) if comps else -1

    def reset(self) -> None:
        for ci, clock in zip(self.comps_dict.values(), self.clocks):
            clock.reset()
            ci.reset()

    def step(self, index: int, clock: Optional[Clock] = None) -> None:
        for ci, child_clock, first, last in zip(self.comps_dict.values(), self.clocks, self.firsts, self.lasts):
            if first <= index <= last:
                ci.step(index, child_clock)
                child_clock.advance()

    def leaves(self) -> Iterator[ComponentInstance]:
        for ci in self.comps_dict.values():
            if ci.is_composite:
                yield from ci.leaves()
            else:
                yield ci

    def __repr__(self) -> str:
        return f"<CompositeInstance '{self.comp_name}' with {len(self.comps_dict)} component(s)>"


class ModelInstance:
    """
    A built, runnable model.

    Holds the root composite instance and a reference to the definition it
    was built from. It does not observe later changes to that definition.
    """

    def __init__(self, md: "ModelDef", root: CompositeInstance, stamp: int, times: tuple) -> None:
        self.md = md
        self.root = root
        self.stamp = stamp
        self.times = times
        self.started = False
        self.ran = False

    @property
    def is_stale(self) -> bool:
        return self.md.stamp() != self.stamp

    def run(self) -> None:
        """Execute every position of the timeline in order."""
        root = self.root
        root.reset()
        self.started = True
        self.ran = False
        logger.debug("Running %d position(s) from time %s", len(self.times), self.times[0])
        for index in range(len(self.times)):
            root.step(index)
        self.ran = True
        logger.info("Run complete: %d component(s), %d position(s)", sum(1 for _ in root.leaves()), len(self.times))

    def component(self, name: str) -> Union[ComponentInstance, CompositeInstance]:
        """Look up an instance by name or dotted path ("outer.inner")."""
        node: Any = self.root
        for part in name.split("."):
            if not node.is_composite or part not in node.comps_dict:
                raise KeyError(f"Component '{name}' not found in model")
            node = node.comps_dict[part]
        return node

    def _owner(self, comp_name: str, item: str) -> ComponentInstance:
        node = self.component(comp_name)
        if not node.is_composite:
            return node
        owners = [ci for ci in node.leaves() if item in ci.variables or item in ci.parameters]
        if not owners:
            raise KeyError(f"'{item}' not found in any component of '{comp_name}'")
        if len(owners) > 1:
            raise KeyError(f"'{item}' found in more than one component of '{comp_name}'")
        return owners[0]

    def get(self, comp_name: str, item: str) -> Any:
        """Stored values of a variable or parameter: an array, or a scalar."""
        ci = self._owner(comp_name, item)
        if item in ci.variables:
            storage = ci.variables._storage(item)
        elif item in ci.parameters:
            storage = ci.parameters._storage(item)
        else:
            raise KeyError(f"Component '{comp_name}' has no variable or parameter named '{item}'")

        if isinstance(storage, (TimestepArray, ConnectedArray)):
            return storage.values()
        if isinstance(storage, np.ndarray):
            return storage[()] if storage.ndim == 0 else storage
        return storage

    def __getitem__(self, key: tuple) -> Any:
        if not isinstance(key, tuple) or len(key) not in (2, 3):
            raise KeyError("index with (component, item) or (component, item, position)")
        values = self.get(key[0], key[1])
        if len(key) == 2:
            return values
        position = key[2]
        if np.ndim(values) == 0:
            raise KeyError(f"'{key[0]}.{key[1]}' is scalar; it has no positions")
        if not 1 <= position <= len(values):
            raise IndexError(f"position {position} out of range 1..{len(values)}")
        return values[position - 1]

    def __repr__(self) -> str:
        state = "ran" if self.ran else "built"
        return f"<ModelInstance ({state}) with {len(self.root.comps_dict)} component(s)>"


def require_run(mi: Optional[ModelInstance]) -> ModelInstance:
    """The instance whose results may be read.

    A run that stopped on a hook failure still counts; the positions it
    completed keep their values.
    """
    if mi is None or not mi.started:
        raise SimcompRuntimeError("Model has not been run; call run() first", ErrorCode.NOT_RUN)
    return mi
