"""Model class for composing and running component models."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .build import build as build_instance
from .defs import AbstractComponentDef, ComponentDef, CompositeComponentDef, ModelDef
from .dimensions import Dimension
from .errors import ErrorCode, SimcompDefinitionError
from .instances import ModelInstance, require_run
from .parameters import ExternalParameterConnection, InternalParameterConnection
from .types import ItemInfo

logger = logging.getLogger(__name__)

LeafPath = tuple[str, ...]


def _bound_params(ccd: CompositeComponentDef, prefix: LeafPath = ()) -> set[tuple[LeafPath, str]]:
    """(leaf path, parameter) pairs that some connection in the tree binds."""
    bound: set[tuple[LeafPath, str]] = set()
    targets = [(c.dst_comp_name, c.dst_par_name) for c in ccd.internal_param_conns] + [
        (c.comp_name, c.param_name) for c in ccd.external_param_conns
    ]
    for comp, par in targets:
        child = ccd.comps_dict.get(comp)
        if child is None:
            continue
        if child.is_composite:
            bound.update((prefix + (comp,) + path, par) for path in child.find_owners(par, "parameter"))
        else:
            bound.add((prefix + (comp,), par))
    for name in ccd.sorted_comps:
        child = ccd.comps_dict[name]
        if child.is_composite:
            bound |= _bound_params(child, prefix + (name,))
    return bound


class VariableReference:
    """A (component, item) pair within a model; ``.value`` reads its results."""

    def __init__(self, model: "Model", comp_name: str, var_name: str) -> None:
        self.model = model
        self.comp_name = comp_name
        self.var_name = var_name

    @property
    def value(self) -> Any:
        return self.model[self.comp_name, self.var_name]

    def __repr__(self) -> str:
        return f"<VariableReference {self.comp_name}.{self.var_name}>"


class ComponentReference:
    """
    A handle on one component of a model, returned by Model.add_comp().

    Example:
        >>> growth = m.add_comp(grow)
        >>> growth["tfp"] = 1.5                  # set a parameter
        >>> growth["labor"] = population["pop"]  # connect to another component
        >>> m.run()
        >>> growth["gdp"].value
    """

    def __init__(self, model: "Model", comp_name: str) -> None:
        self.model = model
        self.comp_name = comp_name

    def __getitem__(self, name: str) -> VariableReference:
        return VariableReference(self.model, self.comp_name, name)

    def __setitem__(self, name: str, value: Any) -> None:
        if isinstance(value, VariableReference):
            self.model.connect_param(self.comp_name, name, value.comp_name, value.var_name)
        else:
            self.model.set_param(self.comp_name, name, value)

    def __repr__(self) -> str:
        return f"<ComponentReference '{self.comp_name}'>"


class Model:
    """
    A model definition together with its most recent built instance.

    Definition operations edit the ModelDef. ``build()`` compiles it and
    ``run()`` executes it, rebuilding first when the definition changed
    since the last build.

    Example:
        >>> m = Model()
        >>> m.set_dimension("time", range(2000, 2051, 10))
        >>> m.add_comp(grow)
        >>> m.set_param("grow", "rate", 0.02)
        >>> m.run()
        >>> m["grow", "level"]
    """

    def __init__(self, number_type: Any = float, name: Optional[str] = None) -> None:
        self._name = name
        self.md = ModelDef(number_type, name or "model")
        self.mi: Optional[ModelInstance] = None

    @property
    def name(self) -> Optional[str]:
        return self._name

    # -- definition ------------------------------------------------------

    def set_dimension(self, name: str, keys: Any) -> Dimension:
        """
        Set the keys of a named dimension.

        Args:
            name: Dimension name; "time" defines the model timeline
            keys: An int N (keys 1..N), a range, or a sequence of unique keys

        Raises:
            SimcompDefinitionError: If the keys are invalid
        """
        return self.md.set_dimension(name, keys)

    def add_comp(
        self,
        comp_def: AbstractComponentDef,
        name: Optional[str] = None,
        first: Any = None,
        last: Any = None,
        before: Optional[str] = None,
        after: Optional[str] = None,
    ) -> ComponentReference:
        """
        Add a component to the model.

        Args:
            comp_def: Leaf or composite definition
            name: Name within the model (defaults to the definition's name)
            first: First active time label
            last: Last active time label
            before: Insert before this component
            after: Insert after this component

        Returns:
            A reference for setting and connecting the component's parameters
        """
        child = self.md.add_comp(comp_def, name, first, last, before, after)
        return ComponentReference(self, child.name)

    def delete_comp(self, name: str) -> None:
        self.md.delete_comp(name)

    def replace_comp(
        self,
        name: str,
        comp_def: AbstractComponentDef,
        first: Any = None,
        last: Any = None,
        reconnect: bool = True,
    ) -> ComponentReference:
        """Swap the definition behind a component, keeping its name and place in the order."""
        self.md.replace_comp(name, comp_def, first, last, reconnect)
        return ComponentReference(self, name)

    # -- parameters ------------------------------------------------------

    def set_param(self, comp_name: str, param_name: str, value: Any, dimensions: Optional[tuple[str, ...]] = None) -> None:
        """Bind one component's parameter to a value of its own."""
        self.md.set_param(comp_name, param_name, value, dimensions)

    def _unbound(self, param_name: str, include_defaults: bool) -> list[str]:
        """Top-level components holding an unbound leaf parameter of this name."""
        bound = _bound_params(self.md)
        comps: list[str] = []
        for path, leaf in self.md.leaves():
            pdef = leaf.parameters.get(param_name)
            if pdef is None or (path, param_name) in bound:
                continue
            if pdef.has_default and not include_defaults:
                continue
            if path[0] not in comps:
                comps.append(path[0])
        return comps

    def set_shared_param(self, param_name: str, value: Any, dimensions: Optional[tuple[str, ...]] = None) -> None:
        """
        Bind every unbound parameter called ``param_name`` to one shared value.

        The value is stored as an external parameter of the same name, so a
        later update_param() changes it for every component at once.
        """
        comps = self._unbound(param_name, include_defaults=True)
        self.md.set_external_param(param_name, value, dimensions)
        for comp in comps:
            self.md.connect_external(comp, param_name, param_name)
        logger.debug("Shared parameter '%s' bound in %d component(s)", param_name, len(comps))

    def set_leftover_params(self, values: Mapping[str, Any]) -> None:
        """
        Bind every parameter that has neither a binding nor a default.

        Each one is bound to a shared external parameter named after it,
        taking its value from ``values``.

        Raises:
            KeyError: If ``values`` lacks an entry for a leftover parameter
        """
        names = []
        for _, leaf in self.md.leaves():
            names.extend(n for n in leaf.parameters if n not in names)
        leftover = {name: comps for name in names if (comps := self._unbound(name, include_defaults=False))}
        missing = [name for name in leftover if name not in values]
        if missing:
            raise KeyError(f"No values given for leftover parameter(s): {', '.join(missing)}")
        for name, comps in leftover.items():
            self.md.set_external_param(name, values[name])
            for comp in comps:
                self.md.connect_external(comp, name, name)
        logger.debug("Bound %d leftover parameter(s)", len(leftover))

    def update_param(self, name: str, value: Any) -> None:
        """
        Replace the value of an external parameter.

        Raises:
            KeyError: If no external parameter has this name
            ValueError: If the new value has a different shape
        """
        self.md.update_external_param(name, value)

    def update_params(self, values: Mapping[str, Any]) -> None:
        for name in values:
            if name not in self.md.external_params:
                raise KeyError(f"No external parameter named '{name}'")
        for name, value in values.items():
            self.md.update_external_param(name, value)

    def add_external_param(self, name: str, value: Any, dimensions: Optional[tuple[str, ...]] = None) -> None:
        self.md.set_external_param(name, value, dimensions)

    def connect_external(self, comp_name: str, param_name: str, external_name: str) -> ExternalParameterConnection:
        return self.md.connect_external(comp_name, param_name, external_name)

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
        Connect a parameter to another component's variable.

        Args:
            dst_comp_name: Receiving component
            dst_par_name: Receiving parameter
            src_comp_name: Producing component
            src_var_name: Producing variable
            backup: Values for the receiving component's whole window, read
                wherever the producing component is inactive
            ignoreunits: Skip unit and dimension-name checks
            offset: Positions by which the receiver lags the producer
        """
        return self.md.connect_param(
            dst_comp_name, dst_par_name, src_comp_name, src_var_name, backup, ignoreunits, offset
        )

    def disconnect_param(self, comp_name: str, param_name: str) -> bool:
        return self.md.disconnect_param(comp_name, param_name)

    # -- lifecycle -------------------------------------------------------

    @property
    def is_built(self) -> bool:
        """True if the last build reflects the current definition."""
        return self.mi is not None and not self.mi.is_stale

    def build(self) -> ModelInstance:
        """
        Compile the definition into a runnable instance.

        Raises:
            SimcompBindingError: If any parameter is unbound or any connection is invalid
        """
        self.mi = build_instance(self.md)
        return self.mi

    def run(self) -> None:
        """Run the model, building it first if needed."""
        mi = self.mi if self.is_built and self.mi is not None else self.build()
        mi.run()

    def copy(self) -> "Model":
        """An independent, unbuilt copy of this model's definition."""
        other = Model(self.md.number_type, self._name)
        other.md = self.md.clone()
        return other

    # -- results and introspection ---------------------------------------

    def __getitem__(self, key: tuple) -> Any:
        """
        Read results: ``m[comp, item]`` or ``m[comp, item, position]``.

        Raises:
            SimcompRuntimeError: If the model has not been run
            KeyError: If the component or item does not exist
        """
        return require_run(self.mi)[key]

    def _compdef(self, comp_name: str) -> AbstractComponentDef:
        node: AbstractComponentDef = self.md
        for part in comp_name.split("."):
            if not isinstance(node, CompositeComponentDef) or part not in node.comps_dict:
                raise KeyError(f"Component '{comp_name}' not found in model")
            node = node.comps_dict[part]
        return node

    def _leafdefs(self, comp_name: str) -> list[ComponentDef]:
        node = self._compdef(comp_name)
        if isinstance(node, CompositeComponentDef):
            return [leaf for _, leaf in node.leaves()]
        assert isinstance(node, ComponentDef)
        return [node]

    def dimensions(self, comp_name: str, item: str) -> tuple:
        """Dimension names (or fixed lengths) of a parameter or variable."""
        for leaf in self._leafdefs(comp_name):
            datum = leaf.variables.get(item) or leaf.parameters.get(item)
            if datum is not None:
                return datum.dimensions
        raise KeyError(f"Component '{comp_name}' has no parameter or variable named '{item}'")

    def variable_names(self, comp_name: str) -> list[str]:
        return [name for leaf in self._leafdefs(comp_name) for name in leaf.variables]

    def parameter_names(self, comp_name: str) -> list[str]:
        return [name for leaf in self._leafdefs(comp_name) for name in leaf.parameters]

    def connections(self) -> list:
        """The model-level internal and external connections, in the order they were made."""
        return list(self.md.internal_param_conns) + list(self.md.external_param_conns)

    @property
    def components(self) -> list[str]:
        """Names of the model's top-level components, in execution order."""
        return list(self.md.sorted_comps)

    def describe(self) -> list[ItemInfo]:
        """
        Summarize every parameter and variable in the model.

        Returns:
            ItemInfo records sorted by label, ignoring case
        """
        items = []
        for path, leaf in self.md.leaves():
            comp = ".".join(path)
            for kind, table in (("parameter", leaf.parameters), ("variable", leaf.variables)):
                for datum in table.values():
                    dims = tuple(str(d) for d in datum.dimensions)
                    items.append(ItemInfo(comp, datum.name, kind, dims, datum.unit, datum.description))
        return sorted(items, key=lambda info: info.label.lower())

    def time_labels(self) -> tuple:
        time = self.md.time
        if time is None:
            raise SimcompDefinitionError("The 'time' dimension has not been set", ErrorCode.UNKNOWN_DIMENSION)
        return time.keys()

    def __repr__(self) -> str:
        name = f" '{self._name}'" if self._name else ""
        state = "ran" if self.mi is not None and self.mi.ran else ("built" if self.is_built else "unbuilt")
        return f"<Model{name} with {len(self.md.comps_dict)} component(s), {state}>"

