"""Locating the stored values a sampling layer overwrites between runs.

A name given without a component refers to a shared external parameter when
the model has one, otherwise to the one component parameter of that name.
A qualified ``"component.parameter"`` name always refers to that component.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from .errors import ErrorCode, SimcompDefinitionError
from .model import Model


@dataclass(frozen=True)
class ParameterTarget:
    """Where one model stores the value behind a parameter name."""

    name: str
    """Parameter name"""

    component: Optional[str] = None
    """Owning component path; None for a shared external parameter"""

    @property
    def is_shared(self) -> bool:
        return self.component is None


def _label(model: Model, index: int) -> str:
    return model.name or f"Model{index}"


def _resolve_one(model: Model, label: str, name: str, comp_name: Optional[str]) -> ParameterTarget:
    md = model.md
    if comp_name is not None:
        if not md.has_comp(comp_name):
            raise SimcompDefinitionError(f"Component {comp_name} does not exist in {label}.", ErrorCode.NOT_FOUND)
        if name not in model.parameter_names(comp_name):
            raise SimcompDefinitionError(
                f"Cannot resolve because {name} is not a parameter of component {comp_name} in {label}.",
                ErrorCode.NOT_FOUND,
            )
        return ParameterTarget(name, comp_name)

    if name in md.external_params:
        return ParameterTarget(name)

    owners = [path for path, leaf in md.leaves() if name in leaf.parameters]
    if not owners:
        raise SimcompDefinitionError(
            f"Cannot resolve because {name} not found in any of the components of {label}.",
            ErrorCode.NOT_FOUND,
        )
    if len(owners) > 1:
        raise SimcompDefinitionError(
            f"Cannot resolve because parameter name {name} found in more than one component of {label}",
            ErrorCode.AMBIGUOUS_PARAMETER,
        )
    return ParameterTarget(name, owners[0][0])


def resolve_parameter(models: Sequence[Model], name: str, comp_name: Optional[str] = None) -> list[ParameterTarget]:
    """
    Resolve a parameter name in each of several models.

    Args:
        models: Models to search; unnamed models are labeled Model1, Model2, ...
        name: Parameter name, or "component.parameter"
        comp_name: Component to look in (alternative to a qualified name)

    Returns:
        One ParameterTarget per model, in order

    Raises:
        SimcompDefinitionError: If the name is missing or ambiguous in any model
    """
    if comp_name is None and "." in name:
        comp_name, name = name.rsplit(".", 1)
    return [_resolve_one(m, _label(m, i), name, comp_name) for i, m in enumerate(models, start=1)]


def apply_value(model: Model, target: ParameterTarget, value: Any) -> None:
    """Store a new value at a resolved target of one model."""
    if target.is_shared:
        model.update_param(target.name, value)
    else:
        model.set_param(target.component, target.name, value)
