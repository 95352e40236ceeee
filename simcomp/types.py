"""Data structures describing component parameters and variables."""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

# A dimension entry is either a dimension name or a fixed anonymous length.
DimensionSpec = Union[str, int]

TIME = "time"


@dataclass(frozen=True)
class VariableDef:
    """
    A component output.

    Variables are computed by a component's run_timestep (or init) hook and
    stored by the component instance for the whole model timeline.

    Immutable - use ComponentDef.add_variable() to change a definition.
    """

    name: str
    """Variable name"""

    dimensions: tuple[DimensionSpec, ...] = ()
    """Dimension names (or fixed lengths) in storage order; empty if scalar"""

    datatype: Optional[type] = None
    """Element type; None uses the model's number type"""

    unit: str = ""
    """Units (if specified)"""

    description: str = ""
    """Documentation"""

    @property
    def is_scalar(self) -> bool:
        return not self.dimensions

    @property
    def has_time(self) -> bool:
        return TIME in self.dimensions


class _NoDefault:
    """Marker for parameters declared without a default."""

    def __repr__(self) -> str:
        return "NO_DEFAULT"

    def __copy__(self) -> "_NoDefault":
        return self

    def __deepcopy__(self, memo: dict) -> "_NoDefault":
        return self


_NO_DEFAULT: Any = _NoDefault()


@dataclass(frozen=True)
class ParameterDef(VariableDef):
    """
    A component input.

    Parameters receive their values from a connection to another component's
    variable, from an external parameter, or from their default.

    Immutable - use ComponentDef.add_parameter() to change a definition.
    """

    default: Any = field(default=_NO_DEFAULT, compare=False)
    """Default value used when nothing else binds the parameter"""

    @property
    def has_default(self) -> bool:
        return self.default is not _NO_DEFAULT


@dataclass(frozen=True)
class ItemInfo:
    """A structural summary of one component parameter or variable."""

    component: str
    """Name of the component within the model"""

    name: str
    """Parameter or variable name"""

    kind: str
    """'variable' or 'parameter'"""

    dimensions: tuple[str, ...] = ()
    """Dimension names (fixed lengths rendered as strings)"""

    unit: str = ""
    """Units (if specified)"""

    description: str = ""
    """Documentation"""

    @property
    def label(self) -> str:
        return f"{self.component} : {self.name}"
