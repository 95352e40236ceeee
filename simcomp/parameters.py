"""External parameter values and the connection records that bind them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

import numpy as np
from numpy.typing import NDArray


class ScalarModelParameter:
    """A single stored value bound to one or more component parameters."""

    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value

    def coerce(self, datatype: type) -> Any:
        """
        Convert the stored value to a parameter's datatype.

        Raises:
            TypeError: If the value cannot be converted
        """
        try:
            if self.value is None:
                raise TypeError("None is not a value")
            return datatype(self.value)
        except (TypeError, ValueError) as err:
            raise TypeError(
                f"Failed to convert {self.value!r} ({type(self.value).__name__}) to {datatype.__name__}"
            ) from err

    def copy(self) -> "ScalarModelParameter":
        return ScalarModelParameter(self.value)

    def __repr__(self) -> str:
        return f"ScalarModelParameter({self.value!r})"


class ArrayModelParameter:
    """Dense stored values plus the names of the dimensions indexing them.

    ``dimensions`` may be empty when the names are not known; the shape is
    then checked against the receiving parameter's dimensions only.
    """

    __slots__ = ("values", "dimensions")

    def __init__(self, values: Any, dimensions: Optional[tuple[str, ...]] = None) -> None:
        self.values: NDArray[Any] = np.array(values)
        self.dimensions = tuple(dimensions or ())

    @property
    def shape(self) -> tuple[int, ...]:
        return self.values.shape

    def coerce(self, datatype: type) -> NDArray[Any]:
        """Return a converted copy of the values."""
        try:
            return np.array(self.values, dtype=datatype)
        except (TypeError, ValueError) as err:
            raise TypeError(
                f"Failed to convert array of {self.values.dtype} to {np.dtype(datatype).name}"
            ) from err

    def copy(self) -> "ArrayModelParameter":
        return ArrayModelParameter(self.values.copy(), self.dimensions)

    def __repr__(self) -> str:
        return f"ArrayModelParameter(shape={self.values.shape}, dimensions={list(self.dimensions)})"


ModelParameter = Union[ScalarModelParameter, ArrayModelParameter]


def make_model_parameter(value: Any, dimensions: Optional[tuple[str, ...]] = None) -> ModelParameter:
    """Wrap a literal in the matching ModelParameter variant."""
    if isinstance(value, (ScalarModelParameter, ArrayModelParameter)):
        return value.copy()
    if np.ndim(value) == 0 and not dimensions:
        return ScalarModelParameter(value.item() if isinstance(value, np.ndarray) else value)
    return ArrayModelParameter(value, dimensions)


@dataclass(frozen=True)
class InternalParameterConnection:
    """Binds a component parameter to another component's variable."""

    src_comp_name: str
    src_var_name: str
    dst_comp_name: str
    dst_par_name: str
    ignoreunits: bool = False
    backup: Optional[str] = None
    """Name of the external parameter supplying backup data, if any"""
    offset: int = 0
    """Number of positions the destination lags the source"""


@dataclass(frozen=True)
class ExternalParameterConnection:
    """Binds a component parameter to a named external parameter."""

    comp_name: str
    param_name: str
    external_param: str
