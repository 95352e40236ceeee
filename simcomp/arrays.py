"""Time-indexed storage for component variables and connected parameters.

Every time-dimensioned datum is stored along the full model timeline with
time on axis 0. Indexing with a timestep translates its position into a
storage index; plain integers and slices are passed to numpy unchanged.
"""

from __future__ import annotations

from typing import Any, Optional

import numpy as np
from numpy.typing import NDArray

from .clock import _Timestep
from .errors import ErrorCode, SimcompRuntimeError


def _translate(key: Any) -> Any:
    if isinstance(key, tuple):
        if key and isinstance(key[0], _Timestep):
            return (key[0].index,) + key[1:]
        return key
    if isinstance(key, _Timestep):
        return key.index
    return key


class TimestepArray:
    """Owned storage for a time-dimensioned variable or parameter.

    Example:
        >>> arr = TimestepArray(np.zeros(6))
        >>> ts = FixedTimestep(2000, 10, 2050, t=2)
        >>> arr[ts] = 4.0
        >>> arr[1]
        4.0
    """

    __slots__ = ("data",)

    def __init__(self, data: NDArray[Any]) -> None:
        if data.ndim == 0:
            raise ValueError("TimestepArray requires at least one (time) axis")
        self.data = data

    @property
    def shape(self) -> tuple[int, ...]:
        return self.data.shape

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    def values(self) -> NDArray[Any]:
        return self.data

    def __getitem__(self, key: Any) -> Any:
        return self.data[_translate(key)]

    def __setitem__(self, key: Any, value: Any) -> None:
        self.data[_translate(key)] = value

    def __len__(self) -> int:
        return len(self.data)

    def __array__(self, dtype: Any = None, copy: Any = None) -> NDArray[Any]:
        if dtype is None:
            return self.data
        return self.data.astype(dtype)

    def __repr__(self) -> str:
        return f"TimestepArray(shape={self.data.shape}, dtype={self.data.dtype})"


class ConnectedArray:
    """Read-only view of another component's variable.

    The view reads the source at ``position - offset``. When a backup is
    given, positions whose source position falls outside the source's
    active window read the backup instead. The backup spans the full model
    timeline; only the destination's window is meaningful.
    """

    __slots__ = ("source", "offset", "backup", "src_first", "src_last", "name")

    def __init__(
        self,
        source: TimestepArray,
        offset: int = 0,
        backup: Optional[NDArray[Any]] = None,
        src_first: int = 0,
        src_last: Optional[int] = None,
        name: str = "",
    ) -> None:
        if offset < 0:
            raise ValueError(f"connection offset must be >= 0, got {offset}")
        self.source = source
        self.offset = offset
        self.backup = backup
        self.src_first = src_first
        self.src_last = len(source) - 1 if src_last is None else src_last
        self.name = name

    @property
    def shape(self) -> tuple[int, ...]:
        return self.source.shape

    @property
    def dtype(self) -> np.dtype:
        return self.source.dtype

    def _in_source_window(self, j: int) -> bool:
        return self.src_first <= j <= self.src_last

    def _read(self, i: int, rest: tuple) -> Any:
        n = len(self.source)
        if i < 0:
            i += n
        if not 0 <= i < n:
            raise IndexError(f"index {i} out of range for timeline of length {n}")
        j = i - self.offset
        if self.backup is not None and not self._in_source_window(j):
            return self.backup[(i,) + rest]
        if j < 0:
            raise IndexError(f"{self.name or 'parameter'}: offset {self.offset} reads before the first timestep")
        return self.source.data[(j,) + rest]

    def __getitem__(self, key: Any) -> Any:
        key = _translate(key)
        first, rest = (key[0], key[1:]) if isinstance(key, tuple) and key else (key, ())
        if isinstance(first, (int, np.integer)):
            return self._read(int(first), rest)
        full = self.values()
        return full[key]

    def __setitem__(self, key: Any, value: Any) -> None:
        raise SimcompRuntimeError(
            f"Parameter '{self.name}' is connected to another component and is read-only",
            ErrorCode.READ_ONLY,
        )

    def values(self) -> NDArray[Any]:
        """Materialize the view as a new array over the whole timeline."""
        src = self.source.data
        n = len(src)
        shifted = np.full(src.shape, np.nan, dtype=np.result_type(src.dtype, np.float64))
        if self.offset < n:
            shifted[self.offset:] = src[: n - self.offset]
        if self.backup is None:
            return shifted.astype(src.dtype, copy=False) if self.offset == 0 else shifted

        positions = np.arange(n) - self.offset
        mask = (positions >= self.src_first) & (positions <= self.src_last)
        mask = mask.reshape((n,) + (1,) * (src.ndim - 1))
        return np.where(mask, shifted, self.backup)

    @property
    def data(self) -> NDArray[Any]:
        return self.values()

    def __len__(self) -> int:
        return len(self.source)

    def __array__(self, dtype: Any = None, copy: Any = None) -> NDArray[Any]:
        full = self.values()
        return full if dtype is None else full.astype(dtype)

    def __repr__(self) -> str:
        extra = ", backup" if self.backup is not None else ""
        return f"ConnectedArray(shape={self.shape}, offset={self.offset}{extra})"
