"""Timesteps and clocks for stepping through a model timeline.

Two timestep flavors share one interface:

- FixedTimestep: uniformly spaced labels (first, step, last)
- VariableTimestep: an explicit ordered tuple of labels

Both allow stepping one position past the end. The label there is
``last + step`` for fixed timesteps and ``times[-1] + 1`` for variable ones.
"""

from __future__ import annotations

from typing import Any, Sequence, Union


class _Timestep:
    """Shared behavior for fixed and variable timesteps.

    ``t`` is the 1-based position within the timestep's own timeline.
    ``origin`` is the 0-based storage index of position 1 on the model
    timeline, so ``origin + t - 1`` addresses any time-dimensioned array.
    """

    __slots__ = ("t", "origin")

    def __init__(self, t: int = 1, origin: int = 0) -> None:
        if t < 1:
            raise ValueError(f"timestep position must be >= 1, got {t}")
        self.t = t
        self.origin = origin

    @property
    def index(self) -> int:
        """0-based storage index on the model timeline."""
        return self.origin + self.t - 1

    @property
    def time(self) -> Any:
        return self.gettime()

    def gettime(self) -> Any:
        raise NotImplementedError

    def is_first(self) -> bool:
        return self.t == 1

    def is_last(self) -> bool:
        raise NotImplementedError

    def is_past_end(self) -> bool:
        raise NotImplementedError

    def _at(self, t: int) -> "_Timestep":
        raise NotImplementedError

    def next(self) -> "_Timestep":
        return self._at(self.t + 1)

    def __add__(self, n: int) -> "_Timestep":
        if not isinstance(n, int):
            return NotImplemented
        if n < 0:
            return self - (-n)
        return self._at(self.t + n)

    def __sub__(self, n: int) -> "_Timestep":
        if not isinstance(n, int):
            return NotImplemented
        if self.t - n < 1:
            raise ValueError(f"Cannot step back {n} from position {self.t}; it precedes the first timestep")
        return self._at(self.t - n)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, _Timestep):
            return self.index == other.index and self.gettime() == other.gettime()
        if isinstance(other, (int, float)) and not isinstance(other, bool):
            return self.gettime() == other
        return NotImplemented

    def __hash__(self) -> int:
        # equal timesteps share a label; a timestep also equals its label
        return hash(self.gettime())

    def __lt__(self, other: object) -> bool:
        if isinstance(other, _Timestep):
            return self.index < other.index
        if isinstance(other, (int, float)):
            return self.gettime() < other
        return NotImplemented

    def __le__(self, other: object) -> bool:
        if isinstance(other, _Timestep):
            return self.index <= other.index
        if isinstance(other, (int, float)):
            return self.gettime() <= other
        return NotImplemented

    def __gt__(self, other: object) -> bool:
        if isinstance(other, _Timestep):
            return self.index > other.index
        if isinstance(other, (int, float)):
            return self.gettime() > other
        return NotImplemented

    def __ge__(self, other: object) -> bool:
        if isinstance(other, _Timestep):
            return self.index >= other.index
        if isinstance(other, (int, float)):
            return self.gettime() >= other
        return NotImplemented


class FixedTimestep(_Timestep):
    """A position on a uniformly spaced timeline.

    Example:
        >>> ts = FixedTimestep(2000, 10, 2050)
        >>> (ts + 5).time, (ts + 6).time
        (2050, 2060)
    """

    __slots__ = ("first", "step", "last")

    def __init__(self, first: int, step: int, last: int, t: int = 1, origin: int = 0) -> None:
        if step <= 0:
            raise ValueError(f"timestep step must be positive, got {step}")
        if last < first:
            raise ValueError(f"timestep last ({last}) precedes first ({first})")
        super().__init__(t, origin)
        self.first = first
        self.step = step
        self.last = last

    @property
    def length(self) -> int:
        return (self.last - self.first) // self.step + 1

    def gettime(self) -> int:
        if self.t > self.length:
            return self.last + self.step
        return self.first + self.step * (self.t - 1)

    def is_last(self) -> bool:
        return self.t == self.length

    def is_past_end(self) -> bool:
        return self.t > self.length

    def _at(self, t: int) -> "FixedTimestep":
        return FixedTimestep(self.first, self.step, self.last, t, self.origin)

    def __repr__(self) -> str:
        return f"FixedTimestep({self.first}, {self.step}, {self.last}, t={self.t})"


class VariableTimestep(_Timestep):
    """A position on a timeline given by explicit labels.

    Example:
        >>> ts = VariableTimestep((2000, 2010, 2025, 2050), t=4)
        >>> ts.time, ts.next().time
        (2050, 2051)
    """

    __slots__ = ("times",)

    def __init__(self, times: Sequence[Any], t: int = 1, origin: int = 0) -> None:
        if not times:
            raise ValueError("variable timestep requires at least one time label")
        super().__init__(t, origin)
        self.times = tuple(times)

    def gettime(self) -> Any:
        if self.t > len(self.times):
            return self.times[-1] + 1
        return self.times[self.t - 1]

    def is_last(self) -> bool:
        return self.t == len(self.times)

    def is_past_end(self) -> bool:
        return self.t > len(self.times)

    def _at(self, t: int) -> "VariableTimestep":
        return VariableTimestep(self.times, t, self.origin)

    def __repr__(self) -> str:
        return f"VariableTimestep({self.times!r}, t={self.t})"


Timestep = Union[FixedTimestep, VariableTimestep]


def gettime(ts: Timestep) -> Any:
    """Return the time label of a timestep."""
    return ts.gettime()


def is_first(ts: Timestep) -> bool:
    return ts.is_first()


def is_last(ts: Timestep) -> bool:
    return ts.is_last()


def is_time(ts: Timestep, label: Any) -> bool:
    """Check whether a timestep is at the given time label."""
    return ts.gettime() == label


class Clock:
    """A mutable cursor over one timestep timeline."""

    __slots__ = ("ts",)

    def __init__(self, ts: Timestep) -> None:
        self.ts = ts

    @classmethod
    def fixed(cls, first: int, step: int, last: int, origin: int = 0) -> "Clock":
        return cls(FixedTimestep(first, step, last, 1, origin))

    @classmethod
    def variable(cls, times: Sequence[Any], origin: int = 0) -> "Clock":
        return cls(VariableTimestep(times, 1, origin))

    @property
    def timestep(self) -> Timestep:
        return self.ts

    @property
    def time(self) -> Any:
        return self.ts.gettime()

    @property
    def finished(self) -> bool:
        return self.ts.is_past_end()

    def advance(self) -> None:
        self.ts = self.ts.next()

    def reset(self) -> None:
        self.ts = self.ts._at(1)

    def __repr__(self) -> str:
        return f"<Clock at {self.ts!r}>"
