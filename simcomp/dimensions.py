"""Named index spaces mapping domain keys to dense positions."""

from __future__ import annotations

from typing import Any, Iterator

from ._keys import normalize_keys


class Dimension:
    """
    An ordered index space.

    Keys map to 1-based positions in the order they were given. Positions
    never change for the lifetime of the dimension; storage uses the 0-based
    index ``position - 1``.

    Example:
        >>> regions = Dimension(["USA", "EU", "LATAM"])
        >>> regions.position("EU")
        2
        >>> regions.key(3)
        'LATAM'
    """

    __slots__ = ("_keys", "_positions")

    def __init__(self, keys: Any) -> None:
        self._keys = normalize_keys(keys)
        self._positions = {key: pos for pos, key in enumerate(self._keys, start=1)}

    def position(self, key: Any) -> int:
        """
        Get the position of a key.

        Raises:
            KeyError: If the key is not part of this dimension
        """
        try:
            return self._positions[key]
        except KeyError:
            raise KeyError(f"key {key!r} not found in dimension") from None

    def key(self, position: int) -> Any:
        """Get the key at a 1-based position."""
        if not 1 <= position <= len(self._keys):
            raise IndexError(f"position {position} out of range 1..{len(self._keys)}")
        return self._keys[position - 1]

    def keys(self) -> tuple:
        return self._keys

    def indices(self) -> list[int]:
        """0-based storage indices, in position order."""
        return list(range(len(self._keys)))

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._keys)

    def __contains__(self, key: Any) -> bool:
        return key in self._positions

    def __getitem__(self, key: Any) -> int:
        return self.position(key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dimension):
            return NotImplemented
        return self._keys == other._keys

    def __hash__(self) -> int:
        return hash(self._keys)

    def __repr__(self) -> str:
        if len(self._keys) > 6:
            shown = ", ".join(repr(k) for k in self._keys[:3])
            return f"Dimension([{shown}, ..., {self._keys[-1]!r}], n={len(self._keys)})"
        return f"Dimension({list(self._keys)!r})"
