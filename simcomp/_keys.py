"""Utilities for validating dimension keys and the number type policy.

Dimension keys can be specified as:
- A positive int N: keys 1..N
- A range: its values, in order
- An explicit sequence of ints, floats or strings
"""

from __future__ import annotations

from typing import Any, Sequence

import numpy as np

_KEY_TYPES = (int, float, str, np.integer, np.floating, np.str_)


def normalize_keys(value: Any) -> tuple:
    """Validate a dimension key specification and return its keys as a tuple.

    Args:
        value: An int, a range, or a sequence of unique hashable keys

    Returns:
        Tuple of keys in position order

    Raises:
        ValueError: If the specification is empty, negative or has duplicates
        TypeError: If the value or one of its keys has an unsupported type
    """
    if isinstance(value, (bool, np.bool_)):
        raise TypeError(f"dimension keys must be an int, range or sequence, got {type(value).__name__}")

    if isinstance(value, (int, np.integer)):
        if value <= 0:
            raise ValueError(f"dimension size must be positive, got {value}")
        return tuple(range(1, int(value) + 1))

    if isinstance(value, range):
        keys = tuple(value)
        if not keys:
            raise ValueError(f"dimension range cannot be empty: {value!r}")
        return keys

    if isinstance(value, (str, bytes)):
        raise TypeError("dimension keys must be a sequence of keys, not a single string")

    if isinstance(value, np.ndarray):
        value = value.tolist()

    try:
        keys = tuple(value)
    except TypeError:
        raise TypeError(f"dimension keys must be an int, range or sequence, got {type(value).__name__}")

    if not keys:
        raise ValueError("dimension keys cannot be empty")

    for key in keys:
        if isinstance(key, bool) or not isinstance(key, _KEY_TYPES):
            raise TypeError(f"unsupported dimension key type {type(key).__name__}: {key!r}")

    if len(set(keys)) != len(keys):
        seen = set()
        dupes = [k for k in keys if k in seen or seen.add(k)]
        raise ValueError(f"dimension keys must be unique, duplicated: {dupes!r}")

    return keys


def is_uniform(keys: Sequence[Any]) -> bool:
    """Return True if the keys are integers with one constant positive step.

    A single key counts as uniform (step 1).
    """
    if not keys or not all(isinstance(k, (int, np.integer)) and not isinstance(k, bool) for k in keys):
        return False
    if len(keys) == 1:
        return True
    step = keys[1] - keys[0]
    if step <= 0:
        return False
    return all(b - a == step for a, b in zip(keys, keys[1:]))


def time_step(keys: Sequence[Any]) -> int:
    """Return the step of uniform time keys (1 for a single key)."""
    return int(keys[1] - keys[0]) if len(keys) > 1 else 1


def validate_number_type(value: Any) -> type:
    """Validate a number type policy and return it as a numpy scalar type.

    Accepts the Python builtins ``float``, ``int`` and ``bool`` or any numpy
    numeric dtype specification.

    Raises:
        TypeError: If the value does not name a numeric type
    """
    try:
        dtype = np.dtype(value)
    except TypeError:
        raise TypeError(f"number_type must be a numeric type, got {value!r}")

    if dtype.kind not in "biuf":
        raise TypeError(f"number_type must be a numeric type, got {value!r}")

    return dtype.type
