"""Tests for the _keys module (dimension keys and number types)."""

import numpy as np
import pytest

from simcomp._keys import is_uniform, normalize_keys, time_step, validate_number_type


class TestNormalizeKeys:
    """Tests for normalize_keys()."""

    def test_int_means_one_to_n(self) -> None:
        assert normalize_keys(3) == (1, 2, 3)

    def test_range(self) -> None:
        assert normalize_keys(range(2000, 2051, 10)) == (2000, 2010, 2020, 2030, 2040, 2050)

    def test_sequence_of_strings(self) -> None:
        assert normalize_keys(["USA", "EU", "LATAM"]) == ("USA", "EU", "LATAM")

    def test_numpy_array(self) -> None:
        keys = normalize_keys(np.array([1, 2, 5]))
        assert keys == (1, 2, 5)
        assert all(type(k) is int for k in keys)

    def test_rejects_non_positive_int(self) -> None:
        with pytest.raises(ValueError, match="must be positive"):
            normalize_keys(0)
        with pytest.raises(ValueError, match="must be positive"):
            normalize_keys(-2)

    def test_rejects_empty(self) -> None:
        with pytest.raises(ValueError, match="cannot be empty"):
            normalize_keys([])
        with pytest.raises(ValueError, match="cannot be empty"):
            normalize_keys(range(5, 5))

    def test_rejects_duplicates(self) -> None:
        with pytest.raises(ValueError, match="must be unique"):
            normalize_keys(["a", "b", "a"])

    def test_rejects_bare_string_and_bool(self) -> None:
        with pytest.raises(TypeError):
            normalize_keys("USA")
        with pytest.raises(TypeError):
            normalize_keys(True)

    def test_rejects_unhashable_key_types(self) -> None:
        with pytest.raises(TypeError, match="unsupported dimension key type"):
            normalize_keys([(1, 2), (3, 4)])


class TestUniformity:
    """Tests for is_uniform() and time_step()."""

    def test_uniform_range(self) -> None:
        keys = tuple(range(2000, 2051, 10))
        assert is_uniform(keys)
        assert time_step(keys) == 10

    def test_irregular_spacing(self) -> None:
        assert not is_uniform((2000, 2010, 2025, 2050))

    def test_single_key_is_uniform(self) -> None:
        assert is_uniform((2000,))
        assert time_step((2000,)) == 1

    def test_floats_are_not_uniform(self) -> None:
        assert not is_uniform((0.0, 0.5, 1.0))

    def test_strings_are_not_uniform(self) -> None:
        assert not is_uniform(("a", "b"))


class TestValidateNumberType:
    """Tests for validate_number_type()."""

    def test_builtins(self) -> None:
        assert validate_number_type(float) is np.float64
        assert validate_number_type(int) is np.dtype(int).type

    def test_numpy_types(self) -> None:
        assert validate_number_type(np.float32) is np.float32
        assert validate_number_type("int32") is np.int32

    def test_rejects_non_numeric(self) -> None:
        with pytest.raises(TypeError, match="must be a numeric type"):
            validate_number_type(str)
        with pytest.raises(TypeError, match="must be a numeric type"):
            validate_number_type(object)
