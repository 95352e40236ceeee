"""Tests for compiling a model definition into an instance."""

import logging

import numpy as np
import pytest

from simcomp import (
    ComponentDef,
    CompositeComponentDef,
    ConnectedArray,
    ErrorCode,
    Model,
    ModelInstance,
    SimcompBindingError,
    TimestepArray,
    build,
)


def _codes(exc_info: pytest.ExceptionInfo) -> list[ErrorCode]:
    return [e.code for e in exc_info.value.errors]


def _regional(name: str, dim: str, kind: str) -> ComponentDef:
    comp = ComponentDef(name)
    comp.add_dimension(dim)
    if kind == "variable":
        comp.add_variable("v", dimensions=("time", dim))
    else:
        comp.add_parameter("p", dimensions=("time", dim))
    return comp


class TestBuildPreconditions:
    """Structural problems detected before binding."""

    def test_requires_time(self, source_def: ComponentDef) -> None:
        m = Model()
        m.add_comp(source_def)
        with pytest.raises(SimcompBindingError, match="'time' dimension") as exc_info:
            m.build()
        assert exc_info.value.code == ErrorCode.UNKNOWN_DIMENSION

    def test_requires_components(self, model: Model) -> None:
        with pytest.raises(SimcompBindingError, match="no components"):
            model.build()

    def test_unset_dimension(self, model: Model) -> None:
        model.add_comp(_regional("r", "regions", "variable"))
        with pytest.raises(SimcompBindingError, match="has not been set") as exc_info:
            model.build()
        assert _codes(exc_info) == [ErrorCode.UNKNOWN_DIMENSION]


class TestParameterBinding:
    """Resolving each leaf parameter to one source."""

    def test_unbound_parameter(self, model: Model, doubler_def: ComponentDef) -> None:
        model.add_comp(doubler_def)
        with pytest.raises(SimcompBindingError, match="parameter input of component doubler") as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.UNBOUND_PARAMETER
        assert exc_info.value.errors[0].component_name == "doubler"
        assert exc_info.value.errors[0].item_name == "input"

    def test_collects_every_error(self, model: Model, doubler_def: ComponentDef) -> None:
        model.add_comp(doubler_def, "a")
        model.add_comp(doubler_def, "b")
        with pytest.raises(SimcompBindingError, match="2 error") as exc_info:
            model.build()
        assert [e.component_name for e in exc_info.value.errors] == ["a", "b"]

    def test_default_is_used(self, model: Model, source_def: ComponentDef) -> None:
        model.add_comp(source_def)
        mi = model.build()
        assert mi.component("source").parameters["scale"] == 1.0

    def test_external_beats_default(self, model: Model, source_def: ComponentDef) -> None:
        model.add_comp(source_def)
        model.set_param("source", "scale", 3)
        mi = model.build()
        value = mi.component("source").parameters["scale"]
        assert value == 3.0
        assert isinstance(value, np.float64)

    def test_literal_storage_is_read_only(self, model: Model, doubler_def: ComponentDef) -> None:
        model.add_comp(doubler_def)
        model.set_param("doubler", "input", np.arange(6.0))
        mi = model.build()
        storage = mi.component("doubler").parameters["input"]
        assert isinstance(storage, TimestepArray)
        with pytest.raises(ValueError):
            storage[0] = 1.0

    def test_values_are_copied_at_build(self, model: Model, doubler_def: ComponentDef) -> None:
        values = np.arange(6.0)
        model.add_comp(doubler_def)
        model.set_param("doubler", "input", values)
        values[0] = 99.0
        mi = model.build()
        assert mi.component("doubler").parameters["input"][0] == 0.0

    def test_window_length_values_are_padded(self, model: Model, doubler_def: ComponentDef) -> None:
        model.add_comp(doubler_def, first=2020)
        model.set_param("doubler", "input", [1.0, 2.0, 3.0, 4.0])
        model.run()
        y = model["doubler", "y"]
        assert np.isnan(y[:2]).all()
        np.testing.assert_array_equal(y[2:], [2.0, 4.0, 6.0, 8.0])

    def test_shape_mismatch(self, model: Model, doubler_def: ComponentDef) -> None:
        model.add_comp(doubler_def)
        model.set_param("doubler", "input", [1.0, 2.0])
        with pytest.raises(SimcompBindingError, match="do not match") as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.SHAPE_MISMATCH

    def test_scalar_parameter_rejects_array(self, model: Model, source_def: ComponentDef) -> None:
        model.add_comp(source_def)
        model.set_param("source", "scale", [1.0, 2.0])
        with pytest.raises(SimcompBindingError, match="scalar parameter") as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.SHAPE_MISMATCH

    def test_type_conversion(self, model: Model, source_def: ComponentDef) -> None:
        model.add_comp(source_def)
        model.set_param("source", "scale", "abc")
        with pytest.raises(SimcompBindingError, match="Failed to convert") as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.TYPE_CONVERSION

    def test_named_dimensions_must_match(self, model: Model) -> None:
        model.set_dimension("regions", ["USA", "EU"])
        comp = ComponentDef("c")
        comp.add_dimension("regions")
        comp.add_parameter("p", dimensions=("regions",))
        model.add_comp(comp)
        model.set_param("c", "p", [1.0, 2.0], dimensions=("sectors",))
        with pytest.raises(SimcompBindingError, match="indexed by") as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.DIMENSION_MISMATCH

    def test_integer_number_type(self, fixed_times: range, source_def: ComponentDef) -> None:
        m = Model(number_type=int)
        m.set_dimension("time", fixed_times)
        m.add_comp(source_def)
        mi = m.build()
        assert mi.component("source").variables["x"].dtype.kind == "i"

    def test_shared_parameter_storage(self, model: Model, doubler_def: ComponentDef) -> None:
        model.add_comp(doubler_def, "a")
        model.add_comp(doubler_def, "b")
        model.set_shared_param("input", np.ones(6))
        mi = model.build()
        a = mi.component("a").parameters["input"]
        b = mi.component("b").parameters["input"]
        assert a is b


class TestConnections:
    """Checks applied to variable-to-parameter connections."""

    def test_connected_parameter_is_a_view(self, chained_model: Model) -> None:
        mi = chained_model.build()
        assert isinstance(mi.component("doubler").parameters["input"], ConnectedArray)

    def test_unit_mismatch(self, model: Model, source_def: ComponentDef) -> None:
        tons = ComponentDef("tons")
        tons.add_parameter("input", dimensions=("time",), unit="t")
        model.add_comp(source_def)
        model.add_comp(tons)
        model.connect_param("tons", "input", "source", "x")
        with pytest.raises(SimcompBindingError, match="units of source.x") as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.UNIT_MISMATCH

        model.connect_param("tons", "input", "source", "x", ignoreunits=True)
        assert isinstance(model.build(), ModelInstance)

    def test_size_mismatch(self, model: Model, source_def: ComponentDef) -> None:
        wide = ComponentDef("wide")
        wide.add_parameter("input", dimensions=("time", 2), unit="kg")
        model.add_comp(source_def)
        model.add_comp(wide)
        model.connect_param("wide", "input", "source", "x", ignoreunits=True)
        with pytest.raises(SimcompBindingError, match="has shape") as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.DIMENSION_MISMATCH

    def test_dimension_names_unless_ignoreunits(self, model: Model) -> None:
        model.set_dimension("regions", ["USA", "EU"])
        model.set_dimension("sectors", ["farm", "factory"])
        model.add_comp(_regional("producer", "regions", "variable"))
        model.add_comp(_regional("consumer", "sectors", "parameter"))
        model.connect_param("consumer", "p", "producer", "v")
        with pytest.raises(SimcompBindingError, match="is indexed by") as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.DIMENSION_MISMATCH

        model.connect_param("consumer", "p", "producer", "v", ignoreunits=True)
        model.build()

    def test_missing_backup(self, model: Model, source_def: ComponentDef, doubler_def: ComponentDef) -> None:
        model.add_comp(source_def, first=2010, last=2040)
        model.add_comp(doubler_def)
        model.connect_param("doubler", "input", "source", "x")
        with pytest.raises(SimcompBindingError, match="backup data is required") as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.MISSING_BACKUP

    def test_backup_must_cover_destination_window(
        self, model: Model, source_def: ComponentDef, doubler_def: ComponentDef
    ) -> None:
        model.add_comp(source_def, first=2010, last=2040)
        model.add_comp(doubler_def)
        model.connect_param("doubler", "input", "source", "x", backup=np.zeros(5))
        with pytest.raises(SimcompBindingError, match="backup data has shape") as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.SHAPE_MISMATCH

    def test_no_backup_needed_when_source_covers(
        self, model: Model, source_def: ComponentDef, doubler_def: ComponentDef
    ) -> None:
        model.add_comp(source_def)
        model.add_comp(doubler_def, first=2020, last=2030)
        model.connect_param("doubler", "input", "source", "x")
        model.build()

    def test_offset_requires_time(self, model: Model) -> None:
        src = ComponentDef("src")
        src.add_variable("s")
        dst = ComponentDef("dst")
        dst.add_parameter("s")
        model.add_comp(src)
        model.add_comp(dst)
        model.connect_param("dst", "s", "src", "s", offset=1)
        with pytest.raises(SimcompBindingError, match="offset requires") as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.DIMENSION_MISMATCH

    def test_out_of_order_connection_warns(
        self, model: Model, source_def: ComponentDef, doubler_def: ComponentDef, caplog: pytest.LogCaptureFixture
    ) -> None:
        model.add_comp(doubler_def)
        model.add_comp(source_def)
        model.connect_param("doubler", "input", "source", "x")
        with caplog.at_level(logging.WARNING, logger="simcomp.build"):
            model.build()
        assert "runs later in the same step" in caplog.text

    def test_in_order_connection_does_not_warn(
        self, chained_model: Model, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="simcomp.build"):
            chained_model.build()
        assert caplog.text == ""


class TestCompositeBinding:
    """Connections that name a composite child."""

    def _inner(self, *leaves: ComponentDef) -> CompositeComponentDef:
        inner = CompositeComponentDef("inner")
        for leaf in leaves:
            inner.add_comp(leaf)
        return inner

    def test_parameter_located_in_leaf(self, model: Model, doubler_def: ComponentDef) -> None:
        model.add_comp(self._inner(doubler_def))
        model.set_param("inner", "input", np.ones(6))
        model.run()
        np.testing.assert_array_equal(model["inner.doubler", "y"], np.full(6, 2.0))
        np.testing.assert_array_equal(model["inner", "y"], np.full(6, 2.0))

    def test_ambiguous_parameter(self, model: Model, source_def: ComponentDef) -> None:
        inner = CompositeComponentDef("inner")
        inner.add_comp(source_def, "s1")
        inner.add_comp(source_def, "s2")
        model.add_comp(inner)
        model.set_param("inner", "scale", 2.0)
        with pytest.raises(SimcompBindingError, match="found in more than one component") as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.AMBIGUOUS_PARAMETER

    def test_parameter_not_found(self, model: Model, source_def: ComponentDef) -> None:
        model.add_comp(self._inner(source_def))
        model.set_param("inner", "nope", 2.0)
        with pytest.raises(SimcompBindingError, match="not found in any of the components of inner") as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.NOT_FOUND

    def test_duplicate_binding_across_levels(
        self, model: Model, source_def: ComponentDef, doubler_def: ComponentDef
    ) -> None:
        inner = self._inner(source_def, doubler_def)
        inner.connect_param("doubler", "input", "source", "x")
        model.add_comp(inner)
        model.set_param("inner", "input", np.ones(6))
        with pytest.raises(SimcompBindingError, match="bound in both") as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.DUPLICATE_BINDING

    def test_connection_across_composites(
        self, model: Model, source_def: ComponentDef, doubler_def: ComponentDef
    ) -> None:
        model.add_comp(self._inner(source_def), "producers")
        model.add_comp(self._inner(doubler_def), "consumers")
        model.connect_param("consumers", "input", "producers", "x")
        model.run()
        np.testing.assert_array_equal(model["consumers", "y"], [2.0, 4.0, 6.0, 8.0, 10.0, 12.0])

    def test_child_window_outside_composite_window(self, model: Model, source_def: ComponentDef) -> None:
        inner = CompositeComponentDef("inner")
        inner.add_comp(source_def, first=2000)
        model.add_comp(inner, first=2030)
        expected = "first 2000 lies outside the enclosing window"
        with pytest.raises(SimcompBindingError, match=expected) as exc_info:
            model.build()
        assert exc_info.value.code == ErrorCode.BAD_WINDOW

    def test_child_window_inside_composite_window(self, model: Model, source_def: ComponentDef) -> None:
        inner = CompositeComponentDef("inner")
        inner.add_comp(source_def, first=2040)
        model.add_comp(inner, first=2030)
        model.run()
        x = model["inner.source", "x"]
        assert np.isnan(x[:4]).all()
        np.testing.assert_array_equal(x[4:], [1.0, 2.0])

    def test_dimension_set_on_composite(self, model: Model) -> None:
        inner = CompositeComponentDef("inner")
        inner.set_dimension("regions", ["USA", "EU", "LATAM"])
        inner.add_comp(_regional("r", "regions", "variable"))
        model.add_comp(inner)
        mi = model.build()
        assert mi.component("inner.r").variables["v"].shape == (6, 3)
        assert mi.component("inner.r").dimensions.get("regions") == [0, 1, 2]


class TestBuildResult:
    """The instance produced by build()."""

    def test_stamp_tracks_definition(self, chained_model: Model) -> None:
        mi = build(chained_model.md)
        assert not mi.is_stale
        chained_model.set_param("source", "scale", 2.0)
        assert mi.is_stale

    def test_variables_start_as_nan(self, chained_model: Model) -> None:
        mi = chained_model.build()
        assert np.isnan(mi.component("source").variables["x"].values()).all()
