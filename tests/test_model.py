"""Tests for the Model class."""

import numpy as np
import pytest

from simcomp import (
    ComponentDef,
    ComponentReference,
    Dimension,
    ErrorCode,
    ItemInfo,
    Model,
    SimcompDefinitionError,
    SimcompRuntimeError,
    VariableReference,
)


class TestModelDefinition:
    """Editing a model through the Model API."""

    def test_set_dimension_returns_dimension(self, model: Model) -> None:
        regions = model.set_dimension("regions", ["USA", "EU", "LATAM"])
        assert isinstance(regions, Dimension)
        assert regions.position("EU") == 2

    def test_add_comp_returns_reference(self, model: Model, source_def: ComponentDef) -> None:
        ref = model.add_comp(source_def, "src")
        assert isinstance(ref, ComponentReference)
        assert ref.comp_name == "src"
        assert model.components == ["src"]

    def test_reference_sugar(self, model: Model, source_def: ComponentDef, doubler_def: ComponentDef) -> None:
        source = model.add_comp(source_def)
        doubler = model.add_comp(doubler_def)
        source["scale"] = 10.0
        doubler["input"] = source["x"]
        assert isinstance(source["x"], VariableReference)
        model.run()
        np.testing.assert_array_equal(doubler["y"].value, 20.0 * np.arange(1, 7))

    def test_delete_comp(self, chained_model: Model) -> None:
        chained_model.delete_comp("source")
        assert chained_model.components == ["doubler"]
        assert chained_model.connections() == []

    def test_replace_comp(self, chained_model: Model) -> None:
        def step(p, v, d, t):
            v["x"][t] = 5.0

        constant = ComponentDef("constant", run_timestep=step)
        constant.add_variable("x", dimensions=("time",), unit="kg")
        chained_model.replace_comp("source", constant)
        chained_model.run()
        np.testing.assert_array_equal(chained_model["doubler", "y"], np.full(6, 10.0))

    def test_connections(self, chained_model: Model) -> None:
        chained_model.set_param("source", "scale", 2.0)
        conns = chained_model.connections()
        assert [type(c).__name__ for c in conns] == ["InternalParameterConnection", "ExternalParameterConnection"]


class TestSharedParameters:
    """Parameters bound by name across components."""

    def test_set_shared_param(self, model: Model, doubler_def: ComponentDef) -> None:
        model.add_comp(doubler_def, "a")
        model.add_comp(doubler_def, "b")
        model.set_shared_param("input", np.ones(6))
        model.run()
        np.testing.assert_array_equal(model["a", "y"], model["b", "y"])

    def test_update_param_reaches_every_component(self, model: Model, doubler_def: ComponentDef) -> None:
        model.add_comp(doubler_def, "a")
        model.add_comp(doubler_def, "b")
        model.set_shared_param("input", np.ones(6))
        model.run()
        model.update_param("input", np.full(6, 3.0))
        model.run()
        np.testing.assert_array_equal(model["a", "y"], np.full(6, 6.0))
        np.testing.assert_array_equal(model["b", "y"], np.full(6, 6.0))

    def test_shared_param_skips_bound_components(self, model: Model, doubler_def: ComponentDef) -> None:
        model.add_comp(doubler_def, "a")
        model.add_comp(doubler_def, "b")
        model.set_param("a", "input", np.zeros(6))
        model.set_shared_param("input", np.ones(6))
        model.run()
        np.testing.assert_array_equal(model["a", "y"], np.zeros(6))
        np.testing.assert_array_equal(model["b", "y"], np.full(6, 2.0))

    def test_update_param_checks_shape(self, model: Model, source_def: ComponentDef) -> None:
        model.add_comp(source_def)
        model.set_param("source", "scale", 1.0)
        with pytest.raises(ValueError, match="kind changed"):
            model.update_param("source.scale", [1.0, 2.0])

    def test_update_params_is_all_or_nothing(self, model: Model, source_def: ComponentDef) -> None:
        model.add_comp(source_def)
        model.set_param("source", "scale", 1.0)
        with pytest.raises(KeyError, match="missing"):
            model.update_params({"source.scale": 5.0, "missing": 1.0})
        assert model.md.external_params["source.scale"].value == 1.0
        model.update_params({"source.scale": 5.0})
        model.run()
        assert model["source", "x", 1] == 5.0

    def test_set_leftover_params(self, model: Model, doubler_def: ComponentDef, growth_def: ComponentDef) -> None:
        model.add_comp(growth_def)
        model.add_comp(doubler_def)
        model.set_leftover_params({"initial": 2.0, "input": np.arange(6.0)})
        assert "rate" not in model.md.external_params
        model.run()
        assert model["growth", "level", 1] == 2.0
        np.testing.assert_array_equal(model["doubler", "y"], 2 * np.arange(6.0))

    def test_set_leftover_params_requires_every_value(self, model: Model, growth_def: ComponentDef) -> None:
        model.add_comp(growth_def)
        with pytest.raises(KeyError, match="initial"):
            model.set_leftover_params({})


class TestModelLifecycle:
    """Building, running and copying."""

    def test_results_before_run(self, chained_model: Model) -> None:
        with pytest.raises(SimcompRuntimeError, match="has not been run") as exc_info:
            chained_model["source", "x"]
        assert exc_info.value.code == ErrorCode.NOT_RUN

        chained_model.build()
        with pytest.raises(SimcompRuntimeError, match="has not been run"):
            chained_model["source", "x"]

    def test_is_built(self, chained_model: Model) -> None:
        assert not chained_model.is_built
        chained_model.build()
        assert chained_model.is_built
        chained_model.set_param("source", "scale", 2.0)
        assert not chained_model.is_built

    def test_run_rebuilds_after_changes(self, chained_model: Model) -> None:
        chained_model.run()
        chained_model.set_param("source", "scale", 2.0)
        chained_model.run()
        np.testing.assert_array_equal(chained_model["source", "x"], 2.0 * np.arange(1, 7))

    def test_copy_is_independent(self, chained_model: Model) -> None:
        chained_model.run()
        other = chained_model.copy()
        assert not other.is_built
        other.set_param("source", "scale", 3.0)
        other.run()
        assert other["source", "x", 1] == 3.0
        assert chained_model["source", "x", 1] == 1.0
        assert chained_model.is_built

    def test_copy_of_named_model(self, fixed_times: range, source_def: ComponentDef) -> None:
        m = Model(name="base")
        m.set_dimension("time", fixed_times)
        m.add_comp(source_def)
        assert m.copy().name == "base"


class TestResultAccess:
    """Reading stored values."""

    def test_position_access(self, chained_model: Model) -> None:
        chained_model.run()
        assert chained_model["source", "x", 3] == 3.0
        assert chained_model["doubler", "y", 6] == 12.0

    def test_position_out_of_range(self, chained_model: Model) -> None:
        chained_model.run()
        with pytest.raises(IndexError, match="out of range"):
            chained_model["source", "x", 7]
        with pytest.raises(IndexError):
            chained_model["source", "x", 0]

    def test_scalar_has_no_positions(self, chained_model: Model) -> None:
        chained_model.run()
        assert chained_model["source", "scale"] == 1.0
        with pytest.raises(KeyError, match="is scalar"):
            chained_model["source", "scale", 1]

    def test_unknown_names(self, chained_model: Model) -> None:
        chained_model.run()
        with pytest.raises(KeyError, match="not found in model"):
            chained_model["ghost", "x"]
        with pytest.raises(KeyError, match="no variable or parameter named 'nope'"):
            chained_model["source", "nope"]

    def test_connected_parameter_values(self, chained_model: Model) -> None:
        chained_model.run()
        np.testing.assert_array_equal(chained_model["doubler", "input"], chained_model["source", "x"])


class TestIntrospection:
    """Structural queries."""

    def test_dimensions(self, chained_model: Model) -> None:
        assert chained_model.dimensions("source", "x") == ("time",)
        assert chained_model.dimensions("source", "scale") == ()
        with pytest.raises(KeyError):
            chained_model.dimensions("source", "nope")

    def test_names(self, chained_model: Model) -> None:
        assert chained_model.variable_names("source") == ["x"]
        assert chained_model.parameter_names("doubler") == ["input"]

    def test_describe_is_sorted_by_label(self, chained_model: Model) -> None:
        items = chained_model.describe()
        assert [item.label for item in items] == [
            "doubler : input",
            "doubler : y",
            "source : scale",
            "source : x",
        ]
        assert items[0] == ItemInfo("doubler", "input", "parameter", ("time",), "kg")

    def test_time_labels(self, chained_model: Model) -> None:
        assert chained_model.time_labels() == (2000, 2010, 2020, 2030, 2040, 2050)
        with pytest.raises(SimcompDefinitionError, match="has not been set"):
            Model().time_labels()

    def test_repr(self, chained_model: Model) -> None:
        assert repr(chained_model) == "<Model with 2 component(s), unbuilt>"
        chained_model.run()
        assert repr(chained_model) == "<Model with 2 component(s), ran>"
