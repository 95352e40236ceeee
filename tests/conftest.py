"""Pytest configuration and shared fixtures."""

import pytest

from simcomp import ComponentDef, Model


def _source_step(p, v, d, t):
    v["x"][t] = p["scale"] * t.t


def _doubler_step(p, v, d, t):
    v["y"][t] = 2 * p["input"][t]


def _growth_init(p, v, d):
    v["start"] = p["initial"]


def _growth_step(p, v, d, t):
    if t.is_first():
        v["level"][t] = p["initial"]
    else:
        v["level"][t] = v["level"][t - 1] * (1 + p["rate"])


@pytest.fixture
def fixed_times() -> range:
    """Six uniformly spaced time labels, 2000..2050."""
    return range(2000, 2051, 10)


@pytest.fixture
def source_def() -> ComponentDef:
    """Leaf producing x[t] = scale * position."""
    comp = ComponentDef("source", run_timestep=_source_step)
    comp.add_parameter("scale", default=1.0)
    comp.add_variable("x", dimensions=("time",), unit="kg")
    return comp


@pytest.fixture
def doubler_def() -> ComponentDef:
    """Leaf producing y[t] = 2 * input[t]."""
    comp = ComponentDef("doubler", run_timestep=_doubler_step)
    comp.add_parameter("input", dimensions=("time",), unit="kg")
    comp.add_variable("y", dimensions=("time",), unit="kg")
    return comp


@pytest.fixture
def growth_def() -> ComponentDef:
    """Leaf growing a level by a constant rate each step."""
    comp = ComponentDef("growth", run_timestep=_growth_step, init=_growth_init)
    comp.add_parameter("initial")
    comp.add_parameter("rate", default=0.5)
    comp.add_variable("level", dimensions=("time",))
    comp.add_variable("start")
    return comp


@pytest.fixture
def model(fixed_times: range) -> Model:
    """An empty model over 2000..2050 in steps of 10."""
    m = Model()
    m.set_dimension("time", fixed_times)
    return m


@pytest.fixture
def chained_model(model: Model, source_def: ComponentDef, doubler_def: ComponentDef) -> Model:
    """source -> doubler, connected with no offset."""
    model.add_comp(source_def)
    model.add_comp(doubler_def)
    model.connect_param("doubler", "input", "source", "x")
    return model
