#!/usr/bin/env python3
"""Marginal analysis and parameter resolution for a simple damages model."""

import numpy as np

import simcomp
from simcomp import ComponentDef, MarginalModel, Model


def climate_step(p, v, d, t):
    if t.is_first():
        v["temperature"][t] = p["t0"]
    else:
        v["temperature"][t] = v["temperature"][t - 1] + p["sensitivity"] * p["emissions"][t - 1]


def damages_step(p, v, d, t):
    v["damages"][t] = p["coefficient"] * p["temperature"][t] ** 2


def construct_model() -> Model:
    climate = ComponentDef("climate", run_timestep=climate_step)
    climate.add_parameter("t0", default=1.1, unit="degC")
    climate.add_parameter("sensitivity", default=0.0005, unit="degC/GtCO2")
    climate.add_parameter("emissions", dimensions=("time",), unit="GtCO2")
    climate.add_variable("temperature", dimensions=("time",), unit="degC")

    damages = ComponentDef("damages", run_timestep=damages_step)
    damages.add_parameter("coefficient", default=0.0023)
    damages.add_parameter("temperature", dimensions=("time",), unit="degC")
    damages.add_variable("damages", dimensions=("time",))

    m = Model()
    m.set_dimension("time", range(2020, 2101, 10))
    m.add_comp(climate)
    m.add_comp(damages)
    m.add_external_param("emissions", np.full(9, 400.0))
    m.connect_external("climate", "emissions", "emissions")
    m.connect_param("damages", "temperature", "climate", "temperature")
    return m


if __name__ == "__main__":
    base = construct_model()

    pulse = 1.0
    mm = MarginalModel(base, delta=pulse)
    emissions = np.full(9, 400.0)
    emissions[1] += pulse
    mm.marginal.update_param("emissions", emissions)
    mm.run()

    print("Marginal damages per GtCO2 pulse in 2030:")
    for label, value in zip(base.time_labels(), mm["damages", "damages"]):
        print(f"  {label}: {value:.3e}")

    (target,) = simcomp.resolve_parameter([base], "sensitivity")
    print(f"\n'sensitivity' is stored in component '{target.component}'")
    simcomp.apply_value(base, target, 0.0008)
    base.run()
    print(f"Temperature in 2100 with higher sensitivity: {base['climate', 'temperature', 9]:.2f} degC")
