#!/usr/bin/env python3
"""Basic usage examples for the simcomp package."""

import numpy as np

import simcomp
from simcomp import ComponentDef, Model


def build_and_run_model():
    """Example: Define two components, connect them and run."""
    print("=" * 60)
    print("Example 1: Define, Connect and Run")
    print("=" * 60)

    def population_step(p, v, d, t):
        if t.is_first():
            v["pop"][t] = p["pop0"]
        else:
            v["pop"][t] = v["pop"][t - 1] * (1 + p["growth"])

    def output_step(p, v, d, t):
        v["gdp"][t] = p["productivity"] * p["labor"][t]

    population = ComponentDef("population", run_timestep=population_step)
    population.add_parameter("pop0", unit="million")
    population.add_parameter("growth", default=0.01)
    population.add_variable("pop", dimensions=("time",), unit="million")

    output = ComponentDef("output", run_timestep=output_step)
    output.add_parameter("productivity", unit="$k/person")
    output.add_parameter("labor", dimensions=("time",), unit="million")
    output.add_variable("gdp", dimensions=("time",), unit="$B")

    m = Model()
    m.set_dimension("time", range(2020, 2071, 10))
    m.add_comp(population)
    m.add_comp(output)
    m.set_param("population", "pop0", 330.0)
    m.set_param("output", "productivity", 65.0)
    m.connect_param("output", "labor", "population", "pop")
    m.run()

    for label, pop, gdp in zip(m.time_labels(), m["population", "pop"], m["output", "gdp"]):
        print(f"  {label}: population {pop:8.1f}  gdp {gdp:10.1f}")

    return m


def use_decorator():
    """Example: Declare a component with @defcomp."""
    print("\n" + "=" * 60)
    print("Example 2: Declarative Components")
    print("=" * 60)

    @simcomp.defcomp
    class savings:
        rate = simcomp.Parameter(default=0.2)
        income = simcomp.Parameter(index=["time"])
        stock = simcomp.Variable(index=["time"])

        def run_timestep(p, v, d, t):
            previous = 0.0 if t.is_first() else v["stock"][t - 1]
            v["stock"][t] = previous + p["rate"] * p["income"][t]

    m = Model()
    m.set_dimension("time", [2020, 2021, 2023, 2030])
    ref = m.add_comp(savings)
    ref["income"] = np.array([100.0, 110.0, 120.0, 130.0])
    m.run()

    print(f"Savings stock by {m.time_labels()[-1]}: {ref['stock'].value[-1]:.1f}")
    return m


def inspect_model(m: Model):
    """Example: Inspect structure and errors."""
    print("\n" + "=" * 60)
    print("Example 3: Introspection and Build Errors")
    print("=" * 60)

    for info in m.describe():
        dims = ", ".join(info.dimensions) or "scalar"
        print(f"  {info.label:<28} {info.kind:<10} [{dims}] {info.unit}")

    broken = m.copy()
    broken.disconnect_param("output", "labor")
    try:
        broken.build()
    except simcomp.SimcompBindingError as err:
        print("\nBuilding a model with an unbound parameter fails:")
        for detail in err.errors:
            print(f"  {detail}")


if __name__ == "__main__":
    model = build_and_run_model()
    use_decorator()
    inspect_model(model)
