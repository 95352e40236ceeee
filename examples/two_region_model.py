#!/usr/bin/env python3
"""A two-region economy and emissions model with regional dimensions."""

import numpy as np

from simcomp import Index, Model, Parameter, Variable, defcomp


@defcomp
class grosseconomy:
    regions = Index()

    l = Parameter(index=["time", "regions"], unit="million", description="Labor")
    tfp = Parameter(index=["time", "regions"], description="Total factor productivity")
    s = Parameter(index=["time", "regions"], description="Savings rate")
    depk = Parameter(index=["regions"], description="Depreciation rate on capital")
    k0 = Parameter(index=["regions"], unit="$B", description="Initial capital")
    share = Parameter(description="Capital share")

    K = Variable(index=["time", "regions"], unit="$B", description="Capital")
    YGROSS = Variable(index=["time", "regions"], unit="$B", description="Gross output")

    def run_timestep(p, v, d, t):
        for r in d.get("regions"):
            if t.is_first():
                v["K"][t, r] = p["k0"][r]
            else:
                v["K"][t, r] = (1 - p["depk"][r]) ** 5 * v["K"][t - 1, r] + v["YGROSS"][t - 1, r] * p["s"][t - 1, r] * 5
            v["YGROSS"][t, r] = p["tfp"][t, r] * v["K"][t, r] ** p["share"] * p["l"][t, r] ** (1 - p["share"])


@defcomp
class emissions:
    regions = Index()

    sigma = Parameter(index=["time", "regions"], unit="t/$k", description="Emissions intensity")
    YGROSS = Parameter(index=["time", "regions"], unit="$B", description="Gross output")

    E = Variable(index=["time", "regions"], unit="Mt", description="Regional emissions")
    E_Global = Variable(index=["time"], unit="Mt", description="Global emissions")

    def run_timestep(p, v, d, t):
        for r in d.get("regions"):
            v["E"][t, r] = p["YGROSS"][t, r] * p["sigma"][t, r]
        v["E_Global"][t] = sum(v["E"][t, r] for r in d.get("regions"))


def construct_model() -> Model:
    m = Model(name="two_region")
    m.set_dimension("time", range(2015, 2111, 5))
    m.set_dimension("regions", ["Region1", "Region2"])
    n = len(m.time_labels())

    m.add_comp(grosseconomy)
    m.add_comp(emissions)

    m.set_param("grosseconomy", "l", np.column_stack([np.linspace(5000, 8000, n), np.linspace(3000, 4500, n)]))
    m.set_param("grosseconomy", "tfp", np.column_stack([np.linspace(3.9, 9.0, n), np.linspace(2.7, 7.0, n)]))
    m.set_param("grosseconomy", "s", np.full((n, 2), 0.22))
    m.set_param("grosseconomy", "depk", [0.1, 0.1])
    m.set_param("grosseconomy", "k0", [500.0, 300.0])
    m.set_param("grosseconomy", "share", 0.3)

    m.set_param("emissions", "sigma", np.column_stack([np.linspace(0.5, 0.1, n), np.linspace(0.6, 0.15, n)]))
    m.connect_param("emissions", "YGROSS", "grosseconomy", "YGROSS")
    return m


if __name__ == "__main__":
    model = construct_model()
    model.run()

    labels = model.time_labels()
    global_emissions = model["emissions", "E_Global"]
    print("Global emissions (Mt):")
    for label, value in list(zip(labels, global_emissions))[::4]:
        print(f"  {label}: {value:12.1f}")

    peak = int(np.argmax(global_emissions))
    print(f"Emissions peak in {labels[peak]}")
