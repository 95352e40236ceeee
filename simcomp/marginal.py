"""Paired base/perturbed models for marginal analysis."""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from .model import Model

logger = logging.getLogger(__name__)


class MarginalModel:
    """
    A base model and an independent copy of it, read as a difference.

    Perturb ``marginal`` (for example with ``update_param``), run both, and
    index the pair like a model to get ``(marginal - base) / delta``.

    Example:
        >>> mm = MarginalModel(m, delta=1e9)
        >>> mm.marginal.update_param("emissions", emissions + 1e9)
        >>> mm.run()
        >>> mm["climate", "temperature"]
    """

    def __init__(self, base: Model, delta: float = 1.0) -> None:
        if delta == 0:
            raise ValueError("delta must be non-zero")
        self.base = base
        self.marginal = base.copy()
        self.delta = delta

    def build(self) -> None:
        self.base.build()
        self.marginal.build()

    def run(self) -> None:
        """Run the base model and then the marginal model."""
        self.base.run()
        self.marginal.run()
        logger.info("Ran marginal model pair (delta=%s)", self.delta)

    def __getitem__(self, key: tuple) -> Any:
        """
        Scaled difference of a result between the two models.

        Raises:
            ValueError: If the two results have different shapes
        """
        base = np.asarray(self.base[key])
        marginal = np.asarray(self.marginal[key])
        if base.shape != marginal.shape:
            raise ValueError(
                f"Cannot compare {key}: base has shape {base.shape}, marginal has shape {marginal.shape}"
            )
        return (marginal - base) / self.delta

    def __repr__(self) -> str:
        return f"<MarginalModel delta={self.delta} base={self.base!r}>"
