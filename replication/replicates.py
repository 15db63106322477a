"""
Uncalibrated bootstrap replicate weights.

Rescaling bootstrap with Rademacher perturbations: each replicate moves every
record's weight up or down by a_i = w_i * sqrt((w_i - 1) / w_i) with equal
probability.
"""

from __future__ import annotations

from typing import Optional, Union

import numpy as np

RandomSource = Union[np.random.Generator, int, None]


class WeightPreconditionError(ValueError):
    """Raised when base weights cannot be perturbed (w < 1 or not finite)."""

    def __init__(self, positions: np.ndarray, weights: np.ndarray):
        self.positions = positions
        shown = ", ".join(
            f"{i}: {w}" for i, w in zip(positions[:10], weights[positions[:10]])
        )
        more = f" (+{len(positions) - 10} more)" if len(positions) > 10 else ""
        super().__init__(
            f"{len(positions)} base weights are below 1 or not finite "
            f"[{shown}]{more}"
        )


def as_generator(rng: RandomSource = None) -> np.random.Generator:
    """Coerce a seed or None to a numpy Generator."""
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def validate_base_weights(final_weight) -> np.ndarray:
    """
    Check that every base weight is finite and at least 1.

    Returns:
        Weights as a float array

    Raises:
        WeightPreconditionError: Listing the offending record positions
    """
    w = np.asarray(final_weight, dtype=float)
    if w.ndim != 1:
        raise ValueError(f"Base weights must be one-dimensional, got shape {w.shape}")
    bad = ~np.isfinite(w) | (w < 1)
    if bad.any():
        raise WeightPreconditionError(np.flatnonzero(bad), w)
    return w


def adjustment_factors(final_weight: np.ndarray) -> np.ndarray:
    """a_i = w_i * sqrt((w_i - 1) / w_i)."""
    return final_weight * np.sqrt((final_weight - 1) / final_weight)


def sample_rademacher(k: int, n_reps: int, rng: np.random.Generator) -> np.ndarray:
    """Draw a (k, n_reps) matrix of independent -1/+1 signs."""
    return rng.choice(np.array([-1.0, 1.0]), size=(k, n_reps), replace=True)


def generate_replicates(
    final_weight,
    n_reps: int,
    rng: RandomSource = None,
) -> np.ndarray:
    """
    Generate uncalibrated replicate weights.

    Args:
        final_weight: Base weights (k,), all >= 1
        n_reps: Number of replicates R
        rng: numpy Generator, integer seed, or None for fresh entropy

    Returns:
        Replicate weights (k, R)

    Raises:
        ValueError: If n_reps is not a positive integer
        WeightPreconditionError: If a base weight is below 1
    """
    if isinstance(n_reps, bool) or not isinstance(n_reps, (int, np.integer)) or n_reps < 1:
        raise ValueError(f"n_reps must be a positive integer, got {n_reps!r}")

    w = validate_base_weights(final_weight)
    generator = as_generator(rng)

    signs = sample_rademacher(len(w), int(n_reps), generator)
    return w[:, None] + signs * adjustment_factors(w)[:, None]
