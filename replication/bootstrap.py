"""
LFS bootstrap weights.

Generates R rescaling-bootstrap replicates of the final weight and calibrates
them to the year x month x province x sex x age-group domain totals.

Example:
    >>> weights = generate_bootstrap_weights(encoded, n_reps=1000, rng=42)
    >>> employed = (encoded["LFSSTAT"].str.startswith("Employed")).to_numpy()
    >>> bs_total(weights[employed], encoded["FINALWT"][employed])
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from .calibrate import calibrate_weights
from .domains import AGE_FIELDS, DOMAIN_FIELDS, build_domains
from .replicates import RandomSource, generate_replicates

WEIGHT_COLUMN = "FINALWT"


def generate_bootstrap_weights(
    records: pd.DataFrame,
    n_reps: int,
    rng: RandomSource = None,
    weight: str = WEIGHT_COLUMN,
) -> np.ndarray:
    """
    Calibrated bootstrap replicate weights for a labeled record table.

    Args:
        records: Encoded record table with the weight and domain fields
        n_reps: Number of replicates R
        rng: numpy Generator, integer seed, or None for fresh entropy
        weight: Base weight column

    Returns:
        Calibrated replicate weights (len(records), R), rows in record order

    Raises:
        KeyError: If required columns are missing
        WeightPreconditionError: If a base weight is below 1
        CalibrationDivideByZeroError: If a domain's replicate total is zero
    """
    required = [weight, *DOMAIN_FIELDS, *AGE_FIELDS]
    missing = [c for c in required if c not in records.columns]
    if missing:
        raise KeyError(f"Records are missing required columns: {missing}")

    final_weight = records[weight].to_numpy(dtype=float)
    uncalibrated = generate_replicates(final_weight, n_reps, rng=rng)
    domains = build_domains(records)

    return calibrate_weights(uncalibrated, final_weight, domains)
