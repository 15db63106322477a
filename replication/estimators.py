"""
Bootstrap point estimates and variances.

Variance is the mean squared deviation of the replicate estimates from the
full-sample estimate (not from the mean of the replicates).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class BootstrapEstimate:
    """Full-sample estimate with its bootstrap variance and standard error."""

    estimate: float
    variance: float
    standard_error: float

    def to_dict(self) -> dict:
        return asdict(self)


def _bs_out(est_fw: float, est_bs: np.ndarray) -> BootstrapEstimate:
    variance = float(np.mean((est_bs - est_fw) ** 2))
    return BootstrapEstimate(
        estimate=float(est_fw),
        variance=variance,
        standard_error=float(np.sqrt(variance)),
    )


def _as_inputs(bootstrap_weights, final_weights) -> tuple[np.ndarray, np.ndarray]:
    bw = np.asarray(bootstrap_weights, dtype=float)
    fw = np.asarray(final_weights, dtype=float)
    if bw.ndim == 1:
        bw = bw[:, None]
    if bw.ndim != 2 or bw.shape[0] != fw.shape[0]:
        raise ValueError(
            f"Bootstrap weights {bw.shape} do not match {fw.shape[0]} final weights"
        )
    return bw, fw


def bs_total(bootstrap_weights, final_weights) -> BootstrapEstimate:
    """
    Estimated population total of a group.

    Args:
        bootstrap_weights: Calibrated replicate weights of the group's rows (k, R)
        final_weights: Base weights of the same rows (k,)
    """
    bw, fw = _as_inputs(bootstrap_weights, final_weights)
    return _bs_out(fw.sum(), bw.sum(axis=0))


def bs_mean(x, bootstrap_weights, final_weights) -> BootstrapEstimate:
    """
    Estimated weighted mean of x over a group.

    Args:
        x: Values of the group's rows (k,)
        bootstrap_weights: Calibrated replicate weights of the same rows (k, R)
        final_weights: Base weights of the same rows (k,)

    Raises:
        ValueError: If shapes differ or the group has no weight
    """
    bw, fw = _as_inputs(bootstrap_weights, final_weights)
    x = np.asarray(x, dtype=float)
    if x.shape != fw.shape:
        raise ValueError(f"x has shape {x.shape}, expected {fw.shape}")

    total = fw.sum()
    replicate_totals = bw.sum(axis=0)
    if total == 0 or np.any(replicate_totals == 0):
        raise ValueError("Cannot estimate a mean over a group with zero total weight")

    est_fw = (fw * x).sum() / total
    est_bs = (bw * x[:, None]).sum(axis=0) / replicate_totals
    return _bs_out(est_fw, est_bs)


def bs_grouped(
    records: pd.DataFrame,
    bootstrap_weights,
    by: Union[str, Sequence[str]],
    value: Optional[str] = None,
    weight: str = "FINALWT",
) -> pd.DataFrame:
    """
    Bootstrap estimates for every group of records.

    Estimates the total of each group when value is None, else the mean of
    the value column.

    Args:
        records: Record table aligned with bootstrap_weights
        bootstrap_weights: Calibrated replicate weights (k, R)
        by: Grouping column(s)
        value: Column to average, or None for totals
        weight: Base weight column

    Returns:
        DataFrame with the group columns and est, var, se; records with a
        missing group key form their own group
    """
    bw = np.asarray(bootstrap_weights, dtype=float)
    if bw.shape[0] != len(records):
        raise ValueError(
            f"Bootstrap weights have {bw.shape[0]} rows, records have {len(records)}"
        )
    by = [by] if isinstance(by, str) else list(by)

    fw = records[weight].to_numpy(dtype=float)
    x = None if value is None else records[value].to_numpy(dtype=float)

    rows = []
    grouped = records.reset_index(drop=True).groupby(by, observed=True, dropna=False)
    for key, group in grouped:
        idx = group.index.to_numpy()
        if x is None:
            result = bs_total(bw[idx], fw[idx])
        else:
            result = bs_mean(x[idx], bw[idx], fw[idx])
        key = key if isinstance(key, tuple) else (key,)
        rows.append(
            dict(zip(by, key), est=result.estimate, var=result.variance, se=result.standard_error)
        )

    return pd.DataFrame(rows, columns=by + ["est", "var", "se"])
