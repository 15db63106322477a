"""
Domain calibration of replicate weights.

Rescales each replicate column so that, within every domain, the replicate
weights sum to the domain's base-weight total:

    c[d, r] = sum(w[i] for i in d) / sum(u[i, r] for i in d)
    u'[i, r] = u[i, r] * c[domain(i), r]
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd
from scipy import sparse


class CalibrationDivideByZeroError(ZeroDivisionError):
    """Raised when a domain's replicate weights sum to zero."""

    def __init__(self, domain, replicate: int):
        self.domain = domain
        self.replicate = replicate
        super().__init__(
            f"Replicate weights of domain {domain!r} sum to zero "
            f"in replicate {replicate}"
        )


def _as_categorical(domains: Sequence) -> pd.Categorical:
    if isinstance(domains, pd.Categorical):
        return domains.remove_unused_categories()
    if isinstance(domains, pd.Series) and isinstance(domains.dtype, pd.CategoricalDtype):
        return domains.array.remove_unused_categories()
    # a Series keeps tuple labels whole; np.asarray would make them columns
    labels = pd.Series(list(domains), dtype=object).to_numpy()
    codes, uniques = pd.factorize(labels)
    return pd.Categorical.from_codes(
        codes, categories=pd.Index(uniques, dtype=object, tupleize_cols=False)
    )


def domain_indicator(domains: pd.Categorical) -> sparse.csr_matrix:
    """Sparse (n_domains, k) matrix with a 1 where record i is in domain d."""
    codes = domains.codes
    if (codes < 0).any():
        raise ValueError("Domain labels must not be missing")
    k = len(codes)
    return sparse.csr_matrix(
        (np.ones(k), (codes, np.arange(k))),
        shape=(len(domains.categories), k),
    )


def _check_shapes(uncalibrated: np.ndarray, final_weight: np.ndarray, n_domains: int):
    if uncalibrated.ndim != 2:
        raise ValueError(
            f"Replicate weights must be a (k, R) matrix, got shape {uncalibrated.shape}"
        )
    k = uncalibrated.shape[0]
    if len(final_weight) != k or n_domains != k:
        raise ValueError(
            f"Row mismatch: {k} replicate rows, {len(final_weight)} base weights, "
            f"{n_domains} domain labels"
        )


def compute_scaling_factors(
    uncalibrated,
    final_weight,
    domains: Sequence,
) -> pd.DataFrame:
    """
    Scaling factor of every domain and replicate.

    Args:
        uncalibrated: Replicate weights (k, R)
        final_weight: Base weights (k,)
        domains: Domain label of each record (k,)

    Returns:
        DataFrame (n_domains, R) indexed by domain label

    Raises:
        CalibrationDivideByZeroError: If a domain's replicate total is zero
    """
    u = np.asarray(uncalibrated, dtype=float)
    w = np.asarray(final_weight, dtype=float)
    cats = _as_categorical(domains)
    _check_shapes(u, w, len(cats))

    indicator = domain_indicator(cats)
    target_totals = indicator @ w
    replicate_totals = np.asarray(indicator @ u)

    zero = np.argwhere(replicate_totals == 0)
    if len(zero):
        d, r = zero[0]
        raise CalibrationDivideByZeroError(cats.categories[d], int(r))

    factors = target_totals[:, None] / replicate_totals
    return pd.DataFrame(factors, index=cats.categories)


def check_calibration(
    calibrated,
    final_weight,
    domains: Sequence,
    rtol: float = 1e-6,
) -> None:
    """
    Verify that replicate totals match base-weight totals in every domain.

    Raises:
        RuntimeError: Naming the domain with the largest relative error
    """
    u = np.asarray(calibrated, dtype=float)
    w = np.asarray(final_weight, dtype=float)
    cats = _as_categorical(domains)
    _check_shapes(u, w, len(cats))

    indicator = domain_indicator(cats)
    target_totals = indicator @ w
    replicate_totals = np.asarray(indicator @ u)

    scale = np.maximum(np.abs(target_totals), np.finfo(float).tiny)[:, None]
    error = np.abs(replicate_totals - target_totals[:, None]) / scale
    if not np.all(error <= rtol):
        worst = np.where(np.isnan(error), np.inf, error)
        d, r = np.unravel_index(np.argmax(worst), worst.shape)
        raise RuntimeError(
            f"Domain {cats.categories[d]!r} not calibrated in replicate {r}: "
            f"target={target_totals[d]:.6f}, actual={replicate_totals[d, r]:.6f}"
        )


def calibrate_weights(
    uncalibrated,
    final_weight,
    domains: Sequence,
    rtol: float = 1e-6,
) -> np.ndarray:
    """
    Calibrate replicate weights to the base-weight domain totals.

    Args:
        uncalibrated: Replicate weights (k, R)
        final_weight: Base weights (k,)
        domains: Domain label of each record (k,)
        rtol: Relative tolerance of the post-calibration check

    Returns:
        Calibrated replicate weights (k, R)

    Raises:
        CalibrationDivideByZeroError: If a domain's replicate total is zero
        RuntimeError: If calibrated totals miss their targets
    """
    u = np.asarray(uncalibrated, dtype=float)
    cats = _as_categorical(domains)

    factors = compute_scaling_factors(u, final_weight, cats).to_numpy()
    calibrated = u * factors[cats.codes, :]

    check_calibration(calibrated, final_weight, cats, rtol=rtol)
    return calibrated
