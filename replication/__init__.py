"""
Bootstrap variance estimation for LFS PUMF records.

- Rescaling bootstrap replicate weights (Rademacher perturbations)
- Calibration of replicates to domain totals
- Totals and means with bootstrap variance and standard error
"""

from .replicates import (
    WeightPreconditionError,
    generate_replicates,
    validate_base_weights,
)
from .domains import (
    AGE_TAB_COLLAPSE,
    DOMAIN_FIELDS,
    YOUNGEST_AGE_BINS,
    build_domains,
    calculate_age_tabs,
)
from .calibrate import (
    CalibrationDivideByZeroError,
    calibrate_weights,
    check_calibration,
    compute_scaling_factors,
)
from .estimators import BootstrapEstimate, bs_grouped, bs_mean, bs_total
from .bootstrap import WEIGHT_COLUMN, generate_bootstrap_weights

__all__ = [
    # Replicates
    "WeightPreconditionError",
    "generate_replicates",
    "validate_base_weights",
    # Domains
    "AGE_TAB_COLLAPSE",
    "DOMAIN_FIELDS",
    "YOUNGEST_AGE_BINS",
    "build_domains",
    "calculate_age_tabs",
    # Calibration
    "CalibrationDivideByZeroError",
    "calibrate_weights",
    "check_calibration",
    "compute_scaling_factors",
    # Estimators
    "BootstrapEstimate",
    "bs_grouped",
    "bs_mean",
    "bs_total",
    # Entry point
    "WEIGHT_COLUMN",
    "generate_bootstrap_weights",
]
