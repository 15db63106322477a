"""
Calibration domains for the LFS bootstrap.

Domains cross survey year, month, province, sex and an age grouping that
uses the finer AGE_6 bins for the youngest respondents.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd

# AGE_6 bins used instead of AGE_12 for the youngest respondents
YOUNGEST_AGE_BINS = ("15 to 16 years", "17 to 19 years")

# AGE_12 bins merged into ten-year groups
AGE_TAB_COLLAPSE = {
    "35 to 44 years": ("35 to 39 years", "40 to 44 years"),
    "45 to 54 years": ("45 to 49 years", "50 to 54 years"),
}

DOMAIN_FIELDS = ("SURVYEAR", "SURVMNTH", "PROV", "SEX")
AGE_FIELDS = ("AGE_6", "AGE_12")

DOMAIN_SEPARATOR = "."


def calculate_age_tabs(age_6: pd.Series, age_12: pd.Series) -> pd.Series:
    """
    Age group used for calibration.

    AGE_6 when it is one of YOUNGEST_AGE_BINS, AGE_12 otherwise, with the
    AGE_TAB_COLLAPSE pairs merged.
    """
    age_6 = pd.Series(age_6).astype(object)
    age_12 = pd.Series(np.asarray(age_12, dtype=object), index=age_6.index)

    base = age_12.where(~age_6.isin(YOUNGEST_AGE_BINS), age_6)

    collapse = {
        old: new for new, olds in AGE_TAB_COLLAPSE.items() for old in olds
    }
    return base.map(lambda v: collapse.get(v, v)).rename("AGE_TAB")


def _field_text(values: pd.Series) -> pd.Series:
    return values.astype(object).where(values.notna(), "NA").astype(str)


def _domain_names(labels: pd.Series, codes: np.ndarray) -> np.ndarray:
    names = labels.groupby(codes, sort=True).first()
    # distinct domains can render to the same text, e.g. "A.B"+"C" and "A"+"B.C"
    shared = names.duplicated(keep=False)
    suffix = " (" + names.index.astype(str).to_numpy(dtype=object) + ")"
    names = names.where(~shared, names + suffix)
    return names.to_numpy(dtype=object)


def build_domains(
    records: pd.DataFrame,
    fields: Sequence[str] = DOMAIN_FIELDS,
) -> pd.Categorical:
    """
    Domain of each record.

    Records share a domain when their field values and age group are equal,
    with missing values forming their own domain. Categories are display
    names joining the values with "." ("NA" for missing); when two domains
    render to the same name, the domain number is appended.

    Raises:
        KeyError: If records lack a domain or age field
    """
    required = list(fields) + list(AGE_FIELDS)
    missing = [c for c in required if c not in records.columns]
    if missing:
        raise KeyError(f"Records are missing domain fields: {missing}")

    age_tabs = calculate_age_tabs(records["AGE_6"], records["AGE_12"])
    columns = [records[f] for f in fields] + [age_tabs]

    keys = pd.DataFrame({
        i: np.asarray(column, dtype=object) for i, column in enumerate(columns)
    })
    codes = keys.groupby(list(keys.columns), dropna=False, sort=False).ngroup().to_numpy()

    parts = [_field_text(column.reset_index(drop=True)) for column in columns]
    labels = parts[0].str.cat(parts[1:], sep=DOMAIN_SEPARATOR)
    return pd.Categorical.from_codes(codes, categories=_domain_names(labels, codes))
