"""
Encode coded record columns as labeled categoricals.

Replaces the integer codes of every categorical variable with its level
labels, keeping a copy of the codes for the industry and occupation
classifications that analyses join on.
"""

from __future__ import annotations

import warnings
from typing import Sequence

import pandas as pd

from .builder import Codebook, SchemaError, VariableDefinition

# Variables whose numeric codes are kept next to the labels
RETAINED_CODE_VARIABLES = ("NAICS_21", "NOC_10", "NOC_43")
CODE_SUFFIX = "_code"


class EncodingMismatchWarning(UserWarning):
    """Issued when record codes have no level in the codebook."""
    pass


def _categorical_variables(
    records: pd.DataFrame,
    codebook: Codebook,
) -> list[VariableDefinition]:
    variables = []
    for name in records.columns:
        variable = codebook.get(name)
        if variable is None or not variable.is_categorical:
            continue
        if not variable.levels:
            raise SchemaError(f"Categorical variable {name} has no levels")
        variables.append(variable)
    return variables


def _mismatch_mask(codes: pd.Series, variable: VariableDefinition) -> pd.Series:
    numeric = pd.to_numeric(codes, errors="coerce")
    known = numeric.isin(variable.level_codes)
    return codes.notna() & ~known


def count_encoding_mismatches(
    records: pd.DataFrame,
    codebook: Codebook,
) -> dict[str, int]:
    """
    Count non-missing codes with no matching level, per variable.

    Only variables with at least one mismatch are returned.
    """
    counts = {}
    for variable in _categorical_variables(records, codebook):
        n = int(_mismatch_mask(records[variable.name], variable).sum())
        if n:
            counts[variable.name] = n
    return counts


def encode_variable(codes: pd.Series, variable: VariableDefinition) -> pd.Series:
    """
    Map a column of codes to an ordered categorical of level labels.

    Codes without a level become missing.
    """
    numeric = pd.to_numeric(codes, errors="coerce")
    labels = numeric.map(variable.level_map())
    categories = list(dict.fromkeys(variable.level_labels))
    return pd.Series(
        pd.Categorical(labels, categories=categories, ordered=True),
        index=codes.index,
        name=codes.name,
    )


def encode_factors(
    records: pd.DataFrame,
    codebook: Codebook,
    retained: Sequence[str] = RETAINED_CODE_VARIABLES,
) -> pd.DataFrame:
    """
    Encode every categorical variable in records using the codebook.

    Args:
        records: Raw record table with codes in categorical columns
        codebook: Codebook from build_codebook()
        retained: Variables whose codes are copied to NAME_code first

    Returns:
        New DataFrame with the original columns (categoricals encoded)
        followed by the retained code columns. An existing column with a
        retained code name is replaced. attrs["labels"] holds the
        variable labels and attrs["encoding_mismatches"] the per-variable
        count of codes that had no level.

    Raises:
        SchemaError: If a categorical variable has no levels
    """
    variables = _categorical_variables(records, codebook)

    retained_codes = {
        f"{name}{CODE_SUFFIX}": records[name]
        for name in retained
        if name in records.columns
    }

    # an existing NAME_code column is replaced by the retained codes at the end
    encoded = records.drop(columns=[c for c in retained_codes if c in records.columns])
    mismatches = {}
    for variable in variables:
        n = int(_mismatch_mask(records[variable.name], variable).sum())
        if n:
            mismatches[variable.name] = n
        encoded[variable.name] = encode_variable(records[variable.name], variable)

    for name, codes in retained_codes.items():
        encoded[name] = codes

    if mismatches:
        summary = ", ".join(f"{k}={v}" for k, v in mismatches.items())
        warnings.warn(
            f"Codes without a codebook level were set to missing: {summary}",
            EncodingMismatchWarning,
        )

    encoded.attrs["labels"] = {
        name: codebook[name].label for name in records.columns if name in codebook
    }
    encoded.attrs["encoding_mismatches"] = mismatches
    return encoded
