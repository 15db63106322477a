"""
Codebook reconstruction from the PUMF metadata table.

The release ships its variable dictionary as one denormalized table. A row
carrying a field id starts a new variable; the rows that follow (with a blank
field id) list the categorical levels of that variable:

    Variable   Field   Label
    SEX        8       Sex of respondent
    1                  Male
    2                  Female
    AGE_12     6       Five-year age group of respondent
    ...

build_codebook() scans this table once, left to right, and returns a Codebook
keyed by variable name.
"""

from __future__ import annotations

import math
import re
import warnings
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional

import pandas as pd

# Labels that carry no analytic meaning and are dropped before the scan
NOT_APPLICABLE = "Not applicable"

# Semantic metadata columns, in source order
METADATA_COLUMNS = ["var", "field_id", "label", "universe"]

_LEVEL_CODE = re.compile(r"^\d+$")


class SchemaError(ValueError):
    """Raised when the metadata does not describe a usable codebook."""
    pass


@dataclass(frozen=True)
class VariableDefinition:
    """
    Definition of one survey variable.

    Attributes:
        name: Upper-case variable name (matches the record column)
        label: Free text description
        universe: Free text description of who answers the question
        is_categorical: True if the variable has coded levels
        levels: Ordered (code, label) pairs, in display order
        field_id: Field identifier from the metadata table
    """

    name: str
    label: str
    universe: Optional[str] = None
    is_categorical: bool = False
    levels: tuple[tuple[int, str], ...] = ()
    field_id: Optional[str] = None

    @property
    def level_codes(self) -> list[int]:
        return [code for code, _ in self.levels]

    @property
    def level_labels(self) -> list[str]:
        return [label for _, label in self.levels]

    def level_map(self) -> dict[int, str]:
        """Map from code to label. First label wins on duplicate codes."""
        mapping: dict[int, str] = {}
        for code, label in self.levels:
            mapping.setdefault(code, label)
        return mapping


class Codebook(Mapping):
    """
    Ordered, read-only mapping from variable name to VariableDefinition.

    Iteration order is the order in which variables first appear in the
    metadata table.
    """

    def __init__(self, variables: Iterable[VariableDefinition] = ()):
        self._variables: dict[str, VariableDefinition] = {}
        for variable in variables:
            if variable.name in self._variables:
                raise SchemaError(f"Duplicate variable in codebook: {variable.name}")
            self._variables[variable.name] = variable

    def __getitem__(self, name: str) -> VariableDefinition:
        return self._variables[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._variables)

    def __len__(self) -> int:
        return len(self._variables)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Codebook):
            return NotImplemented
        return list(self._variables.items()) == list(other._variables.items())

    def __repr__(self) -> str:
        return f"Codebook({len(self)} variables, {len(self.categorical())} categorical)"

    def categorical(self) -> list[str]:
        """Names of categorical variables, in codebook order."""
        return [name for name, v in self._variables.items() if v.is_categorical]

    def require_nonempty(self) -> "Codebook":
        """Return self, or raise SchemaError if no variable was found."""
        if len(self) == 0:
            raise SchemaError(
                "Codebook has no variables: no metadata row carries a field id."
            )
        return self

    def to_frame(self) -> pd.DataFrame:
        """Flat view with one row per variable."""
        return pd.DataFrame(
            {
                "field_id": [v.field_id for v in self.values()],
                "var_name": [v.name for v in self.values()],
                "var_label": [v.label for v in self.values()],
                "var_universe": [v.universe for v in self.values()],
                "is_factor": [v.is_categorical for v in self.values()],
            },
            columns=["field_id", "var_name", "var_label", "var_universe", "is_factor"],
        )

    def levels_frame(self, name: str) -> pd.DataFrame:
        """Levels of a categorical variable as columns NAME and NAME_label."""
        variable = self[name]
        return pd.DataFrame(
            {
                name: variable.level_codes,
                f"{name}_label": variable.level_labels,
            }
        )


def _text(value: Any) -> Optional[str]:
    """Normalize a metadata cell to stripped text, or None if blank."""
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        # Typed CSV readers turn level codes into floats
        if value.is_integer():
            return str(int(value))
    text = str(value).strip()
    return text or None


def _iter_rows(rows: Any) -> Iterator[dict[str, Optional[str]]]:
    if isinstance(rows, pd.DataFrame):
        missing = [c for c in METADATA_COLUMNS if c not in rows.columns]
        if missing:
            raise SchemaError(f"Metadata table is missing columns: {missing}")
        records = rows[METADATA_COLUMNS].to_dict("records")
    else:
        records = rows

    for row in records:
        yield {col: _text(row.get(col)) for col in METADATA_COLUMNS}


def build_codebook(rows: Any) -> Codebook:
    """
    Build a Codebook from the ordered metadata table.

    Args:
        rows: DataFrame or iterable of mappings with columns
            var, field_id, label, universe (see METADATA_COLUMNS)

    Returns:
        Codebook in first-appearance order. Empty if no row ever carries a
        field id; callers that need a codebook should call require_nonempty().

    Raises:
        SchemaError: If columns are missing or a variable name repeats
    """
    variables: list[VariableDefinition] = []
    seen: set[str] = set()
    current: Optional[dict[str, Any]] = None
    orphans = 0

    def close(state: Optional[dict[str, Any]]) -> None:
        if state is None:
            return
        levels = tuple(state["levels"])
        variables.append(
            VariableDefinition(
                name=state["name"],
                label=state["label"],
                universe=state["universe"],
                is_categorical=len(levels) > 0,
                levels=levels,
                field_id=state["field_id"],
            )
        )

    for row in _iter_rows(rows):
        label = row["label"]
        if label is None or label == NOT_APPLICABLE:
            continue

        if row["field_id"] is not None:
            close(current)
            name = (row["var"] or "").upper()
            if not name:
                raise SchemaError(f"Field {row['field_id']} has no variable name")
            if name in seen:
                raise SchemaError(f"Duplicate variable in metadata: {name}")
            seen.add(name)
            current = {
                "name": name,
                "label": label,
                "universe": row["universe"],
                "field_id": row["field_id"],
                "levels": [],
            }
        elif current is None:
            orphans += 1
        elif row["var"] is not None and _LEVEL_CODE.match(row["var"]):
            current["levels"].append((int(row["var"]), label))
        # Non-numeric continuation rows are footnotes

    close(current)

    if orphans:
        warnings.warn(
            f"Discarded {orphans} metadata rows that precede the first variable."
        )
    if not variables:
        warnings.warn("Metadata table produced an empty codebook.")

    return Codebook(variables)
