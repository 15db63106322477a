"""
PUMF file reading.

Reads the record CSVs and the codebook CSV of one LFS PUMF release, either
from an extracted directory or straight from the downloaded zip archive.
"""

from __future__ import annotations

import fnmatch
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import pandas as pd

from .builder import Codebook, build_codebook

CODEBOOK_FILE = "LFS_PUMF_EPA_FGMD_codebook.csv"
RECORD_PATTERN = "pub*.csv"

# Source encoding of the StatCan CSVs (accented French labels)
CSV_ENCODING = "latin-1"

# Normalized codebook headers -> semantic metadata columns
CODEBOOK_COLUMNS = {
    "variable_variable": "var",
    "field_champ": "field_id",
    "english_label_etiquette_anglais": "label",
    "english_universe_univers_anglais": "universe",
}

# Implied decimals in the record file
DECIMAL_SCALING = {
    "HRS": 10,
    "EARN": 100,
}

PathLike = Union[str, Path]


@dataclass
class PUMF:
    """One release: record table and its codebook."""
    records: pd.DataFrame
    codebook: Codebook


def clean_names(columns) -> list[str]:
    """Normalize headers to snake case ("EnglishLabel_EtiquetteAnglais" -> "english_label_etiquette_anglais")."""
    cleaned = []
    for col in columns:
        name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", str(col))
        name = re.sub(r"[^0-9a-zA-Z]+", "_", name).strip("_").lower()
        cleaned.append(name)
    return cleaned


def _list_csvs(source: Path, pattern: str) -> list[tuple[str, Path]]:
    """Return (member name, container) pairs for CSVs matching pattern."""
    if source.is_dir():
        return [
            (p.name, p)
            for p in sorted(source.iterdir())
            if p.is_file() and fnmatch.fnmatch(p.name, pattern)
        ]
    if source.is_file() and source.suffix == ".zip":
        with zipfile.ZipFile(source) as zf:
            names = sorted(zf.namelist())
        return [
            (name, source)
            for name in names
            if fnmatch.fnmatch(Path(name).name, pattern)
        ]
    raise ValueError("path must be a directory or a zip file")


def _read_csv(name: str, container: Path, **kwargs) -> pd.DataFrame:
    if container.suffix == ".zip" and not container.is_dir():
        with zipfile.ZipFile(container) as zf, zf.open(name) as f:
            return pd.read_csv(f, **kwargs)
    return pd.read_csv(container, **kwargs)


def correct_decimal_placement(records: pd.DataFrame) -> pd.DataFrame:
    """Apply the implied decimals of hours (1) and earnings (2) columns."""
    records = records.copy()
    for marker, divisor in DECIMAL_SCALING.items():
        for col in records.columns:
            if marker in col:
                records[col] = records[col] / divisor
    return records


def read_records(source: PathLike) -> pd.DataFrame:
    """
    Read and stack every record file of a release.

    Args:
        source: Extracted release directory or its zip archive

    Returns:
        Record table with decimal placement corrected

    Raises:
        FileNotFoundError: If the release has no record file
    """
    source = Path(source)
    files = _list_csvs(source, RECORD_PATTERN)
    if not files:
        raise FileNotFoundError(f"No {RECORD_PATTERN} record files in {source}")

    frames = [_read_csv(name, container) for name, container in files]
    records = pd.concat(frames, ignore_index=True)
    return correct_decimal_placement(records)


def read_codebook(source: PathLike) -> Codebook:
    """
    Read the codebook CSV of a release.

    Raises:
        FileNotFoundError: If the codebook file is missing
        SchemaError: If the file yields no variables
    """
    source = Path(source)
    files = _list_csvs(source, CODEBOOK_FILE)
    if not files:
        raise FileNotFoundError(f"No {CODEBOOK_FILE} in {source}")

    name, container = files[0]
    raw = _read_csv(name, container, dtype=str, encoding=CSV_ENCODING)
    raw.columns = clean_names(raw.columns)

    missing = [c for c in CODEBOOK_COLUMNS if c not in raw.columns]
    if missing:
        raise ValueError(f"Codebook file is missing columns: {missing}")

    metadata = raw[list(CODEBOOK_COLUMNS)].rename(columns=CODEBOOK_COLUMNS)
    return build_codebook(metadata).require_nonempty()


def read_pumf(source: PathLike) -> PUMF:
    """Read records and codebook of one release."""
    return PUMF(records=read_records(source), codebook=read_codebook(source))
