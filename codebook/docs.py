"""Markdown documentation for a PUMF release."""

from __future__ import annotations

import pandas as pd

from .builder import Codebook, VariableDefinition

DOI_URL = "https://doi.org/10.25318/71m0001x-eng"
SURVEY_URL = (
    "https://www23.statcan.gc.ca/imdb/p2SV.pl?Function=getSurvey&SDDS=3701"
)


def _describe(year: int) -> str:
    return (
        "This public use microdata file (PUMF) contains non-aggregated data "
        "for a wide variety of variables collected from the Labour Force "
        f"Survey (LFS) in {year}. The LFS collects monthly information on the "
        "labour market activities of Canada's working age population. This "
        "product is for users who prefer to do their own analysis by focusing "
        "on specific subgroups in the population or by cross-classifying "
        "variables that are not in our catalogued products. For more "
        "information about this survey (questionnaires, definitions, data "
        f"sources and methods used): [Labour Force Survey]({SURVEY_URL})"
    )


def _source(year: int) -> str:
    return (
        f"Statistics Canada. ({year}) Labour Force Survey Public Use "
        f"Microdata File. <{DOI_URL}>"
    )


def _format_number(value) -> str:
    if pd.isna(value):
        return "NA"
    value = float(value)
    return str(int(value)) if value.is_integer() else f"{value:g}"


def format_numeric(variable: VariableDefinition, records: pd.DataFrame) -> str:
    """One bullet for a numeric variable, with its observed range."""
    if variable.name in records.columns:
        values = pd.to_numeric(records[variable.name], errors="coerce")
        low, high = _format_number(values.min()), _format_number(values.max())
    else:
        low = high = "NA"
    return (
        f"- `{variable.name}` `<num>` {variable.label} [{low}, {high}] "
        f"for {variable.universe}"
    )


def format_categorical(variable: VariableDefinition) -> str:
    """One bullet for a categorical variable, followed by its levels."""
    lines = [
        f"- `{variable.name}` `<fct>` {variable.label} for {variable.universe}"
    ]
    for code, label in variable.levels:
        lines.append(f"    - `{code}` {label}")
    return "\n".join(lines)


def render_codebook(records: pd.DataFrame, codebook: Codebook, year: int) -> str:
    """
    Render the codebook of one release as Markdown.

    Args:
        records: Record table (raw codes), used for numeric ranges and shape
        codebook: Codebook of the release
        year: Release year

    Returns:
        Markdown document
    """
    n_rows, n_cols = records.shape
    entries = [
        format_categorical(v) if v.is_categorical else format_numeric(v, records)
        for v in codebook.values()
    ]

    sections = [
        f"# Labour Force Survey Public Use Microdata File ({year})",
        _describe(year),
        "## Format",
        f"The data set has {n_rows} rows and {n_cols} columns.",
        "\n".join(entries),
        "## Source",
        _source(year),
    ]
    return "\n\n".join(sections) + "\n"
