"""
LFS PUMF codebook handling.

Rebuilds the variable dictionary of a Labour Force Survey Public Use
Microdata File release and applies it to the record table:
- Codebook reconstruction from the denormalized metadata table
- Encoding of coded columns as labeled categoricals
- Reading releases from a directory or zip archive
- Markdown documentation of a release
"""

from .builder import (
    Codebook,
    SchemaError,
    VariableDefinition,
    build_codebook,
)
from .encoding import (
    RETAINED_CODE_VARIABLES,
    EncodingMismatchWarning,
    count_encoding_mismatches,
    encode_factors,
)
from .loader import (
    PUMF,
    correct_decimal_placement,
    read_codebook,
    read_pumf,
    read_records,
)
from .docs import render_codebook

__all__ = [
    # Builder
    "Codebook",
    "SchemaError",
    "VariableDefinition",
    "build_codebook",
    # Encoding
    "RETAINED_CODE_VARIABLES",
    "EncodingMismatchWarning",
    "count_encoding_mismatches",
    "encode_factors",
    # Loader
    "PUMF",
    "correct_decimal_placement",
    "read_codebook",
    "read_pumf",
    "read_records",
    # Docs
    "render_codebook",
]
