"""Tests for encoding coded record columns as categoricals."""

import warnings

import numpy as np
import pandas as pd
import pytest

from codebook.builder import Codebook, SchemaError, VariableDefinition, build_codebook
from codebook.encoding import (
    CODE_SUFFIX,
    RETAINED_CODE_VARIABLES,
    EncodingMismatchWarning,
    count_encoding_mismatches,
    encode_factors,
    encode_variable,
)


def header(var, label, field_id):
    return {"var": var, "field_id": field_id, "label": label, "universe": "All respondents"}


def level(code, label):
    return {"var": code, "field_id": None, "label": label, "universe": None}


@pytest.fixture
def codebook():
    """Codebook with numeric, categorical and retained-code variables."""
    return build_codebook([
        header("REC_NUM", "Order of record in file", "1"),
        header("SEX", "Sex of respondent", "2"),
        level("1", "Male"),
        level("2", "Female"),
        header("LFSSTAT", "Labour force status", "3"),
        level("1", "Employed, at work"),
        level("2", "Employed, absent from work"),
        level("3", "Unemployed"),
        level("4", "Not in labour force"),
        header("NAICS_21", "Industry of main job", "4"),
        level("6", "Construction"),
        level("1", "Agriculture"),
        header("NOC_10", "Occupation at main job", "5"),
        level("1", "Management occupations"),
        level("2", "Business, finance and administration occupations"),
        header("NOC_43", "Occupation at main job", "6"),
        level("1", "Legislative and senior management occupations"),
        header("FINALWT", "Standard final weight", "7"),
    ])


@pytest.fixture
def records():
    """Raw records with integer codes."""
    return pd.DataFrame({
        "REC_NUM": [1, 2, 3, 4],
        "SEX": [1, 2, 2, 1],
        "LFSSTAT": [1, 3, 4, 2],
        "NAICS_21": [6.0, 1.0, np.nan, 6.0],
        "NOC_10": [1.0, 2.0, np.nan, 1.0],
        "NOC_43": [1.0, 1.0, np.nan, 1.0],
        "FINALWT": [120, 95, 210, 88],
        "EXTRA": ["a", "b", "c", "d"],
    })


class TestEncodeFactors:
    """Tests for encode_factors()."""

    def test_categorical_columns_become_categoricals(self, records, codebook):
        """Every categorical variable should be a pandas Categorical."""
        encoded = encode_factors(records, codebook)

        for name in codebook.categorical():
            assert isinstance(encoded[name].dtype, pd.CategoricalDtype), name

    def test_codes_replaced_with_labels(self, records, codebook):
        """Codes should be replaced by their level labels."""
        encoded = encode_factors(records, codebook)

        assert list(encoded["SEX"]) == ["Male", "Female", "Female", "Male"]
        assert encoded["LFSSTAT"].iloc[1] == "Unemployed"

    def test_categories_follow_level_order(self, records, codebook):
        """Categories should be ordered as the levels appear in the codebook."""
        encoded = encode_factors(records, codebook)

        assert list(encoded["NAICS_21"].cat.categories) == ["Construction", "Agriculture"]
        assert encoded["NAICS_21"].cat.ordered

    def test_numeric_variables_unchanged(self, records, codebook):
        """Non-categorical and unknown columns should be left as they are."""
        encoded = encode_factors(records, codebook)

        pd.testing.assert_series_equal(encoded["FINALWT"], records["FINALWT"])
        pd.testing.assert_series_equal(encoded["REC_NUM"], records["REC_NUM"])
        pd.testing.assert_series_equal(encoded["EXTRA"], records["EXTRA"])

    def test_row_count_and_column_order(self, records, codebook):
        """Original columns come first, then the retained code columns."""
        encoded = encode_factors(records, codebook)

        assert len(encoded) == len(records)
        n = len(records.columns)
        assert list(encoded.columns[:n]) == list(records.columns)
        assert list(encoded.columns[n:]) == ["NAICS_21_code", "NOC_10_code", "NOC_43_code"]

    def test_retained_codes_keep_original_values(self, records, codebook):
        """Retained code columns hold the original numeric codes."""
        encoded = encode_factors(records, codebook)

        np.testing.assert_array_equal(
            encoded["NAICS_21_code"].to_numpy(), records["NAICS_21"].to_numpy()
        )

    def test_retained_codes_only_for_named_variables(self, records, codebook):
        """Only the industry and occupation variables get code columns."""
        encoded = encode_factors(records, codebook)

        code_columns = [c for c in encoded.columns if c.endswith(CODE_SUFFIX)]
        assert code_columns == [f"{v}{CODE_SUFFIX}" for v in RETAINED_CODE_VARIABLES]

    def test_retained_variable_absent_from_records(self, records, codebook):
        """A retained variable missing from records gets no code column."""
        encoded = encode_factors(records.drop(columns=["NOC_43"]), codebook)

        assert "NOC_43_code" not in encoded.columns
        assert "NAICS_21_code" in encoded.columns

    def test_missing_codes_stay_missing(self, records, codebook):
        """Missing input should be missing output, without a mismatch."""
        with warnings.catch_warnings():
            warnings.simplefilter("error", EncodingMismatchWarning)
            encoded = encode_factors(records, codebook)

        assert pd.isna(encoded["NAICS_21"].iloc[2])
        assert encoded.attrs["encoding_mismatches"] == {}

    def test_input_not_mutated(self, records, codebook):
        """encode_factors should not modify its input."""
        before = records.copy()
        encode_factors(records, codebook)

        pd.testing.assert_frame_equal(records, before)

    def test_labels_attached(self, records, codebook):
        """Variable labels should be attached as metadata."""
        encoded = encode_factors(records, codebook)

        assert encoded.attrs["labels"]["SEX"] == "Sex of respondent"
        assert "EXTRA" not in encoded.attrs["labels"]

    def test_variables_absent_from_codebook(self, records):
        """An empty codebook should leave every column unchanged."""
        encoded = encode_factors(records.drop(columns=["NAICS_21", "NOC_10", "NOC_43"]), Codebook())

        pd.testing.assert_frame_equal(
            encoded, records.drop(columns=["NAICS_21", "NOC_10", "NOC_43"])
        )

    def test_categorical_without_levels_raises(self, records):
        """A categorical definition without levels violates the schema."""
        broken = Codebook([VariableDefinition("SEX", "Sex", is_categorical=True)])

        with pytest.raises(SchemaError, match="SEX"):
            encode_factors(records, broken)

    def test_existing_code_column_moves_to_end(self, records, codebook):
        """A pre-existing NAICS_21_code column is replaced after the others."""
        records = records.assign(NAICS_21_code=["x", "y", "z", "w"])

        encoded = encode_factors(records, codebook)

        assert list(encoded.columns[-3:]) == ["NAICS_21_code", "NOC_10_code", "NOC_43_code"]
        assert list(encoded.columns).count("NAICS_21_code") == 1
        np.testing.assert_array_equal(
            encoded["NAICS_21_code"].to_numpy(), records["NAICS_21"].to_numpy()
        )


class TestEncodingMismatches:
    """Tests for codes without a codebook level."""

    def test_unknown_codes_become_missing(self, records, codebook):
        """Unknown codes should map to missing, not be dropped."""
        records.loc[0, "SEX"] = 9

        with pytest.warns(EncodingMismatchWarning, match="SEX=1"):
            encoded = encode_factors(records, codebook)

        assert len(encoded) == len(records)
        assert pd.isna(encoded["SEX"].iloc[0])
        assert encoded["SEX"].iloc[1] == "Female"

    def test_mismatches_recorded(self, records, codebook):
        """Mismatch counts should be available on the result."""
        records.loc[[0, 1], "LFSSTAT"] = 7

        with pytest.warns(EncodingMismatchWarning):
            encoded = encode_factors(records, codebook)

        assert encoded.attrs["encoding_mismatches"] == {"LFSSTAT": 2}

    def test_count_encoding_mismatches(self, records, codebook):
        """count_encoding_mismatches should count unknown non-missing codes."""
        records.loc[0, "SEX"] = 3
        records.loc[3, "NAICS_21"] = 99.0

        assert count_encoding_mismatches(records, codebook) == {"SEX": 1, "NAICS_21": 1}

    def test_no_mismatches(self, records, codebook):
        """Clean records should report no mismatches."""
        assert count_encoding_mismatches(records, codebook) == {}


class TestEncodeVariable:
    """Tests for encode_variable()."""

    def test_duplicate_labels_collapse_to_one_category(self):
        """Two codes sharing a label should share one category."""
        variable = VariableDefinition(
            "YABSENT", "Reason of absence", is_categorical=True,
            levels=((0, "Other reasons"), (1, "Own illness"), (9, "Other reasons")),
        )

        encoded = encode_variable(pd.Series([0, 1, 9], name="YABSENT"), variable)

        assert list(encoded.cat.categories) == ["Other reasons", "Own illness"]
        assert list(encoded) == ["Other reasons", "Own illness", "Other reasons"]
