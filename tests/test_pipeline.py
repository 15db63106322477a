"""Tests for pipeline configuration and the end-to-end run."""

import numpy as np
import pandas as pd
import pytest

from codebook.loader import CODEBOOK_FILE
from pumf.config import DEFAULT_N_REPS, PUMFConfig
from pumf.pipeline import main, replicate_frame, run_pipeline

CODEBOOK_ROWS = [
    ("1", "SURVYEAR", "Survey year", "All respondents"),
    ("2", "SURVMNTH", "Survey month", "All respondents"),
    ("", "1", "January", ""),
    ("", "2", "February", ""),
    ("3", "PROV", "Province", "All respondents"),
    ("", "35", "Ontario", ""),
    ("", "24", "Quebec", ""),
    ("4", "SEX", "Sex of respondent", "All respondents"),
    ("", "1", "Male", ""),
    ("", "2", "Female", ""),
    ("5", "AGE_12", "Five-year age group of respondent", "All respondents"),
    ("", "1", "15 to 19 years", ""),
    ("", "5", "35 to 39 years", ""),
    ("", "6", "40 to 44 years", ""),
    ("6", "AGE_6", "Age in 2 and 3 year groups, 15 to 29", "Respondents aged 15 to 29 years"),
    ("", "1", "15 to 16 years", ""),
    ("", "2", "17 to 19 years", ""),
    ("7", "NAICS_21", "Industry of main job", "Employed"),
    ("", "6", "Construction", ""),
    ("8", "FINALWT", "Standard final weight", "All respondents"),
]


@pytest.fixture
def cache_dir(tmp_path):
    """Cache with a small 2020 release."""
    year_dir = tmp_path / "2020"
    year_dir.mkdir()
    pd.DataFrame(
        CODEBOOK_ROWS,
        columns=["Field_Champ", "Variable_Variable",
                 "EnglishLabel_EtiquetteAnglais", "EnglishUniverse_UniversAnglais"],
    ).to_csv(year_dir / CODEBOOK_FILE, index=False, encoding="latin-1")

    rng = np.random.default_rng(1)
    n = 400
    age_12 = rng.choice([1, 5, 6], n)
    pd.DataFrame({
        "SURVYEAR": 2020,
        "SURVMNTH": rng.choice([1, 2], n),
        "PROV": rng.choice([35, 24], n),
        "SEX": rng.choice([1, 2], n),
        "AGE_12": age_12,
        "AGE_6": np.where(age_12 == 1, rng.choice([1, 2], n), np.nan),
        "NAICS_21": 6,
        "FINALWT": rng.integers(20, 300, n),
    }).to_csv(year_dir / "pub0120.csv", index=False)
    return tmp_path


class TestPUMFConfig:
    """Tests for PUMFConfig."""

    def test_defaults(self, monkeypatch):
        """Without environment variables the defaults apply."""
        for name in ["LFS_PUMF_CACHE_DIR", "LFS_PUMF_N_REPS", "LFS_PUMF_SEED"]:
            monkeypatch.delenv(name, raising=False)

        config = PUMFConfig.from_env()

        assert config.n_reps == DEFAULT_N_REPS
        assert config.seed is None

    def test_from_env(self, monkeypatch, tmp_path):
        """Environment variables override the defaults."""
        monkeypatch.setenv("LFS_PUMF_CACHE_DIR", str(tmp_path))
        monkeypatch.setenv("LFS_PUMF_N_REPS", "200")
        monkeypatch.setenv("LFS_PUMF_SEED", "17")

        config = PUMFConfig.from_env()

        assert config.cache_dir == tmp_path
        assert config.n_reps == 200
        assert config.seed == 17

    def test_invalid_integer(self, monkeypatch):
        """A non-integer replicate count names the variable."""
        monkeypatch.setenv("LFS_PUMF_N_REPS", "many")

        with pytest.raises(ValueError, match="LFS_PUMF_N_REPS"):
            PUMFConfig.from_env()

    def test_non_positive_reps(self):
        """n_reps must be positive."""
        with pytest.raises(ValueError):
            PUMFConfig(n_reps=0)


class TestRunPipeline:
    """Tests for run_pipeline()."""

    def test_end_to_end(self, cache_dir):
        """A cached release is read, encoded and bootstrapped."""
        config = PUMFConfig(cache_dir=cache_dir, n_reps=20, seed=3)

        result = run_pipeline(2020, config, fetch=False, verbose=False)

        assert len(result.encoded) == 400
        assert result.encoded["SEX"].dtype == "category"
        assert set(result.encoded["PROV"].cat.categories) == {"Ontario", "Quebec"}
        assert "NAICS_21_code" in result.encoded.columns
        assert result.bootstrap_weights.shape == (400, 20)
        assert result.population.estimate == pytest.approx(result.records["FINALWT"].sum())

    def test_seeded_runs_agree(self, cache_dir):
        """The configured seed makes runs reproducible."""
        config = PUMFConfig(cache_dir=cache_dir, n_reps=5, seed=11)

        a = run_pipeline(2020, config, fetch=False, verbose=False)
        b = run_pipeline(2020, config, fetch=False, verbose=False)

        np.testing.assert_array_equal(a.bootstrap_weights, b.bootstrap_weights)

    def test_uncached_without_fetch(self, tmp_path):
        """Without fetching, a missing release is an error."""
        config = PUMFConfig(cache_dir=tmp_path, n_reps=5)

        with pytest.raises(FileNotFoundError):
            run_pipeline(2019, config, fetch=False, verbose=False)

    def test_prints_summary(self, cache_dir, capsys):
        """Verbose runs print a summary."""
        run_pipeline(2020, PUMFConfig(cache_dir=cache_dir, n_reps=5, seed=1), fetch=False)

        out = capsys.readouterr().out
        assert "SUMMARY" in out
        assert "Replicates: 5" in out


class TestCli:
    """Tests for the command-line entry point."""

    def test_replicate_frame_columns(self):
        """Replicate columns are numbered from 1."""
        frame = replicate_frame(np.ones((3, 4)))

        assert list(frame.columns) == ["BSW1", "BSW2", "BSW3", "BSW4"]

    def test_codebook_command(self, cache_dir, tmp_path):
        """The codebook command writes Markdown."""
        output = tmp_path / "lfs_2020.md"

        main(["--cache-dir", str(cache_dir), "codebook", "--year", "2020",
              "--no-fetch", "--output", str(output)])

        text = output.read_text(encoding="utf-8")
        assert "(2020)" in text
        assert "`35` Ontario" in text
