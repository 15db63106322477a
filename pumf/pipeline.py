"""
LFS PUMF Pipeline: labeled records and bootstrap weights for one release.

Downloads (or reuses) a year's PUMF, rebuilds its codebook, encodes the
coded columns and generates calibrated bootstrap replicate weights.

Usage:
    python -m pumf.pipeline fetch --years 2019,2020
    python -m pumf.pipeline codebook --year 2020 --output lfs_2020.md
    python -m pumf.pipeline bootstrap --year 2020 --n-reps 1000 --seed 1
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from codebook import Codebook, encode_factors, read_pumf, render_codebook
from micro.ca.statcan.download_lfs import fetch_lfs_pumf, get_year_dir
from replication import (
    WEIGHT_COLUMN,
    BootstrapEstimate,
    bs_total,
    generate_bootstrap_weights,
)

from .config import PUMFConfig

REPLICATE_PREFIX = "BSW"


@dataclass
class PipelineResult:
    """Outputs of one pipeline run."""
    year: int
    records: pd.DataFrame
    codebook: Codebook
    encoded: pd.DataFrame
    bootstrap_weights: np.ndarray
    population: BootstrapEstimate


def replicate_frame(bootstrap_weights: np.ndarray) -> pd.DataFrame:
    """Replicate weights as columns BSW1..BSWR."""
    n_reps = bootstrap_weights.shape[1]
    return pd.DataFrame(
        bootstrap_weights,
        columns=[f"{REPLICATE_PREFIX}{r}" for r in range(1, n_reps + 1)],
    )


def load_release(
    year: int,
    config: PUMFConfig,
    fetch: bool = True,
    verbose: bool = True,
):
    """Read a release from the cache, downloading it first if allowed."""
    year_dir = get_year_dir(year, config.cache_dir)
    if fetch:
        fetch_lfs_pumf([year], config.cache_dir, progress=verbose)
    elif not year_dir.is_dir():
        raise FileNotFoundError(f"LFS PUMF {year} not cached in {year_dir}")

    if verbose:
        print(f"Reading LFS PUMF {year} from {year_dir}...")
    pumf = read_pumf(year_dir)
    if verbose:
        print(f"  Loaded {len(pumf.records):,} records, {len(pumf.codebook)} variables "
              f"({len(pumf.codebook.categorical())} categorical)")
    return pumf


def run_pipeline(
    year: int,
    config: Optional[PUMFConfig] = None,
    fetch: bool = True,
    verbose: bool = True,
) -> PipelineResult:
    """Run the full pipeline for one release."""
    config = config or PUMFConfig.from_env()

    if verbose:
        print("=" * 60)
        print(f"LFS PUMF PIPELINE ({year})")
        print("=" * 60)

    pumf = load_release(year, config, fetch=fetch, verbose=verbose)

    encoded = encode_factors(pumf.records, pumf.codebook)
    mismatches = encoded.attrs.get("encoding_mismatches", {})
    if verbose and mismatches:
        print(f"  {sum(mismatches.values()):,} codes without a level in "
              f"{len(mismatches)} variables")

    if verbose:
        print(f"Generating {config.n_reps} bootstrap replicates "
              f"(seed={config.seed})...")
    weights = generate_bootstrap_weights(encoded, config.n_reps, rng=config.seed)

    population = bs_total(weights, encoded[WEIGHT_COLUMN])

    if verbose:
        print("\n" + "=" * 60)
        print("SUMMARY")
        print("=" * 60)
        print(f"Records: {len(encoded):,}")
        print(f"Replicates: {weights.shape[1]}")
        print(f"Population: {population.estimate:,.0f} "
              f"(se {population.standard_error:,.1f})")

    return PipelineResult(
        year=year,
        records=pumf.records,
        codebook=pumf.codebook,
        encoded=encoded,
        bootstrap_weights=weights,
        population=population,
    )


def cmd_fetch(args, config: PUMFConfig):
    """Download releases."""
    years = [int(y) for y in args.years.split(",")]
    fetch_lfs_pumf(years, config.cache_dir, refresh_cache=args.force)


def cmd_codebook(args, config: PUMFConfig):
    """Render the codebook of a release."""
    pumf = load_release(args.year, config, fetch=not args.no_fetch, verbose=False)
    text = render_codebook(pumf.records, pumf.codebook, args.year)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"Wrote codebook for {args.year} to {args.output}")
    else:
        print(text)


def cmd_bootstrap(args, config: PUMFConfig):
    """Generate bootstrap weights for a release."""
    result = run_pipeline(args.year, config, fetch=not args.no_fetch)
    output = Path(args.output or config.cache_dir / f"bootstrap_{args.year}.parquet")
    output.parent.mkdir(parents=True, exist_ok=True)
    replicate_frame(result.bootstrap_weights).to_parquet(output, index=False)
    print(f"Saved {result.bootstrap_weights.shape[1]} replicates to {output}")


def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description="LFS PUMF codebook and bootstrap tools")
    parser.add_argument("--cache-dir", help="Release cache directory (default: $LFS_PUMF_CACHE_DIR)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch_parser = subparsers.add_parser("fetch", help="Download releases")
    fetch_parser.add_argument("--years", required=True, help="Comma-separated years")
    fetch_parser.add_argument("--force", action="store_true", help="Re-download cached years")
    fetch_parser.set_defaults(func=cmd_fetch)

    codebook_parser = subparsers.add_parser("codebook", help="Render a release codebook")
    codebook_parser.add_argument("--year", type=int, required=True, help="Survey year")
    codebook_parser.add_argument("--output", help="Markdown output path (default: stdout)")
    codebook_parser.add_argument("--no-fetch", action="store_true", help="Use the cache only")
    codebook_parser.set_defaults(func=cmd_codebook)

    bootstrap_parser = subparsers.add_parser("bootstrap", help="Generate bootstrap weights")
    bootstrap_parser.add_argument("--year", type=int, required=True, help="Survey year")
    bootstrap_parser.add_argument("--n-reps", type=int, help="Number of replicates")
    bootstrap_parser.add_argument("--seed", type=int, help="Random seed")
    bootstrap_parser.add_argument("--output", help="Parquet output path")
    bootstrap_parser.add_argument("--no-fetch", action="store_true", help="Use the cache only")
    bootstrap_parser.set_defaults(func=cmd_bootstrap)

    args = parser.parse_args(argv)

    config = PUMFConfig.from_env()
    if args.cache_dir:
        config.cache_dir = Path(args.cache_dir)
    if getattr(args, "n_reps", None) is not None:
        config.n_reps = args.n_reps
    if getattr(args, "seed", None) is not None:
        config.seed = args.seed

    args.func(args, config)


if __name__ == "__main__":
    main()
