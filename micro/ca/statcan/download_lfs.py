"""
LFS PUMF Downloader

Downloads the Labour Force Survey Public Use Microdata File from Statistics
Canada and caches each year's CSVs in its own directory:

    <cache_dir>/2020/pub0120.csv
    <cache_dir>/2020/pub0220.csv
    ...
    <cache_dir>/2020/LFS_PUMF_EPA_FGMD_codebook.csv

Usage:
    python download_lfs.py --years 2019,2020 [--cache-dir data/lfs] [--force]
"""

import io
import zipfile
from pathlib import Path
from typing import Iterable, List, Union

import requests
from tqdm import tqdm

# Historical PUMF archives, one zip per year
LFS_URL_TEMPLATE = (
    "https://www150.statcan.gc.ca/n1/pub/71m0001x/2021001/hist/{year}-CSV.zip"
)

DEFAULT_CACHE_DIR = Path("data") / "lfs"


def get_lfs_url(year: int) -> str:
    """Download URL of a year's PUMF archive."""
    return LFS_URL_TEMPLATE.format(year=year)


def get_year_dir(year: int, cache_dir: Union[str, Path] = DEFAULT_CACHE_DIR) -> Path:
    """Directory holding a year's extracted CSVs."""
    return Path(cache_dir) / str(year)


def download_lfs_zip(year: int, progress: bool = True) -> bytes:
    """Download a year's PUMF archive into memory.

    Args:
        year: Survey year
        progress: Show download progress bar

    Returns:
        Raw zip bytes
    """
    url = get_lfs_url(year)
    print(f"Downloading LFS PUMF {year} from {url}")

    response = requests.get(url, stream=True, timeout=60)
    response.raise_for_status()

    total_size = int(response.headers.get("content-length", 0)) or None
    content = io.BytesIO()

    if progress:
        with tqdm(total=total_size, unit="B", unit_scale=True, desc=f"LFS {year}") as pbar:
            for chunk in response.iter_content(chunk_size=8192):
                content.write(chunk)
                pbar.update(len(chunk))
    else:
        for chunk in response.iter_content(chunk_size=8192):
            content.write(chunk)

    return content.getvalue()


def fetch_single_year(
    year: int,
    cache_dir: Union[str, Path] = DEFAULT_CACHE_DIR,
    refresh_cache: bool = False,
    progress: bool = True,
) -> Path:
    """Download and extract one year, unless it is already cached.

    Returns:
        Directory containing the year's CSVs
    """
    year_dir = get_year_dir(year, cache_dir)

    if year_dir.is_dir() and not refresh_cache:
        print(
            f"Skipping {year} as it is already cached, "
            "set refresh_cache=True to force download."
        )
        return year_dir

    data = download_lfs_zip(year, progress=progress)

    year_dir.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        zf.extractall(year_dir)
        print(f"  → extracted {len(zf.namelist())} files to {year_dir}")

    return year_dir


def fetch_lfs_pumf(
    years: Iterable[int],
    cache_dir: Union[str, Path] = DEFAULT_CACHE_DIR,
    refresh_cache: bool = False,
    progress: bool = True,
) -> List[Path]:
    """Download LFS PUMF releases for several years.

    Args:
        years: Survey years to download
        cache_dir: Directory under which each year is extracted
        refresh_cache: Re-download years that are already cached
        progress: Show download progress bars

    Returns:
        Year directories, in the order requested
    """
    if isinstance(years, int):
        years = [years]
    return [
        fetch_single_year(year, cache_dir, refresh_cache=refresh_cache, progress=progress)
        for year in years
    ]


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Download LFS PUMF microdata")
    parser.add_argument("--years", required=True, help="Comma-separated survey years")
    parser.add_argument("--cache-dir", default=str(DEFAULT_CACHE_DIR), help="Cache directory")
    parser.add_argument("--force", action="store_true", help="Force re-download even if cached")
    args = parser.parse_args()

    years = [int(y) for y in args.years.split(",")]
    fetch_lfs_pumf(years, args.cache_dir, refresh_cache=args.force)


if __name__ == "__main__":
    main()
