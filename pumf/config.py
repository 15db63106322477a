"""Pipeline configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from micro.ca.statcan.download_lfs import DEFAULT_CACHE_DIR

DEFAULT_N_REPS = 1000


def _int_from_env(name: str) -> Optional[int]:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass
class PUMFConfig:
    """Configuration for the LFS PUMF pipeline."""

    cache_dir: Path = DEFAULT_CACHE_DIR
    n_reps: int = DEFAULT_N_REPS
    seed: Optional[int] = None

    def __post_init__(self):
        self.cache_dir = Path(self.cache_dir)
        if self.n_reps < 1:
            raise ValueError(f"n_reps must be positive, got {self.n_reps}")

    @classmethod
    def from_env(cls) -> "PUMFConfig":
        """
        Load configuration from environment variables.

        Optional:
            LFS_PUMF_CACHE_DIR: Directory holding downloaded releases
            LFS_PUMF_N_REPS: Number of bootstrap replicates
            LFS_PUMF_SEED: Seed for replicate generation

        Raises:
            ValueError: If an integer variable does not parse
        """
        cache_dir = os.environ.get("LFS_PUMF_CACHE_DIR") or DEFAULT_CACHE_DIR
        n_reps = _int_from_env("LFS_PUMF_N_REPS")
        return cls(
            cache_dir=Path(cache_dir),
            n_reps=DEFAULT_N_REPS if n_reps is None else n_reps,
            seed=_int_from_env("LFS_PUMF_SEED"),
        )
