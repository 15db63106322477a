"""LFS PUMF pipeline: fetch, encode and bootstrap one release."""

from .config import PUMFConfig

__all__ = ["PUMFConfig"]
