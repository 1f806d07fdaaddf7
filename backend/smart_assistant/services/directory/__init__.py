"""Cached access to the public program directory API."""

from .cache import CachedResult, ResilientCache
from .client import DirectoryClient

__all__ = ["CachedResult", "DirectoryClient", "ResilientCache"]
