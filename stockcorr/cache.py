"""
Disk cache for fetched price histories.

Price windows move every few seconds, so entries carry a maximum age and
expire on read. The correlation engine itself never caches; this is
caller-side memoization for the data client.
"""

import hashlib
import json
import pickle
import time
from pathlib import Path
from typing import Any, Optional
from stockcorr.errors import CacheError


class DataCache:
    """
    A disk-based cache keyed by a hash of the query parameters.

    Representation Invariants:
        - cache_dir exists and is a directory
        - cache files are named <md5 of sorted JSON params>.pkl
        - max_age_seconds is None (never expire) or > 0
    """

    def __init__(self, cache_dir: str = ".cache", max_age_seconds: Optional[float] = 10.0):
        """
        Initialize the cache.

        Postconditions:
            - cache_dir exists as a directory

        Raises:
            CacheError: If the directory cannot be created
            ValueError: If max_age_seconds is not positive
        """
        if max_age_seconds is not None and max_age_seconds <= 0:
            raise ValueError("max_age_seconds must be positive")

        self.cache_dir = Path(cache_dir)
        self.max_age_seconds = max_age_seconds
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Failed to create cache directory {cache_dir}: {e}") from e

    def _path_for(self, query_params: dict) -> Path:
        sorted_params = json.dumps(query_params, sort_keys=True, default=str)
        cache_key = hashlib.md5(sorted_params.encode()).hexdigest()
        return self.cache_dir / f"{cache_key}.pkl"

    def _is_fresh(self, cache_file: Path) -> bool:
        if self.max_age_seconds is None:
            return True
        return time.time() - cache_file.stat().st_mtime <= self.max_age_seconds

    def get(self, query_params: dict) -> Optional[Any]:
        """
        Retrieve cached data if it exists and has not expired.

        Returns:
            The cached object, or None on a miss or an expired entry

        Raises:
            CacheError: If the cache file exists but cannot be read
        """
        cache_file = self._path_for(query_params)
        if not cache_file.exists() or not self._is_fresh(cache_file):
            return None

        try:
            with open(cache_file, "rb") as f:
                return pickle.load(f)
        except Exception as e:
            raise CacheError(f"Failed to read cache file: {e}") from e

    def set(self, query_params: dict, data: Any) -> None:
        """
        Store data under the query's key, replacing any previous entry.

        Raises:
            CacheError: If the data cannot be written
        """
        cache_file = self._path_for(query_params)
        try:
            with open(cache_file, "wb") as f:
                pickle.dump(data, f)
        except Exception as e:
            raise CacheError(f"Failed to write cache file: {e}") from e

    def exists(self, query_params: dict) -> bool:
        """Return True if a fresh entry exists for the query."""
        cache_file = self._path_for(query_params)
        return cache_file.exists() and self._is_fresh(cache_file)

    def clear(self) -> None:
        """Remove all cached entries."""
        for cache_file in self.cache_dir.glob("*.pkl"):
            cache_file.unlink()
