"""
Cache store for raw provider responses.

Caching is critical for:
1. Rate limiting - every cached response is a request we don't spend
2. Re-runs - a second scan on the same day costs nothing
3. Precaching - slow quota-bound data can be fetched ahead of time

There is no TTL. Callers embed the calendar day in the key, so a new day
simply produces a new key and yesterday's file is never read again.
"""
import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional
import logging

from config import paths

logger = logging.getLogger(__name__)

# Characters that cannot appear in a file name segment
_RESERVED = ("/", "\\", "\x00")


def sanitize(key: str) -> str:
    """
    Turn a request fingerprint into a usable file name.

    Examples:
    - 20240223https://finnhub.io/api/v1/quote?symbol=IBM
      -> 20240223https:--finnhub.io-api-v1-quote?symbol=IBM
    """
    for char in _RESERVED:
        key = key.replace(char, "-")
    return key


def fingerprint(url: str, day: Optional[date] = None) -> str:
    """Day-scoped cache key for a request URL (auth parameters excluded)."""
    day = day or date.today()
    return day.strftime("%Y%m%d") + url


class CacheStore:
    """
    One pretty-printed JSON file per fingerprint.

    Reads never raise: a missing or corrupt file is a cache miss, which
    just means the caller goes back to the network. Writes never raise
    either - the cache is an optimization, not a source of truth.
    """

    def __init__(self, cache_dir: Optional[Path] = None):
        self.cache_dir = Path(cache_dir or paths.cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Cache initialized at: {self.cache_dir}")

    def _path(self, key: str) -> Path:
        return self.cache_dir / sanitize(key)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve a cached document.

        Returns None on a miss, an unreadable file, or unparsable contents.
        """
        path = self._path(key)

        try:
            with open(path, 'r') as f:
                document = json.load(f)
        except FileNotFoundError:
            logger.debug(f"Cache miss: {path.name}")
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache entry {path.name}: {e}")
            return None

        if not isinstance(document, dict):
            logger.warning(f"Ignoring cache entry {path.name}: not a JSON object")
            return None

        logger.debug(f"Cache hit: {path.name}")
        return document

    def put(self, key: str, document: Dict[str, Any]) -> None:
        """Store a document, overwriting any previous entry."""
        path = self._path(key)

        try:
            contents = json.dumps(document, indent=1)
        except (TypeError, ValueError) as e:
            logger.error(f"Could not serialize cache entry {path.name}: {e}")
            return

        try:
            with open(path, 'w') as f:
                f.write(contents)
            logger.debug(f"Cached: {path.name}")
        except OSError as e:
            logger.error(f"Error writing cache file {path.name}: {e}")

    def clear(self) -> None:
        """Remove every cached document."""
        removed = 0
        for entry in self.cache_dir.iterdir():
            if entry.is_file():
                entry.unlink()
                removed += 1
        logger.info(f"Cache cleared ({removed} entries)")

    def get_stats(self) -> dict:
        """Get cache statistics."""
        return {
            'size': sum(1 for entry in self.cache_dir.iterdir() if entry.is_file()),
            'directory': str(self.cache_dir)
        }
