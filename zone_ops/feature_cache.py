"""
Feature Cache for the School Zone Explorer

Stores the most recently decoded feature collection in a single SQLite row so
the explorer can start without re-decoding the shapefile. The row is keyed by
a fixed record id and stamped with the time it was written; rows older than
the freshness window are cleared on read and reported as absent.

Every failure is absorbed here: an unreadable database is a cache miss, an
undecodable payload is a cache miss that also clears the row.

Usage:
    from zone_ops.feature_cache import FeatureCache

    cache = FeatureCache("data/cache/zone_explorer.sqlite")
    cache.save(collection)
    collection = cache.load()  # None when missing, expired or unreadable
"""

import json
import sqlite3
import time
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from loguru import logger

from .errors import CacheCorrupt, CacheUnavailable

RECORD_ID = "geojson-cache"
DEFAULT_MAX_AGE = timedelta(hours=24)


class FeatureCache:
    """Single-record SQLite cache for a GeoJSON-shaped feature collection."""

    def __init__(
        self,
        db_path: Union[str, Path],
        max_age: timedelta = DEFAULT_MAX_AGE,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            db_path: SQLite file holding the cache table
            max_age: Freshness window; older entries are treated as absent
            clock: Returns the current time in epoch seconds
        """
        self.db_path = Path(db_path)
        self.max_age = max_age
        self.clock = clock

    def _connect(self) -> sqlite3.Connection:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            connection = sqlite3.connect(str(self.db_path))
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS feature_cache (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    timestamp REAL NOT NULL
                )
                """
            )
            return connection
        except (sqlite3.Error, OSError) as e:
            raise CacheUnavailable(f"Cannot open cache at {self.db_path}: {e}") from e

    def _write(self, payload: str) -> None:
        connection = self._connect()
        try:
            connection.execute(
                "INSERT OR REPLACE INTO feature_cache (id, data, timestamp) VALUES (?, ?, ?)",
                (RECORD_ID, payload, self.clock()),
            )
            connection.commit()
        except sqlite3.Error as e:
            raise CacheUnavailable(f"Cannot write cache entry: {e}") from e
        finally:
            connection.close()

    def _read(self) -> Optional[tuple]:
        connection = self._connect()
        try:
            cursor = connection.execute(
                "SELECT data, timestamp FROM feature_cache WHERE id = ?", (RECORD_ID,)
            )
            return cursor.fetchone()
        except sqlite3.Error as e:
            raise CacheUnavailable(f"Cannot read cache entry: {e}") from e
        finally:
            connection.close()

    def _delete(self) -> None:
        connection = self._connect()
        try:
            connection.execute("DELETE FROM feature_cache WHERE id = ?", (RECORD_ID,))
            connection.commit()
        except sqlite3.Error as e:
            raise CacheUnavailable(f"Cannot clear cache entry: {e}") from e
        finally:
            connection.close()

    @staticmethod
    def _decode(data: str) -> Dict[str, Any]:
        try:
            collection = json.loads(data)
        except json.JSONDecodeError as e:
            raise CacheCorrupt(f"Cache payload is not valid JSON: {e}") from e

        if not isinstance(collection, dict) or not isinstance(collection.get("features"), list):
            raise CacheCorrupt("Cache payload is not a feature collection")

        for position, feature in enumerate(collection["features"]):
            if not isinstance(feature, dict):
                raise CacheCorrupt(f"Cached feature {position} is not an object")
            properties = feature.get("properties")
            if properties is not None and not isinstance(properties, dict):
                raise CacheCorrupt(f"Cached feature {position} has non-object properties")
        return collection

    def save(self, collection: Dict[str, Any]) -> bool:
        """
        Store a feature collection, replacing any previous entry.

        A failed write clears the entry and retries once.

        Returns:
            True if the collection was stored
        """
        try:
            payload = json.dumps(collection)
        except (TypeError, ValueError) as e:
            logger.error(f"❌ Feature collection is not JSON serialisable: {e}")
            return False

        logger.debug(
            f"💾 Saving {len(collection.get('features', []))} features "
            f"({round(len(payload) / 1024)} KB) to cache"
        )

        try:
            self._write(payload)
            return True
        except CacheUnavailable as e:
            logger.warning(f"⚠️ Cache save failed, clearing and retrying: {e}")

        try:
            self._delete()
            self._write(payload)
            logger.debug("✅ Cache saved after clearing")
            return True
        except CacheUnavailable as e:
            logger.error(f"❌ Failed to save cache even after clearing: {e}")
            return False

    def load(self) -> Optional[Dict[str, Any]]:
        """
        Load the cached feature collection.

        Returns:
            The collection, or None when there is no fresh readable entry
        """
        try:
            row = self._read()
        except CacheUnavailable as e:
            logger.warning(f"⚠️ Cache unavailable, continuing without it: {e}")
            return None

        if row is None:
            logger.debug("📭 No cached data found")
            return None

        data, timestamp = row
        age = self.clock() - timestamp
        if age >= self.max_age.total_seconds():
            logger.info(f"🕒 Cache expired ({round(age / 60)} min old), clearing")
            self.clear()
            return None

        try:
            collection = self._decode(data)
        except CacheCorrupt as e:
            logger.warning(f"⚠️ {e}; clearing corrupt entry")
            self.clear()
            return None

        logger.debug(f"✅ Loaded {len(collection['features'])} features from cache")
        return collection

    def clear(self) -> bool:
        """Remove the cached entry. Returns False if the storage was unavailable."""
        try:
            self._delete()
            logger.debug("🗑️ Cache cleared")
            return True
        except CacheUnavailable as e:
            logger.warning(f"⚠️ Could not clear cache: {e}")
            return False

    def status(self) -> Dict[str, Any]:
        """Describe the cache entry without loading or expiring it."""
        try:
            row = self._read()
        except CacheUnavailable as e:
            return {"available": False, "exists": False, "error": str(e)}

        if row is None:
            return {"available": True, "exists": False}

        data, timestamp = row
        age = self.clock() - timestamp
        return {
            "available": True,
            "exists": True,
            "age_minutes": round(age / 60),
            "max_age_minutes": round(self.max_age.total_seconds() / 60),
            "is_valid": age < self.max_age.total_seconds(),
            "size_kb": round(len(data) / 1024),
        }
