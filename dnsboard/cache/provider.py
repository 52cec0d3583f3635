"""Provider reads served through the TTL cache."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from dnsboard.cache.keys import ZONE_LIST_PREFIX, record_list_key, record_list_prefix, zone_list_key
from dnsboard.cache.ttl import MISS, TTLCache
from dnsboard.errors import CacheFault

logger = logging.getLogger(__name__)


class CachedProvider:
    """Caches zone-list and record-list responses of a :class:`CloudflareClient`.

    Cache trouble never fails a read: lookups degrade to a miss and writes are
    skipped.
    """

    def __init__(self, client, cache: TTLCache):
        self.client = client
        self.cache = cache

    def _lookup(self, key: str):
        try:
            return self.cache.get(key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("%s", CacheFault(f"Cache lookup failed for {key}: {exc}"))
            return MISS

    def _ticket(self) -> Optional[int]:
        try:
            return self.cache.ticket()
        except Exception as exc:  # noqa: BLE001
            logger.warning("%s", CacheFault(f"Cache ticket failed: {exc}"))
            return None

    def _store(self, key: str, value: Any, ticket: Optional[int]) -> None:
        if ticket is None:
            return
        try:
            if not self.cache.put(key, value, ticket=ticket):
                logger.debug("Dropped stale cache write for %s", key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("%s", CacheFault(f"Cache write failed for {key}: {exc}"))

    def _read(self, key: str, fetch, refresh: bool) -> Tuple[Any, bool]:
        if not refresh:
            cached = self._lookup(key)
            if cached is not MISS:
                return cached, True
        ticket = self._ticket()
        value = fetch()
        self._store(key, value, ticket)
        return value, False

    def list_zones(
        self, params: Optional[Dict[str, Any]] = None, refresh: bool = False
    ) -> Tuple[List[Dict], Dict, bool]:
        """Return ``(zones, page_info, cache_hit)``."""
        (zones, info), hit = self._read(zone_list_key(params), lambda: self.client.list_zones(params), refresh)
        return zones, info, hit

    def list_records(
        self, zone_id: str, params: Optional[Dict[str, Any]] = None, refresh: bool = False
    ) -> Tuple[List[Dict], Dict, bool]:
        """Return ``(records, page_info, cache_hit)``."""
        (records, info), hit = self._read(
            record_list_key(zone_id, params), lambda: self.client.list_records(zone_id, params), refresh
        )
        return records, info, hit

    def invalidate_zone(self, zone_id: str) -> None:
        """Drop the zone's record lists and every zone list."""
        try:
            self.cache.invalidate(record_list_prefix(zone_id))
            self.cache.invalidate(ZONE_LIST_PREFIX)
        except Exception as exc:  # noqa: BLE001
            logger.error("%s", CacheFault(f"Cache invalidation failed for zone {zone_id}: {exc}"))
