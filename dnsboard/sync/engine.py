"""
Synchronization engine.

Pulls zones and records from the provider into the local mirror, and serves
every read through one path whose ``freshness`` decides the source:

* ``mirror``: local store only, no provider traffic;
* ``cached``: TTL cache, then the provider on a miss;
* ``live``: always the provider.

Provider data read on the ``cached``/``live`` paths is written back to the
mirror on a best-effort basis.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from math import ceil
from typing import Any, Dict, List, Optional, Tuple

from dnsboard.errors import CacheFault, DnsboardError, NotFound, ValidationError
from dnsboard.records.validation import to_relative

logger = logging.getLogger(__name__)

MIRROR = "mirror"
CACHED = "cached"
LIVE = "live"
FRESHNESS = (MIRROR, CACHED, LIVE)


def check_freshness(freshness: str) -> str:
    if freshness not in FRESHNESS:
        raise ValidationError(
            f"Unknown freshness {freshness!r}", fields={"freshness": f"must be one of {', '.join(FRESHNESS)}"}
        )
    return freshness


def pagination(page: int, per_page: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": ceil(total / per_page) if per_page else 0,
    }


def _provider_pagination(info: Dict[str, Any], page: int, per_page: int, count: int) -> Dict[str, int]:
    total = info.get("total_count", count)
    return {
        "page": info.get("page", page),
        "per_page": info.get("per_page", per_page),
        "total": total,
        "total_pages": info.get("total_pages", ceil(total / per_page) if per_page else 0),
    }


def present_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Provider record with the zone-relative name added for display."""
    shown = dict(record)
    if record.get("zone_name"):
        shown["display_name"] = to_relative(record.get("name"), record["zone_name"])
    return shown


@dataclass
class SyncResult:
    zone_id: str
    zone_synced: bool = False
    records_synced: bool = False
    records_count: int = 0
    pruned: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    synced_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def status(self) -> str:
        if self.zone_synced and self.records_synced:
            return "success"
        if self.zone_synced:
            return "partial"
        return "failed"

    def add_error(self, stage: str, exc: DnsboardError, **context: Any) -> None:
        entry = {"stage": stage, "error": exc.message, "code": exc.code}
        entry.update({k: v for k, v in context.items() if v is not None})
        self.errors.append(entry)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "zone_id": self.zone_id,
            "status": self.status,
            "zone_synced": self.zone_synced,
            "records_synced": self.records_synced,
            "records_count": self.records_count,
            "pruned": self.pruned,
            "errors": self.errors,
            "synced_at": self.synced_at.isoformat(),
        }


class SyncEngine:
    """Reconciles provider state into the local mirror."""

    def __init__(self, client, store, cached):
        self.client = client
        self.store = store
        self.cached = cached

    def ensure_zone(self, user_id: str, zone_id: str):
        """Return the mirrored zone row, fetching and mirroring it when missing."""
        row = self.store.get_zone(user_id, zone_id)
        if row is None:
            row = self.store.upsert_zone(user_id, self.client.get_zone(zone_id))
        return row

    def _mirror_records(self, user_id: str, zone_id: str, records: List[Dict[str, Any]]) -> None:
        try:
            self.ensure_zone(user_id, zone_id)
            for record in records:
                self.store.upsert_record(user_id, dict(record, zone_id=zone_id))
        except DnsboardError as exc:
            logger.warning("Could not mirror records of zone %s: %s", zone_id, exc.message)

    def _mirror_zones(self, user_id: str, zones: List[Dict[str, Any]]) -> None:
        for zone in zones:
            try:
                self.store.upsert_zone(user_id, zone)
            except DnsboardError as exc:
                logger.warning("Could not mirror zone %s: %s", zone.get("id"), exc.message)

    def sync_zone(self, user_id: str, zone_id: str, prune: bool = False) -> SyncResult:
        """Mirror one zone and all of its records.

        The zone row is written before any record. A failure fetching or storing
        records leaves the zone row updated and reports ``partial``. With
        ``prune`` set, mirrored records the provider no longer reports are
        deleted, but only after every record was listed and stored.

        Raises:
            NotFound: the provider does not know the zone.
            DnsboardError: the zone itself could not be fetched.
        """
        result = SyncResult(zone_id=zone_id)
        zone = self.client.get_zone(zone_id)
        try:
            self.store.upsert_zone(user_id, zone)
        except DnsboardError as exc:
            result.add_error("zone", exc, zone_id=zone_id)
            return result
        result.zone_synced = True

        try:
            records = self.client.list_all_records(zone_id)
        except DnsboardError as exc:
            logger.warning("Record fetch failed while syncing zone %s: %s", zone_id, exc.message)
            result.add_error("records", exc, zone_id=zone_id)
            return result

        stored = set()
        for record in records:
            try:
                self.store.upsert_record(user_id, dict(record, zone_id=zone_id))
                stored.add(record["id"])
            except DnsboardError as exc:
                result.add_error("records", exc, zone_id=zone_id, record_id=record.get("id"))

        result.records_count = len(stored)
        result.records_synced = len(stored) == len(records)
        if prune and result.records_synced:
            try:
                result.pruned = self.store.prune_records(user_id, zone_id, stored)
            except DnsboardError as exc:
                result.add_error("prune", exc, zone_id=zone_id)

        self.cached.invalidate_zone(zone_id)
        logger.info(
            "Synced zone %s for user %s: %s (%d records, %d pruned)",
            zone_id, user_id, result.status, result.records_count, result.pruned,
        )
        return result

    def sync_zones(self, user_id: str) -> Dict[str, Any]:
        """Mirror every zone the provider lists for the configured credential."""
        zones = self.client.list_all_zones()
        synced, errors = 0, []
        for zone in zones:
            try:
                self.store.upsert_zone(user_id, zone)
                synced += 1
            except DnsboardError as exc:
                errors.append({"zone_id": zone.get("id"), "error": exc.message, "code": exc.code})
        logger.info("Synced %d/%d zones for user %s", synced, len(zones), user_id)
        return {
            "status": "success" if not errors else "partial",
            "zones_synced": synced,
            "zones_total": len(zones),
            "errors": errors,
            "synced_at": datetime.utcnow().isoformat(),
        }

    def read_zone(self, user_id: str, zone_id: str) -> Dict[str, Any]:
        """Mirrored zone with its record stats; the provider answers when the mirror is unavailable."""
        try:
            row = self.store.get_zone(user_id, zone_id)
            if row is None:
                raise NotFound("Zone not found", details={"zone_id": zone_id})
            data = row.to_dict()
            data["record_stats"] = self.store.record_stats(user_id, zone_id)
            return data
        except CacheFault as exc:
            logger.warning("Mirror read of zone %s failed, asking the provider: %s", zone_id, exc.message)
        return self.client.get_zone(zone_id)

    def read_zones(
        self,
        user_id: str,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        per_page: int = 20,
        freshness: str = MIRROR,
    ) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        filters = {k: v for k, v in (filters or {}).items() if v not in (None, "")}
        if check_freshness(freshness) == MIRROR:
            try:
                rows, total = self.store.query_zones(user_id, filters, page, per_page)
                return [row.to_dict() for row in rows], pagination(page, per_page, total)
            except CacheFault as exc:
                logger.warning("Mirror zone read failed for user %s, reading through the cache: %s",
                               user_id, exc.message)
                freshness = CACHED

        params = dict(filters, page=page, per_page=per_page)
        if "account_id" in params:
            params["account.id"] = params.pop("account_id")
        zones, info, hit = self.cached.list_zones(params, refresh=freshness == LIVE)
        if not hit:
            self._mirror_zones(user_id, zones)
        return zones, _provider_pagination(info, page, per_page, len(zones))

    def read_records(
        self,
        user_id: str,
        zone_id: Optional[str],
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        per_page: int = 20,
        freshness: str = MIRROR,
    ) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        """Records of one zone, or of every mirrored zone when ``zone_id`` is None.

        A mirror failure on a single-zone read falls back to the ``cached``
        path; a cross-zone read has no provider equivalent and raises.
        """
        filters = {k: v for k, v in (filters or {}).items() if v not in (None, "")}
        if check_freshness(freshness) == MIRROR:
            try:
                rows, total = self.store.query_records(user_id, zone_id, filters, page, per_page)
                return [row.to_dict() for row in rows], pagination(page, per_page, total)
            except CacheFault as exc:
                if not zone_id:
                    raise
                logger.warning("Mirror record read failed for zone %s, reading through the cache: %s",
                               zone_id, exc.message)
                freshness = CACHED

        params = dict(filters, page=page, per_page=per_page)
        if params.get("type"):
            params["type"] = str(params["type"]).upper()
        records, info, hit = self.cached.list_records(zone_id, params, refresh=freshness == LIVE)
        if not hit:
            self._mirror_records(user_id, zone_id, records)
        return [present_record(r) for r in records], _provider_pagination(info, page, per_page, len(records))

    def read_record(self, user_id: str, zone_id: Optional[str], record_id: str, freshness: str = MIRROR):
        if check_freshness(freshness) == MIRROR:
            try:
                row = self.store.get_record(user_id, record_id)
            except CacheFault as exc:
                if not zone_id:
                    raise
                logger.warning("Mirror read of record %s failed, asking the provider: %s", record_id, exc.message)
            else:
                if row is None or (zone_id and row.zone.zone_id != zone_id):
                    raise NotFound("DNS record not found", details={"record_id": record_id})
                return row.to_dict()
        if not zone_id:
            raise ValidationError("zone_id is required for provider reads")
        record = self.client.get_record(zone_id, record_id)
        self._mirror_records(user_id, zone_id, [record])
        return present_record(record)
