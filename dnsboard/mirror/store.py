"""
Local mirror of provider zones and DNS records.

Rows are keyed per user by the provider's identifiers. The mirror never
expires; ``last_synced_at`` tells callers how stale a row may be.
"""

import functools
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from peewee import DatabaseError, IntegrityError, fn

from dnsboard.config.database import ConfigDatabase
from dnsboard.errors import CacheFault, NotFound
from dnsboard.records.model import DNSRecord
from dnsboard.records.validation import PROXIABLE_TYPES
from dnsboard.zones.model import Zone

logger = logging.getLogger(__name__)

STAT_TYPES = ("A", "AAAA", "CNAME", "MX", "TXT")


def _guarded(method):
    """Surface storage failures as CacheFault."""

    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except DatabaseError as exc:
            logger.error("Local store failure in %s: %s", method.__name__, exc)
            raise CacheFault(f"Local store failure: {exc}") from exc

    return wrapper


def zone_fields(zone: Dict[str, Any]) -> Dict[str, Any]:
    """Map a provider zone payload onto Zone columns."""
    account = zone.get("account") or {}
    plan = zone.get("plan") or {}
    return {
        "name": zone["name"],
        "status": zone.get("status") or "pending",
        "paused": bool(zone.get("paused", False)),
        "type": zone.get("type"),
        "name_servers": list(zone.get("name_servers") or []),
        "account_id": account.get("id"),
        "account_name": account.get("name"),
        "plan_id": plan.get("id"),
        "plan_name": plan.get("name"),
        "created_on": zone.get("created_on"),
        "modified_on": zone.get("modified_on"),
        "activated_on": zone.get("activated_on"),
    }


def record_fields(record: Dict[str, Any]) -> Dict[str, Any]:
    """Map a provider record payload onto DNSRecord columns, enforcing invariants."""
    record_type = str(record["type"]).upper()
    proxiable = record_type in PROXIABLE_TYPES
    return {
        "name": record["name"],
        "type": record_type,
        "content": record.get("content") or "",
        "ttl": int(record.get("ttl") or 1),
        "proxied": bool(record.get("proxied")) and proxiable,
        "proxiable": bool(record.get("proxiable", proxiable)) and proxiable,
        "priority": record.get("priority") if record_type == "MX" else None,
        "comment": record.get("comment"),
        "tags": list(record.get("tags") or []),
        "created_on": record.get("created_on"),
        "modified_on": record.get("modified_on"),
    }


class LocalStore:
    """Per-user zone and record mirror backed by peewee."""

    def __init__(self, database=None, now: Callable[[], datetime] = datetime.utcnow):
        self.database = database if database is not None else ConfigDatabase.database
        self.now = now

    def _zone_row(self, user_id: str, zone_id: str) -> Optional[Zone]:
        return Zone.get_or_none((Zone.user_id == user_id) & (Zone.zone_id == zone_id))

    def _replace(self, model, lookup, create_fields: Dict[str, Any], fields: Dict[str, Any]):
        with self.database.atomic():
            row = model.get_or_none(lookup)
            if row is None:
                try:
                    with self.database.atomic():
                        return model.create(**create_fields, **fields)
                except IntegrityError:
                    # another writer inserted the same id first; last writer wins
                    row = model.get(lookup)
            model.update(**fields).where(model.id == row.id).execute()
            return model.get_by_id(row.id)

    @_guarded
    def upsert_zone(self, user_id: str, zone: Dict[str, Any]) -> Zone:
        fields = zone_fields(zone)
        fields["last_synced_at"] = self.now()
        return self._replace(
            Zone,
            (Zone.user_id == user_id) & (Zone.zone_id == zone["id"]),
            {"user_id": user_id, "zone_id": zone["id"]},
            fields,
        )

    @_guarded
    def upsert_record(self, user_id: str, record: Dict[str, Any]) -> DNSRecord:
        """Mirror one record; its zone must already be mirrored for this user."""
        zone = self._zone_row(user_id, record["zone_id"])
        if zone is None:
            raise NotFound(
                f"Zone {record['zone_id']} is not mirrored",
                code="ZONE_NOT_MIRRORED",
                details={"zone_id": record["zone_id"], "record_id": record.get("id")},
            )
        fields = record_fields(record)
        fields["zone"] = zone
        fields["zone_name"] = record.get("zone_name") or zone.name
        fields["last_synced_at"] = self.now()
        return self._replace(
            DNSRecord,
            (DNSRecord.user_id == user_id) & (DNSRecord.record_id == record["id"]),
            {"user_id": user_id, "record_id": record["id"]},
            fields,
        )

    @_guarded
    def get_zone(self, user_id: str, zone_id: str) -> Optional[Zone]:
        return self._zone_row(user_id, zone_id)

    @_guarded
    def get_record(self, user_id: str, record_id: str) -> Optional[DNSRecord]:
        return (
            DNSRecord.select(DNSRecord, Zone)
            .join(Zone)
            .where((DNSRecord.user_id == user_id) & (DNSRecord.record_id == record_id))
            .first()
        )

    @_guarded
    def query_zones(
        self,
        user_id: str,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Zone], int]:
        filters = filters or {}
        query = Zone.select().where(Zone.user_id == user_id)
        if filters.get("name"):
            query = query.where(Zone.name.contains(filters["name"]))
        if filters.get("status"):
            query = query.where(Zone.status == filters["status"])
        if filters.get("account_id"):
            query = query.where(Zone.account_id == filters["account_id"])
        total = query.count()
        rows = list(query.order_by(Zone.name.asc()).paginate(page, page_size))
        return rows, total

    def _records_query(self, user_id: str, zone_id: Optional[str]):
        query = DNSRecord.select(DNSRecord, Zone).join(Zone).where(DNSRecord.user_id == user_id)
        if zone_id:
            query = query.where(Zone.zone_id == zone_id)
        return query

    @_guarded
    def query_records(
        self,
        user_id: str,
        zone_id: Optional[str],
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[DNSRecord], int]:
        filters = filters or {}
        query = self._records_query(user_id, zone_id)
        if filters.get("name"):
            query = query.where(DNSRecord.name.contains(filters["name"]))
        if filters.get("content"):
            query = query.where(DNSRecord.content.contains(filters["content"]))
        if filters.get("type"):
            query = query.where(DNSRecord.type == str(filters["type"]).upper())
        if filters.get("proxied") is not None:
            query = query.where(DNSRecord.proxied == bool(filters["proxied"]))
        total = query.count()
        rows = list(query.order_by(DNSRecord.name.asc(), DNSRecord.type.asc()).paginate(page, page_size))
        return rows, total

    @_guarded
    def record_stats(self, user_id: str, zone_id: str) -> Dict[str, int]:
        counts = (
            DNSRecord.select(DNSRecord.type, fn.COUNT(DNSRecord.id).alias("total"))
            .join(Zone)
            .where((DNSRecord.user_id == user_id) & (Zone.zone_id == zone_id))
            .group_by(DNSRecord.type)
        )
        by_type = {row.type: row.total for row in counts}
        stats = {
            "total_records": sum(by_type.values()),
            "proxied_records": self._records_query(user_id, zone_id).where(DNSRecord.proxied == True).count(),  # noqa: E712
        }
        for record_type in STAT_TYPES:
            stats[f"{record_type.lower()}_records"] = by_type.get(record_type, 0)
        return stats

    @_guarded
    def record_ids(self, user_id: str, zone_id: str) -> Set[str]:
        return {row.record_id for row in self._records_query(user_id, zone_id)}

    @_guarded
    def delete_record(self, user_id: str, record_id: str) -> bool:
        """Remove a mirrored record; only call after the remote delete is confirmed."""
        deleted = (
            DNSRecord.delete()
            .where((DNSRecord.user_id == user_id) & (DNSRecord.record_id == record_id))
            .execute()
        )
        return deleted > 0

    @_guarded
    def prune_records(self, user_id: str, zone_id: str, keep_ids: Iterable[str]) -> int:
        """Delete mirrored records of a zone that are not in ``keep_ids``."""
        zone = self._zone_row(user_id, zone_id)
        if zone is None:
            return 0
        keep = list(keep_ids)
        query = DNSRecord.delete().where((DNSRecord.user_id == user_id) & (DNSRecord.zone == zone))
        if keep:
            query = query.where(DNSRecord.record_id.not_in(keep))
        return query.execute()

    @_guarded
    def delete_zone(self, user_id: str, zone_id: str) -> bool:
        """Remove a zone and every record it owns."""
        zone = self._zone_row(user_id, zone_id)
        if zone is None:
            return False
        with self.database.atomic():
            DNSRecord.delete().where(DNSRecord.zone == zone).execute()
            zone.delete_instance()
        return True
