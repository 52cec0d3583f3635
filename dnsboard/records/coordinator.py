"""
Record mutation coordinator.

Every create, update and delete of a DNS record goes through here, in order:

1. validate the payload locally (no network call on failure);
2. execute it once against the provider (never retried);
3. append an operation history entry (failure is logged, never reverted);
4. invalidate the zone's cached lists and update the local mirror.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from peewee import DatabaseError

from dnsboard.errors import (
    OUTCOME_APPLIED,
    OUTCOME_NOT_APPLIED,
    CacheFault,
    DnsboardError,
    NotFound,
    ProviderUnreachable,
    ValidationError,
)
from dnsboard.history.model import OperationHistory
from dnsboard.records.validation import normalize_record, to_absolute
from dnsboard.sync.engine import present_record

logger = logging.getLogger(__name__)

BATCH_OPERATIONS = ("update", "delete")


@contextmanager
def _unapplied(**context):
    """Tag errors raised before the provider accepted the change."""
    try:
        yield
    except DnsboardError as exc:
        exc.with_context(**context)
        exc.details.setdefault("outcome", OUTCOME_NOT_APPLIED)
        raise


@dataclass
class MutationResult:
    operation: str
    record_id: str
    record: Optional[Dict[str, Any]] = None
    already_deleted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "operation": self.operation,
            "record_id": self.record_id,
            "outcome": OUTCOME_APPLIED,
            "record": present_record(self.record) if self.record else None,
        }
        if self.operation == "delete":
            body["already_deleted"] = self.already_deleted
        return body


class MutationCoordinator:
    """Sole write path for DNS records."""

    def __init__(self, client, store, cached, sync):
        self.client = client
        self.store = store
        self.cached = cached
        self.sync = sync

    def _zone_name(self, user_id: str, zone_id: str) -> str:
        try:
            return self.sync.ensure_zone(user_id, zone_id).name
        except CacheFault:
            logger.warning("Mirror unavailable while resolving zone %s, asking the provider", zone_id)
            return self.client.get_zone(zone_id)["name"]

    def _record_history(self, user_id: str, operation: str, record_id: str, name: Optional[str],
                        old: Optional[Dict] = None, new: Optional[Dict] = None) -> None:
        try:
            OperationHistory.append(user_id, operation, record_id, resource_name=name, old_data=old, new_data=new)
        except (DatabaseError, TypeError, ValueError) as exc:
            logger.error("History write failed for %s of record %s: %s", operation, record_id, exc)

    def _settle(self, user_id: str, zone_id: str, record: Optional[Dict] = None,
                deleted_id: Optional[str] = None) -> None:
        self.cached.invalidate_zone(zone_id)
        try:
            if record is not None:
                self.store.upsert_record(user_id, dict(record, zone_id=zone_id))
            if deleted_id is not None:
                self.store.delete_record(user_id, deleted_id)
        except DnsboardError as exc:
            logger.error(
                "Mirror update failed for zone %s record %s: %s",
                zone_id, (record or {}).get("id", deleted_id), exc.message,
            )

    def create_record(self, user_id: str, zone_id: str, data: Dict[str, Any]) -> MutationResult:
        with _unapplied(zone_id=zone_id, operation="create"):
            # invariants are checked before the zone lookup
            payload = normalize_record(data, "")
            zone_name = self._zone_name(user_id, zone_id)
            payload["name"] = to_absolute(payload["name"], zone_name)
            record = self.client.create_record(zone_id, payload)
        record.setdefault("zone_name", zone_name)
        logger.info("Created %s record %s in zone %s", record.get("type"), record.get("id"), zone_id)
        self._record_history(user_id, "create", record["id"], record.get("name"), new=record)
        self._settle(user_id, zone_id, record=record)
        return MutationResult("create", record["id"], record)

    def _previous(self, user_id: str, zone_id: str, record_id: str) -> Dict[str, Any]:
        try:
            return self.client.get_record(zone_id, record_id)
        except ProviderUnreachable:
            row = self.store.get_record(user_id, record_id)
            if row is None:
                raise
            logger.warning("Provider unreachable, using mirrored copy of record %s", record_id)
            mirrored = row.to_dict()
            mirrored["id"] = record_id
            return mirrored

    def update_record(self, user_id: str, zone_id: str, record_id: str,
                      partial: Dict[str, Any]) -> MutationResult:
        with _unapplied(zone_id=zone_id, record_id=record_id, operation="update"):
            zone_name = self._zone_name(user_id, zone_id)
            old = self._previous(user_id, zone_id, record_id)
            payload = normalize_record(partial, zone_name, existing=old)
            record = self.client.update_record(zone_id, record_id, payload)
        record.setdefault("zone_name", zone_name)
        logger.info("Updated record %s in zone %s", record_id, zone_id)
        self._record_history(user_id, "update", record_id, record.get("name"), old=old, new=record)
        self._settle(user_id, zone_id, record=record)
        return MutationResult("update", record_id, record)

    def delete_record(self, user_id: str, zone_id: str, record_id: str) -> MutationResult:
        """Delete a record; a provider NotFound counts as already deleted."""
        old = None
        already_deleted = False
        with _unapplied(zone_id=zone_id, record_id=record_id, operation="delete"):
            try:
                old = self.client.get_record(zone_id, record_id)
            except NotFound:
                already_deleted = True
            except ProviderUnreachable:
                row = self.store.get_record(user_id, record_id)
                old = row.to_dict() if row is not None else None
            if not already_deleted:
                try:
                    self.client.delete_record(zone_id, record_id)
                except NotFound:
                    already_deleted = True

        if already_deleted:
            logger.info("Record %s in zone %s was already gone", record_id, zone_id)
        else:
            logger.info("Deleted record %s in zone %s", record_id, zone_id)
            self._record_history(user_id, "delete", record_id, (old or {}).get("name"), old=old)
        self._settle(user_id, zone_id, deleted_id=record_id)
        return MutationResult("delete", record_id, None, already_deleted=already_deleted)

    def batch(self, user_id: str, operation: str, record_ids: List[str],
              data: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Apply one operation to many records; each id succeeds or fails on its own."""
        if operation not in BATCH_OPERATIONS:
            raise ValidationError(
                "Invalid batch operation", fields={"operation": f"must be one of {', '.join(BATCH_OPERATIONS)}"}
            )
        if operation == "update" and not data:
            raise ValidationError("Batch update needs data", fields={"data": "required for update"})

        results = []
        for record_id in record_ids:
            entry = {"record_id": record_id, "operation": operation}
            try:
                row = self.store.get_record(user_id, record_id)
                if row is None:
                    raise NotFound(
                        "DNS record is not in the local mirror; sync its zone first",
                        details={"outcome": OUTCOME_NOT_APPLIED},
                    )
                zone_id = row.zone.zone_id
                if operation == "delete":
                    outcome = self.delete_record(user_id, zone_id, record_id)
                else:
                    outcome = self.update_record(user_id, zone_id, record_id, data)
                entry.update(success=True, **outcome.to_dict())
            except DnsboardError as exc:
                logger.warning("Batch %s failed for record %s: %s", operation, record_id, exc.message)
                entry.update(
                    success=False,
                    error=exc.message,
                    code=exc.code,
                    outcome=exc.details.get("outcome", OUTCOME_NOT_APPLIED),
                )
            results.append(entry)
        return results
