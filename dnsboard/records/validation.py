"""DNS record invariants and zone-relative name handling."""

from typing import Any, Dict, Optional

from dnsboard.errors import ValidationError

PROXIABLE_TYPES = {"A", "AAAA", "CNAME"}
RECORD_TYPES = {
    "A", "AAAA", "CAA", "CERT", "CNAME", "DNSKEY", "DS", "HTTPS", "LOC", "MX",
    "NAPTR", "NS", "PTR", "SMIMEA", "SRV", "SSHFP", "SVCB", "TLSA", "TXT", "URI",
}
AUTO_TTL = 1
MAX_TTL = 86400
MAX_PRIORITY = 65535


def to_absolute(name: Optional[str], zone_name: str) -> str:
    """Return the fully qualified form of a zone-relative name."""
    zone = zone_name.strip().rstrip(".").lower()
    label = (name or "").strip().rstrip(".")
    if label in ("", "@"):
        return zone
    if not zone:
        return label
    lowered = label.lower()
    if lowered == zone:
        return zone
    if lowered.endswith("." + zone):
        return label
    return f"{label}.{zone}"


def to_relative(name: Optional[str], zone_name: str) -> str:
    """Return the name as shown to users: "@" for the apex, short labels inside the zone."""
    zone = zone_name.strip().rstrip(".").lower()
    absolute = (name or "").strip().rstrip(".")
    lowered = absolute.lower()
    if lowered in ("", zone, "@"):
        return "@"
    suffix = "." + zone
    if lowered.endswith(suffix):
        return absolute[: -len(suffix)]
    return absolute


def _check_ttl(ttl: Any, errors: Dict[str, str]) -> Optional[int]:
    if isinstance(ttl, bool) or not isinstance(ttl, int):
        errors["ttl"] = "TTL must be an integer number of seconds"
        return None
    if ttl != AUTO_TTL and not 1 <= ttl <= MAX_TTL:
        errors["ttl"] = f"TTL must be {AUTO_TTL} (automatic) or between 1 and {MAX_TTL}"
        return None
    return ttl


def _check_priority(priority: Any, errors: Dict[str, str]) -> Optional[int]:
    if priority is None:
        errors["priority"] = "Priority is required for MX records"
        return None
    if isinstance(priority, bool) or not isinstance(priority, int):
        errors["priority"] = "Priority must be an integer"
        return None
    if not 0 <= priority <= MAX_PRIORITY:
        errors["priority"] = f"Priority must be between 0 and {MAX_PRIORITY}"
        return None
    return priority


def _clean_tags(tags: Any, errors: Dict[str, str]):
    if not isinstance(tags, (list, tuple, set)) or not all(isinstance(t, str) for t in tags):
        errors["tags"] = "Tags must be a list of strings"
        return None
    seen = []
    for tag in tags:
        if tag not in seen:
            seen.append(tag)
    return seen


def normalize_record(
    data: Dict[str, Any],
    zone_name: str,
    existing: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Validate a record payload and return what should be sent to the provider.

    Without ``existing`` the payload is a full create: type, name and content are
    required and ttl/proxied get their defaults. With ``existing`` the payload is
    a partial update; invariants are checked against the merged record but only
    the fields that change are returned.

    Raises:
        ValidationError: listing every offending field.
    """
    partial = existing is not None
    base = existing or {}
    errors: Dict[str, str] = {}
    payload: Dict[str, Any] = {}

    record_type = data.get("type") or base.get("type")
    if not record_type:
        errors["type"] = "Record type is required"
    else:
        record_type = str(record_type).strip().upper()
        if record_type not in RECORD_TYPES:
            errors["type"] = f"Unsupported record type {record_type}"
        elif "type" in data or not partial:
            payload["type"] = record_type

    if "name" in data or not partial:
        name = data.get("name")
        if name is None or not str(name).strip():
            errors["name"] = "Record name is required"
        else:
            payload["name"] = to_absolute(str(name), zone_name)

    if "content" in data or not partial:
        content = data.get("content")
        if content is None or not str(content).strip():
            errors["content"] = "Record content is required"
        else:
            payload["content"] = str(content).strip()

    if data.get("ttl") is not None:
        ttl = _check_ttl(data["ttl"], errors)
        if ttl is not None:
            payload["ttl"] = ttl
    elif not partial:
        payload["ttl"] = AUTO_TTL

    proxiable = record_type in PROXIABLE_TYPES
    if "proxied" in data and data["proxied"] is not None:
        payload["proxied"] = bool(data["proxied"]) and proxiable
    elif not partial or (not proxiable and base.get("proxied")):
        payload["proxied"] = False

    if record_type == "MX":
        priority = data.get("priority") if data.get("priority") is not None else base.get("priority")
        priority = _check_priority(priority, errors)
        if priority is not None and (data.get("priority") is not None or not partial or "type" in payload):
            payload["priority"] = priority

    if data.get("comment") is not None:
        payload["comment"] = str(data["comment"])

    if data.get("tags") is not None:
        tags = _clean_tags(data["tags"], errors)
        if tags is not None:
            payload["tags"] = tags

    if errors:
        raise ValidationError("Invalid DNS record", fields=errors)
    if partial and not payload:
        raise ValidationError("No fields to update")
    return payload
