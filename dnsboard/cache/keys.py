from typing import Any, Dict, Optional
from urllib.parse import urlencode

ZONE_LIST_PREFIX = "zones?"


def _query(params: Optional[Dict[str, Any]]) -> str:
    items = sorted((k, str(v)) for k, v in (params or {}).items() if v is not None and v != "")
    return urlencode(items)


def zone_list_key(params: Optional[Dict[str, Any]] = None) -> str:
    return ZONE_LIST_PREFIX + _query(params)


def record_list_prefix(zone_id: str) -> str:
    return f"zones/{zone_id}/dns_records?"


def record_list_key(zone_id: str, params: Optional[Dict[str, Any]] = None) -> str:
    return record_list_prefix(zone_id) + _query(params)
