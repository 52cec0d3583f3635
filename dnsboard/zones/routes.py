from typing import Optional

from fastapi import APIRouter, Depends, Query

from dnsboard.errors import CacheFault, ValidationError
from dnsboard.ratelimit import enforce_rate_limit
from dnsboard.services import Services, current_user, get_services
from dnsboard.sync.engine import MIRROR
from dnsboard.zones.model import ZONE_STATUSES

MAX_PER_PAGE = 100

zone_router = APIRouter(prefix="/api/v1", tags=["Zones"], dependencies=[Depends(enforce_rate_limit)])


@zone_router.get("/zones")
def list_zones(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1),
    name: Optional[str] = None,
    status: Optional[str] = None,
    account_id: Optional[str] = None,
    freshness: str = MIRROR,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
):
    """
    List zones from the local mirror (or the provider when freshness asks for it).
    """
    if status and status not in ZONE_STATUSES:
        raise ValidationError("Unknown zone status", fields={"status": f"must be one of {', '.join(ZONE_STATUSES)}"})
    per_page = min(per_page, MAX_PER_PAGE)
    zones, paging = services.sync.read_zones(
        user_id,
        {"name": name, "status": status, "account_id": account_id},
        page=page,
        per_page=per_page,
        freshness=freshness,
    )
    return {"success": True, "data": zones, "pagination": paging}


@zone_router.post("/zones/sync")
def sync_all_zones(user_id: str = Depends(current_user), services: Services = Depends(get_services)):
    result = services.sync.sync_zones(user_id)
    return {"success": True, "data": result, "message": "Zone list synchronized"}


@zone_router.get("/zones/{zone_id}")
def get_zone(zone_id: str, user_id: str = Depends(current_user), services: Services = Depends(get_services)):
    return {"success": True, "data": services.sync.read_zone(user_id, zone_id)}


@zone_router.post("/zones/{zone_id}/sync")
def sync_zone(
    zone_id: str,
    prune: bool = False,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
):
    """
    Pull the zone and its records from the provider into the local mirror.
    A partial sync still answers 200; the body says which part failed.
    """
    result = services.sync.sync_zone(user_id, zone_id, prune=prune)
    if result.status == "failed":
        raise CacheFault("Zone could not be stored in the local mirror", details=result.to_dict())
    message = {
        "success": "Zone data synchronized successfully",
        "partial": "Zone synchronized, but some DNS records could not be synchronized",
    }[result.status]
    return {"success": True, "data": result.to_dict(), "message": message}


@zone_router.get("/zones/{zone_id}/dns-records")
def list_zone_records(
    zone_id: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1),
    type: Optional[str] = None,
    name: Optional[str] = None,
    content: Optional[str] = None,
    proxied: Optional[bool] = None,
    freshness: str = MIRROR,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
):
    per_page = min(per_page, MAX_PER_PAGE)
    records, paging = services.sync.read_records(
        user_id,
        zone_id,
        {"type": type, "name": name, "content": content, "proxied": proxied},
        page=page,
        per_page=per_page,
        freshness=freshness,
    )
    return {"success": True, "data": records, "pagination": paging}
