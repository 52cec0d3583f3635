from typing import Optional

from fastapi import APIRouter, Depends, Query

from dnsboard.ratelimit import enforce_rate_limit
from dnsboard.records.schema import BatchRequest, RecordCreate, RecordUpdate, VerifyTokenRequest
from dnsboard.services import Services, current_user, get_services
from dnsboard.sync.engine import LIVE, MIRROR

MAX_PER_PAGE = 100

record_router = APIRouter(prefix="/api/v1", tags=["DNS Records"], dependencies=[Depends(enforce_rate_limit)])


# Live path: provider reads and writes, kept coherent with the mirror.

@record_router.post("/cloudflare/verify-token")
def verify_token(
    body: Optional[VerifyTokenRequest] = None,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
):
    token = body.api_token if body else None
    info = services.client.verify_credential(token)
    return {"success": True, "data": info, "message": "API token verified"}


@record_router.get("/cloudflare/zones")
def list_provider_zones(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1),
    name: Optional[str] = None,
    status: Optional[str] = None,
    freshness: str = LIVE,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
):
    zones, paging = services.sync.read_zones(
        user_id, {"name": name, "status": status},
        page=page, per_page=min(per_page, MAX_PER_PAGE), freshness=freshness,
    )
    return {"success": True, "data": zones, "pagination": paging}


@record_router.get("/cloudflare/zones/{zone_id}/dns-records")
def list_provider_records(
    zone_id: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1),
    type: Optional[str] = None,
    name: Optional[str] = None,
    content: Optional[str] = None,
    proxied: Optional[bool] = None,
    freshness: str = LIVE,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
):
    records, paging = services.sync.read_records(
        user_id, zone_id,
        {"type": type, "name": name, "content": content, "proxied": proxied},
        page=page, per_page=min(per_page, MAX_PER_PAGE), freshness=freshness,
    )
    return {"success": True, "data": records, "pagination": paging}


@record_router.get("/cloudflare/zones/{zone_id}/dns-records/{record_id}")
def get_provider_record(
    zone_id: str,
    record_id: str,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
):
    return {"success": True, "data": services.sync.read_record(user_id, zone_id, record_id, freshness=LIVE)}


@record_router.post("/cloudflare/zones/{zone_id}/dns-records", status_code=201)
def create_record(
    zone_id: str,
    body: RecordCreate,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
):
    result = services.coordinator.create_record(user_id, zone_id, body.model_dump(exclude_none=True))
    return {"success": True, "data": result.to_dict(), "message": "DNS record created"}


@record_router.put("/cloudflare/zones/{zone_id}/dns-records/{record_id}")
@record_router.patch("/cloudflare/zones/{zone_id}/dns-records/{record_id}")
def update_record(
    zone_id: str,
    record_id: str,
    body: RecordUpdate,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
):
    result = services.coordinator.update_record(user_id, zone_id, record_id, body.model_dump(exclude_unset=True))
    return {"success": True, "data": result.to_dict(), "message": "DNS record updated"}


@record_router.delete("/cloudflare/zones/{zone_id}/dns-records/{record_id}")
def delete_record(
    zone_id: str,
    record_id: str,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
):
    result = services.coordinator.delete_record(user_id, zone_id, record_id)
    message = "DNS record was already deleted" if result.already_deleted else "DNS record deleted"
    return {"success": True, "data": result.to_dict(), "message": message}


# Mirror path across every zone of the user.

@record_router.post("/dns/records/batch")
def batch_records(
    body: BatchRequest,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
):
    data = body.data.model_dump(exclude_unset=True) if body.data else None
    results = services.coordinator.batch(user_id, body.operation, body.record_ids, data)
    failed = sum(1 for r in results if not r["success"])
    return {
        "success": failed == 0,
        "data": results,
        "message": f"Batch {body.operation} finished: {len(results) - failed} succeeded, {failed} failed",
    }


@record_router.get("/dns/records")
def list_records(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1),
    zone_id: Optional[str] = None,
    type: Optional[str] = None,
    name: Optional[str] = None,
    content: Optional[str] = None,
    proxied: Optional[bool] = None,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
):
    records, paging = services.sync.read_records(
        user_id, zone_id,
        {"type": type, "name": name, "content": content, "proxied": proxied},
        page=page, per_page=min(per_page, MAX_PER_PAGE), freshness=MIRROR,
    )
    return {"success": True, "data": records, "pagination": paging}


@record_router.get("/dns/records/{record_id}")
def get_record(record_id: str, user_id: str = Depends(current_user), services: Services = Depends(get_services)):
    return {"success": True, "data": services.sync.read_record(user_id, None, record_id, freshness=MIRROR)}
