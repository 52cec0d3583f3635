from typing import Optional

from fastapi import APIRouter, Depends, Query

from dnsboard.history.model import OperationHistory
from dnsboard.ratelimit import enforce_rate_limit
from dnsboard.services import current_user
from dnsboard.sync.engine import pagination

history_router = APIRouter(prefix="/api/v1", tags=["History"], dependencies=[Depends(enforce_rate_limit)])


@history_router.get("/history")
def list_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    resource_id: Optional[str] = None,
    operation_type: Optional[str] = None,
    user_id: str = Depends(current_user),
):
    """
    Operation history of the user, newest first.
    """
    query = OperationHistory.select().where(OperationHistory.user_id == user_id)
    if resource_id:
        query = query.where(OperationHistory.resource_id == resource_id)
    if operation_type:
        query = query.where(OperationHistory.operation_type == operation_type)
    total = query.count()
    entries = query.order_by(OperationHistory.created_at.desc()).paginate(page, per_page)
    return {
        "success": True,
        "data": [entry.to_dict() for entry in entries],
        "pagination": pagination(page, per_page, total),
    }
