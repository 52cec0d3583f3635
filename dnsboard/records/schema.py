from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class RecordCreate(BaseModel):
    type: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    ttl: Optional[int] = None
    proxied: Optional[bool] = None
    priority: Optional[int] = None
    comment: Optional[str] = None
    tags: Optional[List[str]] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "type": "A",
                "name": "www",
                "content": "192.0.2.1",
                "ttl": 1,
                "proxied": True,
            }
        }
    }


class RecordUpdate(BaseModel):
    type: Optional[str] = None
    name: Optional[str] = None
    content: Optional[str] = None
    ttl: Optional[int] = None
    proxied: Optional[bool] = None
    priority: Optional[int] = None
    comment: Optional[str] = None
    tags: Optional[List[str]] = None


class BatchRequest(BaseModel):
    operation: Literal["update", "delete"]
    record_ids: List[str] = Field(..., min_length=1)
    data: Optional[RecordUpdate] = None


class VerifyTokenRequest(BaseModel):
    api_token: Optional[str] = None
