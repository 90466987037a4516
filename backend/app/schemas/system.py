"""System management schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LoginLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int] = Field(None, serialization_alias="userId")
    username: str
    real_name: Optional[str] = Field(None, serialization_alias="realName")
    status: int
    message: Optional[str] = None
    ip_address: Optional[str] = Field(None, serialization_alias="ipAddress")
    user_agent: Optional[str] = Field(None, serialization_alias="userAgent")
    created_at: datetime = Field(..., serialization_alias="createdAt")


class CleanupResult(BaseModel):
    deleted_count: int = Field(..., serialization_alias="deletedCount")
    retention_days: int = Field(..., serialization_alias="retentionDays")
