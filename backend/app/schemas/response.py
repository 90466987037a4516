"""Generic API response schemas"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Any


class Pagination(BaseModel):
    """Pagination block of a list response"""
    model_config = ConfigDict(populate_by_name=True)

    total: int
    page: int
    page_size: int = Field(..., alias="pageSize")
    total_pages: int = Field(..., alias="totalPages")
    has_next: bool = Field(..., alias="hasNext")
    has_prev: bool = Field(..., alias="hasPrev")


class ResponseEnvelope(BaseModel):
    """Uniform wrapper returned by every endpoint"""
    code: int
    message: str
    success: bool
    data: Optional[Any] = None
    timestamp: str
    request_id: Optional[str] = None
    pagination: Optional[Pagination] = None
    sub_code: Optional[str] = None
    sub_message: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    timestamp: str
    database: str
