"""
Response envelope formatter.

Every endpoint answers with the same JSON shape::

    {"code": 10000, "message": "...", "success": true, "data": ...,
     "timestamp": "2026-01-01T00:00:00+00:00", "request_id": "..."}

List endpoints add a ``pagination`` block, errors may add ``sub_code`` and
``sub_message``. The HTTP status of an error envelope is looked up from its
business code.
"""

import math
from typing import Any, Dict, Optional, Sequence

from fastapi.responses import JSONResponse

from app.core import business_codes
from app.core.business_codes import SUCCESS_CODE, SystemErrorCode
from app.core.clock import Clock, isoformat, utcnow
from app.core.exceptions import ValidationError
from app.schemas.response import Pagination, ResponseEnvelope

_OPTIONAL_KEYS = ("pagination", "sub_code", "sub_message")


def _dump(envelope: ResponseEnvelope) -> Dict[str, Any]:
    body = envelope.model_dump(mode="json", by_alias=True)
    for key in _OPTIONAL_KEYS:
        if body.get(key) is None:
            body.pop(key, None)
    return body


def success(
    data: Any = None,
    message: Optional[str] = None,
    request_id: Optional[str] = None,
    clock: Clock = utcnow,
) -> Dict[str, Any]:
    return _dump(ResponseEnvelope(
        code=SUCCESS_CODE,
        message=message or business_codes.get_message(SUCCESS_CODE),
        success=True,
        data=data,
        timestamp=isoformat(clock()),
        request_id=request_id,
    ))


def build_pagination(page: int, page_size: int, total: int) -> Pagination:
    """
    Args:
        page: 1-based page number
        page_size: Items per page, must be positive
        total: Total number of matching items

    Returns:
        Pagination: ``total_pages`` is ``ceil(total / page_size)``, 0 for no items
    """
    if page_size <= 0:
        raise ValidationError("pageSize must be a positive integer")
    if page <= 0:
        raise ValidationError("page must be a positive integer")
    if total < 0:
        raise ValidationError("total must not be negative")
    total_pages = math.ceil(total / page_size) if total else 0
    return Pagination(
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


def paginated(
    items: Sequence[Any],
    page: int,
    page_size: int,
    total: int,
    message: Optional[str] = None,
    request_id: Optional[str] = None,
    clock: Clock = utcnow,
) -> Dict[str, Any]:
    return _dump(ResponseEnvelope(
        code=SUCCESS_CODE,
        message=message or business_codes.get_message(SUCCESS_CODE),
        success=True,
        data=list(items),
        timestamp=isoformat(clock()),
        request_id=request_id,
        pagination=build_pagination(page, page_size, total),
    ))


def error(
    code: int,
    message: Optional[str] = None,
    detail: Any = None,
    sub_code: Optional[str] = None,
    sub_message: Optional[str] = None,
    request_id: Optional[str] = None,
    clock: Clock = utcnow,
) -> Dict[str, Any]:
    """Error envelope; unregistered codes are reported as a generic system error."""
    if not business_codes.is_registered(code) or business_codes.is_success(code):
        code = SystemErrorCode.SYSTEM_ERROR
        message = None
    code = int(code)
    return _dump(ResponseEnvelope(
        code=code,
        message=message or business_codes.get_message(code),
        success=False,
        data=detail,
        timestamp=isoformat(clock()),
        request_id=request_id,
        sub_code=sub_code,
        sub_message=sub_message,
    ))


def to_response(
    envelope: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
    status_code: Optional[int] = None,
) -> JSONResponse:
    """Wrap an envelope in a ``JSONResponse`` carrying the code's HTTP status unless overridden."""
    if status_code is None:
        status_code = business_codes.resolve(envelope.get("code", SystemErrorCode.SYSTEM_ERROR)).http_status
    return JSONResponse(status_code=status_code, content=envelope, headers=headers)
