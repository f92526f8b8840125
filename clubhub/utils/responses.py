"""
Response envelopes shared by every route and exception handler
"""

from typing import Any, Dict, List, Optional
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from clubhub.core.errors import DomainError, UnavailableError
from clubhub.schemas.common import StandardResponse, ErrorResponse

def success_response(
    message: str,
    data: Any = None,
    status_code: int = 200
) -> JSONResponse:
    """Create standardized success response"""
    response = StandardResponse(
        success=True,
        message=message,
        data=jsonable_encoder(data)
    )
    return JSONResponse(
        content=response.model_dump(),
        status_code=status_code
    )

def error_response(
    message: str,
    error_code: Optional[str] = None,
    details: Any = None,
    status_code: int = 400,
    headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    """Create standardized error response"""
    response = ErrorResponse(
        message=message,
        error_code=error_code,
        details=jsonable_encoder(details)
    )
    return JSONResponse(
        content=response.model_dump(),
        status_code=status_code,
        headers=headers
    )

STATUS_BY_KIND = {
    "not_found": 404,
    "validation_error": 422,
    "forbidden": 403,
    "conflict": 409,
}

def domain_error_response(exc: DomainError) -> JSONResponse:
    """Render a domain error; retryable unavailability is a 503 with Retry-After"""
    headers = None
    if isinstance(exc, UnavailableError):
        status_code = 503 if exc.retryable else 400
        if exc.retryable:
            headers = {"Retry-After": "1"}
    else:
        status_code = STATUS_BY_KIND.get(exc.kind, 400)
    return error_response(
        message=exc.message,
        error_code=exc.kind,
        details=exc.context,
        status_code=status_code,
        headers=headers
    )

def field_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Flatten pydantic error entries into {field, message} pairs"""
    return [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in errors
    ]
