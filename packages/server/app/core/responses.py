"""JSON envelope helpers: {success, message, data?, errors?, pagination?}."""

from __future__ import annotations

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from taskgraph_shared.schemas.common import ApiResponse, Pagination


def envelope(
    data: Any = None,
    message: str = "Operation completed successfully",
    *,
    status_code: int = 200,
    success: bool = True,
    errors: Optional[dict] = None,
    pagination: Optional[Pagination] = None,
) -> JSONResponse:
    body = ApiResponse(success=success, message=message, errors=errors)
    content = {"success": body.success, "message": body.message}
    # Optional keys are omitted entirely rather than sent as null.
    if data is not None:
        content["data"] = jsonable_encoder(data)
    if body.errors is not None:
        content["errors"] = body.errors
    if pagination is not None:
        content["pagination"] = pagination.as_response()
    return JSONResponse(status_code=status_code, content=content)


def error_envelope(status_code: int, message: str, errors: Optional[dict] = None) -> JSONResponse:
    return envelope(message=message, status_code=status_code, success=False, errors=errors)
