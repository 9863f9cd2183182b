"""
Typed rejections returned by the service layer.

Services never raise for business outcomes. They hand back a ``Rejection``
and the API layer decides the HTTP status through ``raise_for_rejection``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NoReturn, Optional

from fastapi import HTTPException

DEFAULT_FORBIDDEN_MESSAGE = "Forbidden. You do not have permission to perform this action"


class RejectionKind(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    VALIDATION_FAILED = "validation_failed"
    BUSINESS_RULE = "business_rule"


HTTP_STATUS_FOR_KIND = {
    RejectionKind.NOT_FOUND: 404,
    RejectionKind.FORBIDDEN: 403,
    RejectionKind.VALIDATION_FAILED: 422,
    RejectionKind.BUSINESS_RULE: 400,
}


@dataclass(frozen=True)
class Rejection:
    kind: RejectionKind
    message: str
    errors: Optional[dict[str, list[str]]] = None

    @classmethod
    def not_found(cls, resource: str = "Resource") -> "Rejection":
        return cls(RejectionKind.NOT_FOUND, f"{resource} not found")

    @classmethod
    def forbidden(cls, message: str = DEFAULT_FORBIDDEN_MESSAGE) -> "Rejection":
        return cls(RejectionKind.FORBIDDEN, message)

    @classmethod
    def validation_failed(cls, field: str, message: str) -> "Rejection":
        return cls(RejectionKind.VALIDATION_FAILED, "Validation failed", {field: [message]})

    @classmethod
    def business_rule(cls, message: str) -> "Rejection":
        return cls(RejectionKind.BUSINESS_RULE, message)


class APIError(HTTPException):
    """HTTPException carrying optional field-level errors for the envelope."""

    def __init__(self, status_code: int, message: str, errors: Optional[dict] = None):
        super().__init__(status_code=status_code, detail=message)
        self.errors = errors


def raise_for_rejection(rejection: Rejection) -> NoReturn:
    raise APIError(
        status_code=HTTP_STATUS_FOR_KIND[rejection.kind],
        message=rejection.message,
        errors=rejection.errors,
    )
