"""Error taxonomy shared by services and HTTP handlers."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

from fastapi import status
from fastapi.responses import JSONResponse


@dataclass(eq=False)
class ApiError(Exception):
    """Domain failure that maps onto the ``{success, message, error}`` envelope."""

    message: str
    code: str = "internal_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def payload(self) -> Dict[str, Any]:
        """Serialized representation suitable for JSON responses."""

        body: Dict[str, Any] = {"success": False, "message": self.message, "error": self.code}
        if self.detail:
            body.update(self.detail)
        return body

    def with_status(self, status_code: int) -> "ApiError":
        return replace(self, status_code=status_code)

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.payload)


@dataclass(eq=False)
class ValidationError(ApiError):
    code: str = "validation_error"
    status_code: int = status.HTTP_400_BAD_REQUEST


@dataclass(eq=False)
class InvalidStateError(ApiError):
    code: str = "invalid_state"
    status_code: int = status.HTTP_400_BAD_REQUEST


@dataclass(eq=False)
class NotFoundError(ApiError):
    code: str = "not_found"
    status_code: int = status.HTTP_404_NOT_FOUND


@dataclass(eq=False)
class UnauthorizedError(ApiError):
    code: str = "unauthorized"
    status_code: int = status.HTTP_401_UNAUTHORIZED


@dataclass(eq=False)
class ForbiddenError(ApiError):
    code: str = "forbidden"
    status_code: int = status.HTTP_403_FORBIDDEN


@dataclass(eq=False)
class ConflictError(ApiError):
    code: str = "conflict"
    status_code: int = status.HTTP_409_CONFLICT


@dataclass(eq=False)
class UpstreamError(ApiError):
    """An external collaborator (payment gateway) failed; never retried."""

    code: str = "upstream_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


@dataclass(eq=False)
class ConfigurationError(ApiError):
    """Deployment misconfiguration, e.g. no trial plan seeded."""

    code: str = "configuration_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


@dataclass(eq=False)
class InternalError(ApiError):
    code: str = "internal_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


__all__ = [
    "ApiError",
    "ConfigurationError",
    "ConflictError",
    "ForbiddenError",
    "InternalError",
    "InvalidStateError",
    "NotFoundError",
    "UnauthorizedError",
    "UpstreamError",
    "ValidationError",
]
