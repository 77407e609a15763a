"""
Custom exception classes for the 5C Community Group Orchestrator.

Services raise these domain errors; the API layer maps them to HTTP
responses through each class's ``http_status``.
"""
from typing import Any, Dict, Optional
import uuid

from fastapi import status


class FiveCError(Exception):
    """Base exception for orchestrator errors."""

    error_code = "FVC_000"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        detail: str,
        error_code: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **context
    ):
        self.detail = detail
        if error_code:
            self.error_code = error_code
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.context = context
        super().__init__(detail)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.detail,
            "correlation_id": self.correlation_id,
            "context": self.context,
        }


class NotFoundError(FiveCError):
    """Referenced thread or group does not exist."""

    error_code = "FVC_001"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: str, **context):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} '{entity_id}' not found",
            entity=entity,
            entity_id=entity_id,
            **context
        )


class ConfigError(FiveCError):
    """Gateway credentials are missing. Fatal, never retried."""

    error_code = "FVC_002"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, service_name: str, missing: Optional[list] = None, **context):
        self.service_name = service_name
        self.missing = missing or []
        detail = f"Missing {service_name} configuration"
        if self.missing:
            detail = f"{detail}: {', '.join(self.missing)}"
        super().__init__(detail, service_name=service_name, missing=self.missing, **context)


class GatewayError(FiveCError):
    """Transient email/SMS provider failure."""

    error_code = "FVC_003"
    http_status = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        service_name: str,
        message: str,
        status_code: Optional[int] = None,
        **context
    ):
        self.service_name = service_name
        self.status_code = status_code
        super().__init__(
            f"[{service_name}] {message}",
            service_name=service_name,
            status_code=status_code,
            **context
        )


class ConflictError(FiveCError):
    """A status-transition precondition was violated."""

    error_code = "FVC_004"
    http_status = status.HTTP_409_CONFLICT

    def __init__(
        self,
        detail: str,
        entity_id: Optional[str] = None,
        expected_status: Optional[str] = None,
        current_status: Optional[str] = None,
        **context
    ):
        self.entity_id = entity_id
        self.expected_status = expected_status
        self.current_status = current_status
        super().__init__(
            detail,
            entity_id=entity_id,
            expected_status=expected_status,
            current_status=current_status,
            **context
        )


class ComputeError(FiveCError):
    """External match/export compute service failure."""

    error_code = "FVC_005"
    http_status = status.HTTP_502_BAD_GATEWAY

    def __init__(self, service_name: str, message: str, **context):
        self.service_name = service_name
        super().__init__(f"[{service_name}] {message}", service_name=service_name, **context)


class ExportError(ComputeError):
    """Export rendering service failure."""

    error_code = "FVC_005_EXPORT"


class CommandValidationError(FiveCError):
    """A command struct failed validation before dispatch."""

    error_code = "FVC_006"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, detail: str, field: Optional[str] = None, value: Optional[Any] = None):
        self.field = field
        self.value = value
        if field:
            detail = f"Validation failed for field '{field}': {detail}"
        super().__init__(detail, field=field, value=value)


class OperationCancelledError(FiveCError):
    """A long-running operation was cancelled by its caller."""

    error_code = "FVC_007"
    http_status = 499

    def __init__(self, operation: str, **context):
        self.operation = operation
        super().__init__(f"Operation '{operation}' was cancelled", operation=operation, **context)


def get_user_friendly_error_message(error_code: str) -> str:
    """Get user-friendly error message for error code."""
    error_messages = {
        "FVC_001": "The requested item could not be found.",
        "FVC_002": "Messaging is not configured. Please contact support.",
        "FVC_003": "Message delivery failed. Please try again later.",
        "FVC_004": "This item was already updated by someone else.",
        "FVC_005": "The matching service is unavailable. Please try again later.",
        "FVC_006": "Validation failed. Please check your input.",
        "FVC_007": "The operation was cancelled.",
    }
    base_code = "_".join(error_code.split("_")[:2])
    return error_messages.get(base_code, "An error occurred. Please try again.")
