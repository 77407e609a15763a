"""
Per-operation command structs, validated before dispatch.
"""
from typing import Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from fivec.core.exceptions import CommandValidationError
from fivec.models.group import NotificationChannel

ExportFormat = str
EXPORT_FORMATS = ("pdf", "excel")

C = TypeVar("C", bound=BaseModel)


def _validate_phone(v: str) -> str:
    cleaned = v.replace(" ", "").replace("-", "").replace("(", "").replace(")", "")
    if not cleaned.startswith("+") and not cleaned.isdigit():
        raise ValueError(
            "phone number must start with + for international format or contain only digits"
        )
    if len(cleaned.lstrip("+")) < 10:
        raise ValueError("phone number appears too short for a valid phone number")
    return cleaned


class ApproveGroupCommand(BaseModel):
    """Approve a pending group."""

    group_id: str = Field(..., min_length=1)
    actor_id: str = Field(..., min_length=1, description="Admin approving the group")


class SendSMSCommand(BaseModel):
    """Send a single SMS, threaded per phone number."""

    to: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    thread_id: Optional[str] = None
    group_name: Optional[str] = None
    sender_name: Optional[str] = None

    @field_validator("to")
    @classmethod
    def validate_to(cls, v):
        return _validate_phone(v)

    @field_validator("message")
    @classmethod
    def validate_message(cls, v):
        if not v.strip():
            raise ValueError("message cannot be blank")
        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "to": "+15551234567",
                "message": "Dinner moved to 7pm",
                "group_name": "Maple Street Supper Club",
                "sender_name": "Dana",
            }
        }
    }


class SendGroupNotificationsCommand(BaseModel):
    """Notify every member of the listed groups."""

    group_ids: List[str] = Field(..., min_length=1)
    channel: NotificationChannel = NotificationChannel.EMAIL


class GenerateMatchesCommand(BaseModel):
    """Run the external matcher with optional criteria weights."""

    criteria_weights: Optional[Dict[str, float]] = None

    @field_validator("criteria_weights")
    @classmethod
    def validate_weights(cls, v):
        if v is None:
            return v
        negative = [name for name, weight in v.items() if weight < 0]
        if negative:
            raise ValueError(f"criteria weights must be non-negative: {', '.join(negative)}")
        return v


class ExportGroupsCommand(BaseModel):
    """Render groups into a downloadable document."""

    format: ExportFormat = Field(..., description="pdf or excel")
    group_ids: Optional[List[str]] = None

    @field_validator("format")
    @classmethod
    def validate_format(cls, v):
        v = v.lower()
        if v not in EXPORT_FORMATS:
            raise ValueError(f"format must be one of {', '.join(EXPORT_FORMATS)}")
        return v


def build_command(command_cls: Type[C], **data) -> C:
    """Validate ``data`` into ``command_cls`` or raise CommandValidationError."""
    try:
        return command_cls(**data)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise CommandValidationError(first.get("msg", str(e)), field=field, value=first.get("input"))
