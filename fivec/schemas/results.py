"""
Result schemas returned by orchestration operations.
"""
from typing import List

from pydantic import BaseModel, Field

from fivec.models.sms import SMSMessage, SMSThread


class NotificationBatchResult(BaseModel):
    """Outcome of a group notification batch."""

    emails_sent: int = Field(0, ge=0, description="Successful member emails across all groups")
    sms_sent: int = Field(0, ge=0, description="Successful member texts across all groups")
    groups_processed: int = Field(0, ge=0, description="Groups whose members were all attempted")
    failed_groups: List[str] = Field(
        default_factory=list, description="Groups that could not be loaded"
    )
    cancelled: bool = Field(False, description="Batch stopped early by the caller")


class SMSSendResult(BaseModel):
    """Outcome of a single SMS send."""

    message_sid: str
    thread_id: str
    response_link: str


class MatchResult(BaseModel):
    """Summary returned by the match computation service."""

    groups_created: int = Field(..., ge=0)
    members_matched: int = Field(..., ge=0)


class ExportPayload(BaseModel):
    """Rendered export handed back to the caller for delivery."""

    format: str
    content: bytes
    filename: str
    media_type: str


class ThreadConversation(BaseModel):
    """A thread resolved from its reply link, with its message log."""

    thread: SMSThread
    messages: List[SMSMessage] = Field(default_factory=list)
