"""
SMS conversation models: one thread per phone number, append-only messages.
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4
import secrets

from pydantic import BaseModel, ConfigDict, Field


def _new_id() -> str:
    return str(uuid4())


def _new_token() -> str:
    return secrets.token_urlsafe(24)


class MessageDirection(str, Enum):
    """Direction of an SMS relative to the service"""
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class SMSThread(BaseModel):
    """SMS conversation state for one phone number.

    A thread starts Unbound (no ``user_id``) and becomes Bound once an
    inbound reply is resolved to an account. It never reverts.
    """

    id: str = Field(default_factory=_new_id)
    phone_number: str
    user_id: Optional[str] = None
    token: str = Field(default_factory=_new_token, description="Opaque reply-link token")
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_bound(self) -> bool:
        return self.user_id is not None


class SMSMessage(BaseModel):
    """A single logged SMS. Never edited after creation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    thread_id: str
    direction: MessageDirection
    body: str
    provider_message_id: Optional[str] = None
    provider_status: Optional[str] = None
    from_number: Optional[str] = None
    to_number: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
