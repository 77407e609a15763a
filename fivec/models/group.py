"""
Group and membership models read and written by the orchestrator.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class GroupStatus(str, Enum):
    """Group lifecycle status"""
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    FULL = "full"


class MemberStatus(str, Enum):
    """Group membership status"""
    INVITED = "invited"
    ASSIGNED = "assigned"
    DECLINED = "declined"


class NotificationChannel(str, Enum):
    """Delivery channel for group notifications"""
    EMAIL = "email"
    SMS = "sms"


class MemberProfile(BaseModel):
    """Profile fields joined onto a membership by the group accessor."""

    full_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else "Unknown"


class GroupMember(BaseModel):
    """Membership of a user in a group."""

    group_id: str
    user_id: str
    status: MemberStatus = MemberStatus.ASSIGNED
    profile: Optional[MemberProfile] = None


class Group(BaseModel):
    """Community group with its members."""

    id: str
    name: str
    description: Optional[str] = None
    status: GroupStatus = GroupStatus.DRAFT
    scheduled_date: Optional[datetime] = None
    host_user_id: Optional[str] = None
    approved_by: Optional[str] = None
    members: List[GroupMember] = Field(default_factory=list)
