"""
Models package for the 5C Community Group Orchestrator.
"""
from .five_c import (
    Dimension,
    DimensionStatus,
    FiveCEvent,
    FiveCStatus,
    GroupConfig,
    GroupHealthReport,
    NextAction,
)
from .group import (
    Group,
    GroupMember,
    GroupStatus,
    MemberProfile,
    MemberStatus,
    NotificationChannel,
)
from .sms import MessageDirection, SMSMessage, SMSThread

__all__ = [
    "Dimension",
    "DimensionStatus",
    "FiveCEvent",
    "FiveCStatus",
    "GroupConfig",
    "GroupHealthReport",
    "NextAction",
    "Group",
    "GroupMember",
    "GroupStatus",
    "MemberProfile",
    "MemberStatus",
    "NotificationChannel",
    "MessageDirection",
    "SMSMessage",
    "SMSThread",
]
