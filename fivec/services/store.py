"""
Durable-store interfaces and an in-memory implementation.

The in-memory store backs tests and local development; production uses
``fivec.services.database.SupabaseStore``. Both satisfy the same accessor
protocols.
"""
import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

import structlog

from fivec.core.exceptions import NotFoundError
from fivec.models.five_c import FiveCEvent
from fivec.models.group import Group, GroupStatus
from fivec.models.sms import SMSMessage, SMSThread

logger = structlog.get_logger(__name__)


class EventAccessor(Protocol):
    async def list_events(self, group_id: str) -> List[FiveCEvent]: ...


class GroupAccessor(Protocol):
    async def get_group(self, group_id: str) -> Group: ...

    async def update_group_status(self, group_id: str, status: GroupStatus) -> None: ...

    async def compare_and_set_group_status(
        self,
        group_id: str,
        expected: GroupStatus,
        new: GroupStatus,
        **fields: Any,
    ) -> bool: ...


class ThreadStore(Protocol):
    async def get_thread(self, thread_id: str) -> Optional[SMSThread]: ...

    async def get_thread_by_token(self, token: str) -> Optional[SMSThread]: ...

    async def find_thread_by_phone(self, phone_number: str) -> Optional[SMSThread]: ...

    async def insert_thread(self, thread: SMSThread) -> SMSThread: ...

    async def update_thread(self, thread_id: str, **fields: Any) -> SMSThread: ...

    async def list_threads_for_user(self, user_id: str) -> List[SMSThread]: ...

    async def insert_message(self, message: SMSMessage) -> SMSMessage: ...

    async def list_messages(self, thread_id: str) -> List[SMSMessage]: ...


class InMemoryStore:
    """Process-local store implementing every accessor protocol."""

    def __init__(self):
        self.groups: Dict[str, Group] = {}
        self.events: Dict[str, List[FiveCEvent]] = {}
        self.threads: Dict[str, SMSThread] = {}
        self.messages: List[SMSMessage] = []
        self._lock = asyncio.Lock()

    # Seeding helpers
    def add_group(self, group: Group) -> Group:
        self.groups[group.id] = group
        return group

    def add_events(self, group_id: str, events: List[FiveCEvent]) -> None:
        self.events.setdefault(group_id, []).extend(events)

    # Events
    async def list_events(self, group_id: str) -> List[FiveCEvent]:
        return list(self.events.get(group_id, []))

    # Groups
    async def get_group(self, group_id: str) -> Group:
        group = self.groups.get(group_id)
        if group is None:
            raise NotFoundError("Group", group_id)
        return group.model_copy(deep=True)

    async def update_group_status(self, group_id: str, status: GroupStatus) -> None:
        group = self.groups.get(group_id)
        if group is None:
            raise NotFoundError("Group", group_id)
        self.groups[group_id] = group.model_copy(update={"status": status})

    async def compare_and_set_group_status(
        self,
        group_id: str,
        expected: GroupStatus,
        new: GroupStatus,
        **fields: Any,
    ) -> bool:
        async with self._lock:
            group = self.groups.get(group_id)
            if group is None:
                raise NotFoundError("Group", group_id)
            if group.status != expected:
                return False
            self.groups[group_id] = group.model_copy(update={"status": new, **fields})
            return True

    # Threads
    async def get_thread(self, thread_id: str) -> Optional[SMSThread]:
        return self.threads.get(thread_id)

    async def get_thread_by_token(self, token: str) -> Optional[SMSThread]:
        return next((t for t in self.threads.values() if t.token == token), None)

    async def find_thread_by_phone(self, phone_number: str) -> Optional[SMSThread]:
        candidates = [
            thread for thread in self.threads.values()
            if thread.phone_number == phone_number
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda t: t.updated_at)

    async def insert_thread(self, thread: SMSThread) -> SMSThread:
        self.threads[thread.id] = thread
        return thread

    async def update_thread(self, thread_id: str, **fields: Any) -> SMSThread:
        thread = self.threads.get(thread_id)
        if thread is None:
            raise NotFoundError("SMSThread", thread_id)
        updated = thread.model_copy(update={**fields, "updated_at": datetime.utcnow()})
        self.threads[thread_id] = updated
        return updated

    async def list_threads_for_user(self, user_id: str) -> List[SMSThread]:
        threads = [
            thread for thread in self.threads.values()
            if thread.user_id == user_id and thread.is_active
        ]
        return sorted(threads, key=lambda t: t.updated_at, reverse=True)

    async def insert_message(self, message: SMSMessage) -> SMSMessage:
        self.messages.append(message)
        return message

    async def list_messages(self, thread_id: str) -> List[SMSMessage]:
        # Stable sort keeps insertion order for identical timestamps
        return sorted(
            (m for m in self.messages if m.thread_id == thread_id),
            key=lambda m: m.created_at,
        )
