"""
SMS thread management: one conversation thread per phone number.
"""
import asyncio
from typing import Dict, List, Optional

import structlog

from fivec.config import get_settings
from fivec.core.exceptions import ConflictError, NotFoundError
from fivec.models.sms import MessageDirection, SMSMessage, SMSThread
from fivec.services.store import ThreadStore

logger = structlog.get_logger(__name__)

RESPONSE_PATH = "/sms-respond"


class ThreadManager:
    """Owns SMS thread identity and the append-only message log.

    Records are persisted through the injected ``ThreadStore``.
    """

    def __init__(self, store: ThreadStore, response_base_url: Optional[str] = None):
        self.store = store
        self.response_base_url = (
            response_base_url or get_settings().sms_response_base_url
        ).rstrip("/")
        self._creation_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    async def get_or_create_thread(
        self, phone_number: str, thread_id: Optional[str] = None
    ) -> SMSThread:
        """
        Resolve the thread for an outbound message.

        Args:
            phone_number: Recipient phone number
            thread_id: Existing thread to continue, if known

        Returns:
            The referenced thread, the phone number's thread, or a new
            Unbound thread. The thread may be unsubscribed; callers check
            ``is_active`` before sending.

        Raises:
            NotFoundError: If ``thread_id`` is given but does not exist
        """
        if thread_id:
            thread = await self.store.get_thread(thread_id)
            if thread is None:
                logger.warning("SMS thread not found", thread_id=thread_id)
                raise NotFoundError("SMSThread", thread_id)
            return thread

        return await self._find_or_create(phone_number)

    async def find_thread_for_inbound(self, phone_number: str) -> SMSThread:
        """Find or create the thread an inbound message from ``phone_number`` belongs to."""
        thread = await self._find_or_create(phone_number)
        # Touch so the most recently used thread wins future lookups
        return await self.store.update_thread(thread.id)

    async def get_thread_by_token(self, token: str) -> SMSThread:
        """
        Resolve a web reply-link token to its thread.

        Raises:
            NotFoundError: If no thread carries the token
        """
        thread = await self.store.get_thread_by_token(token)
        if thread is None:
            logger.warning("Unknown SMS reply token")
            raise NotFoundError("SMSThread", "reply-link")
        return thread

    async def _find_or_create(self, phone_number: str) -> SMSThread:
        lock = self._creation_locks.setdefault(phone_number, asyncio.Lock())
        self._lock_users[phone_number] = self._lock_users.get(phone_number, 0) + 1
        try:
            async with lock:
                existing = await self.store.find_thread_by_phone(phone_number)
                if existing is not None:
                    return existing

                thread = await self.store.insert_thread(SMSThread(phone_number=phone_number))
                logger.info("Created SMS thread", thread_id=thread.id, phone_number=phone_number)
                return thread
        finally:
            self._release_lock(phone_number)

    def _release_lock(self, phone_number: str) -> None:
        """Drop the phone number's lock once no caller holds or waits on it."""
        remaining = self._lock_users[phone_number] - 1
        if remaining:
            self._lock_users[phone_number] = remaining
        else:
            del self._lock_users[phone_number]
            del self._creation_locks[phone_number]

    async def append_message(
        self,
        thread: SMSThread,
        direction: MessageDirection,
        body: str,
        provider_message_id: Optional[str] = None,
        provider_status: Optional[str] = None,
        from_number: Optional[str] = None,
        to_number: Optional[str] = None,
    ) -> SMSMessage:
        """Append a new message to the thread's log."""
        message = SMSMessage(
            thread_id=thread.id,
            direction=MessageDirection(direction),
            body=body,
            provider_message_id=provider_message_id,
            provider_status=provider_status,
            from_number=from_number,
            to_number=to_number,
        )
        await self.store.insert_message(message)

        logger.info(
            "SMS message logged",
            thread_id=thread.id,
            direction=message.direction.value,
            provider_message_id=provider_message_id,
            provider_status=provider_status,
        )
        return message

    def build_response_link(self, thread: SMSThread) -> str:
        """Web reply link for a thread."""
        return f"{self.response_base_url}{RESPONSE_PATH}/{thread.token}"

    async def bind_user(self, thread: SMSThread, user_id: str) -> SMSThread:
        """
        Bind a thread to the account an inbound reply was resolved to.

        Raises:
            ConflictError: If the thread is already bound to another user
        """
        if thread.user_id == user_id:
            return thread
        if thread.is_bound:
            raise ConflictError(
                "SMS thread is already bound to another user",
                entity_id=thread.id,
                expected_status="unbound",
                current_status="bound",
            )

        bound = await self.store.update_thread(thread.id, user_id=user_id)
        logger.info("SMS thread bound to user", thread_id=thread.id, user_id=user_id)
        return bound

    async def set_active(self, thread: SMSThread, active: bool) -> SMSThread:
        """Subscribe or unsubscribe a thread from outbound notifications."""
        updated = await self.store.update_thread(thread.id, is_active=active)
        logger.info("SMS thread subscription changed", thread_id=thread.id, is_active=active)
        return updated

    async def list_messages(self, thread_id: str) -> List[SMSMessage]:
        """Messages of a thread in creation order."""
        if await self.store.get_thread(thread_id) is None:
            raise NotFoundError("SMSThread", thread_id)
        return await self.store.list_messages(thread_id)

    async def list_user_threads(self, user_id: str) -> List[SMSThread]:
        """Active threads bound to a user, most recent first."""
        return await self.store.list_threads_for_user(user_id)
