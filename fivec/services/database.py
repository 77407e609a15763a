"""Database service integration with Supabase."""

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from supabase import Client, create_client

from fivec.config import get_settings
from fivec.core.exceptions import ConfigError, NotFoundError
from fivec.models.five_c import FiveCEvent
from fivec.models.group import Group, GroupMember, GroupStatus, MemberProfile
from fivec.models.sms import MessageDirection, SMSMessage, SMSThread

logger = structlog.get_logger(__name__)

GROUP_SELECT = """
    *,
    group_members(
        *,
        profiles(full_name, first_name, last_name, phone_number)
    )
"""

USERS_PAGE_SIZE = 1000


class SupabaseStore:
    """Accessor implementation backed by Supabase tables."""

    def __init__(self, client: Optional[Client] = None):
        if client is None:
            settings = get_settings()
            if not settings.supabase_url or not settings.supabase_key:
                raise ConfigError("Supabase", missing=["SUPABASE_URL", "SUPABASE_KEY"])
            client = create_client(settings.supabase_url, settings.supabase_key)
        self.client = client

    # Events
    async def list_events(self, group_id: str) -> List[FiveCEvent]:
        """Get the 5C event log for a group."""
        response = (
            self.client.table("five_c_events")
            .select("*")
            .eq("group_id", group_id)
            .execute()
        )
        events = []
        for row in response.data or []:
            try:
                events.append(
                    FiveCEvent(
                        id=str(row["id"]),
                        dimension=row.get("dimension") or row.get("c_key"),
                        occurred_at=row["occurred_at"],
                        metadata=row.get("meta") or {},
                    )
                )
            except (KeyError, ValueError) as e:
                logger.warning("Skipping malformed 5C event", group_id=group_id, row_id=row.get("id"), error=str(e))
        return events

    # Groups
    async def get_group(self, group_id: str) -> Group:
        """Get a group with nested members and profiles."""
        response = (
            self.client.table("dinner_groups")
            .select(GROUP_SELECT)
            .eq("id", group_id)
            .execute()
        )
        if not response.data:
            raise NotFoundError("Group", group_id)

        row = response.data[0]
        emails = self._member_emails([m["user_id"] for m in row.get("group_members") or []])
        return self._to_group(row, emails)

    def _member_emails(self, user_ids: List[str]) -> Dict[str, str]:
        """Look up member emails from auth users, paging until every member is found."""
        wanted = set(user_ids)
        emails: Dict[str, str] = {}
        page = 1
        while wanted - emails.keys():
            users = self.client.auth.admin.list_users(page=page, per_page=USERS_PAGE_SIZE)
            for user in users:
                if user.id in wanted and user.email:
                    emails[user.id] = user.email
            if len(users) < USERS_PAGE_SIZE:
                break
            page += 1
        return emails

    @staticmethod
    def _to_group(row: Dict[str, Any], emails: Dict[str, str]) -> Group:
        members = []
        for member_row in row.get("group_members") or []:
            profile_row = member_row.get("profiles") or {}
            members.append(
                GroupMember(
                    group_id=str(row["id"]),
                    user_id=member_row["user_id"],
                    status=member_row.get("status") or "assigned",
                    profile=MemberProfile(
                        full_name=profile_row.get("full_name"),
                        first_name=profile_row.get("first_name"),
                        last_name=profile_row.get("last_name"),
                        phone_number=profile_row.get("phone_number"),
                        email=emails.get(member_row["user_id"]),
                    ),
                )
            )
        return Group(
            id=str(row["id"]),
            name=row["name"],
            description=row.get("description"),
            status=row.get("status") or GroupStatus.DRAFT,
            scheduled_date=row.get("scheduled_date"),
            host_user_id=row.get("host_user_id"),
            approved_by=row.get("approved_by"),
            members=members,
        )

    async def update_group_status(self, group_id: str, status: GroupStatus) -> None:
        """Set group status unconditionally."""
        (
            self.client.table("dinner_groups")
            .update({"status": status.value, "updated_at": datetime.utcnow().isoformat()})
            .eq("id", group_id)
            .execute()
        )

    async def compare_and_set_group_status(
        self,
        group_id: str,
        expected: GroupStatus,
        new: GroupStatus,
        **fields: Any,
    ) -> bool:
        """Update status only while the row still holds ``expected``."""
        update_data = {
            "status": new.value,
            "updated_at": datetime.utcnow().isoformat(),
            **fields,
        }
        response = (
            self.client.table("dinner_groups")
            .update(update_data)
            .eq("id", group_id)
            .eq("status", expected.value)
            .execute()
        )
        if response.data:
            return True

        exists = self.client.table("dinner_groups").select("id").eq("id", group_id).execute()
        if not exists.data:
            raise NotFoundError("Group", group_id)
        return False

    # Threads
    async def get_thread(self, thread_id: str) -> Optional[SMSThread]:
        response = self.client.table("sms_threads").select("*").eq("id", thread_id).execute()
        return self._to_thread(response.data[0]) if response.data else None

    async def get_thread_by_token(self, token: str) -> Optional[SMSThread]:
        response = self.client.table("sms_threads").select("*").eq("thread_token", token).execute()
        return self._to_thread(response.data[0]) if response.data else None

    async def find_thread_by_phone(self, phone_number: str) -> Optional[SMSThread]:
        response = (
            self.client.table("sms_threads")
            .select("*")
            .eq("phone_number", phone_number)
            .order("updated_at", desc=True)
            .limit(1)
            .execute()
        )
        return self._to_thread(response.data[0]) if response.data else None

    async def insert_thread(self, thread: SMSThread) -> SMSThread:
        response = (
            self.client.table("sms_threads")
            .insert({
                "id": thread.id,
                "phone_number": thread.phone_number,
                "user_id": thread.user_id,
                "thread_token": thread.token,
                "is_active": thread.is_active,
            })
            .execute()
        )
        return self._to_thread(response.data[0]) if response.data else thread

    async def update_thread(self, thread_id: str, **fields: Any) -> SMSThread:
        update_data = {**fields, "updated_at": datetime.utcnow().isoformat()}
        response = (
            self.client.table("sms_threads")
            .update(update_data)
            .eq("id", thread_id)
            .execute()
        )
        if not response.data:
            raise NotFoundError("SMSThread", thread_id)
        return self._to_thread(response.data[0])

    async def list_threads_for_user(self, user_id: str) -> List[SMSThread]:
        response = (
            self.client.table("sms_threads")
            .select("*")
            .eq("user_id", user_id)
            .eq("is_active", True)
            .order("updated_at", desc=True)
            .execute()
        )
        return [self._to_thread(row) for row in response.data or []]

    async def insert_message(self, message: SMSMessage) -> SMSMessage:
        (
            self.client.table("sms_messages")
            .insert({
                "id": message.id,
                "thread_id": message.thread_id,
                "message_sid": message.provider_message_id,
                "from_number": message.from_number,
                "to_number": message.to_number,
                "body": message.body,
                "direction": message.direction.value,
                "status": message.provider_status,
            })
            .execute()
        )
        return message

    async def list_messages(self, thread_id: str) -> List[SMSMessage]:
        response = (
            self.client.table("sms_messages")
            .select("*")
            .eq("thread_id", thread_id)
            .order("created_at")
            .execute()
        )
        return [
            SMSMessage(
                id=str(row["id"]),
                thread_id=str(row["thread_id"]),
                direction=MessageDirection(row["direction"]),
                body=row.get("body") or "",
                provider_message_id=row.get("message_sid"),
                provider_status=row.get("status"),
                from_number=row.get("from_number"),
                to_number=row.get("to_number"),
                created_at=row.get("created_at") or datetime.utcnow(),
            )
            for row in response.data or []
        ]

    @staticmethod
    def _to_thread(row: Dict[str, Any]) -> SMSThread:
        return SMSThread(
            id=str(row["id"]),
            phone_number=row["phone_number"],
            user_id=row.get("user_id"),
            token=row["thread_token"],
            is_active=row.get("is_active", True),
            created_at=row.get("created_at") or datetime.utcnow(),
            updated_at=row.get("updated_at") or datetime.utcnow(),
        )
