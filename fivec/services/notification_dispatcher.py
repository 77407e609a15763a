"""
Notification dispatch for group introductions and single SMS sends.
"""
import asyncio
from typing import List, Optional, Sequence, Union

import structlog

from fivec.config import Settings, get_settings
from fivec.core.cancellation import CancellationToken
from fivec.core.exceptions import ConflictError
from fivec.core.logging import correlation_context, log_business_event
from fivec.models.group import Group, GroupMember, GroupStatus, NotificationChannel
from fivec.models.sms import MessageDirection
from fivec.schemas.commands import (
    SendGroupNotificationsCommand,
    SendSMSCommand,
    build_command,
)
from fivec.schemas.results import NotificationBatchResult, SMSSendResult
from fivec.services.gateways import GatewaySet
from fivec.services.store import GroupAccessor
from fivec.services.thread_manager import ThreadManager

logger = structlog.get_logger(__name__)

EMAIL_SUBJECT = "You've been matched! Your group: {group_name}"

EMAIL_TEMPLATE = """Dear {first_name},

You've been matched with a wonderful group!

Group: {group_name}
{description_line}
Your group members:
{roster}

Please reach out to your group members to coordinate your first gathering. We recommend the host reach out first to get everyone connected!

Best regards,
The 5C Community Team
"""

SMS_TEMPLATE = "You've been matched! Your group members:\n{roster}"

REPLY_FOOTER = "\n\nReply directly to this text or visit: {link}"


def format_roster(members: Sequence[GroupMember]) -> str:
    """One line per member: name and phone."""
    lines = []
    for member in members:
        profile = member.profile
        name = profile.display_name if profile else "Unknown"
        phone = profile.phone_number if profile and profile.phone_number else "No phone"
        lines.append(f"• {name} - {phone}")
    return "\n".join(lines)


def compose_group_email(group: Group, member: GroupMember, roster: str) -> str:
    first_name = (member.profile.first_name if member.profile else None) or "Friend"
    description_line = f"Description: {group.description}\n" if group.description else ""
    return EMAIL_TEMPLATE.format(
        first_name=first_name,
        group_name=group.name,
        description_line=description_line,
        roster=roster,
    )


def compose_sms_body(
    message: str,
    response_link: str,
    group_name: Optional[str] = None,
    sender_name: Optional[str] = None,
) -> str:
    """Outbound SMS body: ``{sender} says: {group}: {message}`` plus the reply link."""
    body = message
    if group_name:
        body = f"{group_name}: {body}"
    if sender_name:
        body = f"{sender_name} says: {body}"
    return body + REPLY_FOOTER.format(link=response_link)


class NotificationDispatcher:
    """Sends email/SMS to group members or a single recipient."""

    def __init__(
        self,
        groups: GroupAccessor,
        thread_manager: ThreadManager,
        gateways: GatewaySet,
        settings: Optional[Settings] = None,
    ):
        self.groups = groups
        self.thread_manager = thread_manager
        self.gateways = gateways
        self.settings = settings or get_settings()

    async def send_group_notifications(
        self,
        group_ids: List[str],
        channel: Union[NotificationChannel, str] = NotificationChannel.EMAIL,
        cancel_token: Optional[CancellationToken] = None,
    ) -> NotificationBatchResult:
        """
        Notify every member of each group and mark the groups active.

        Groups are processed one after another. A group that fails to load is
        recorded and skipped, and a failed send to one member never stops the
        other members or groups.

        Args:
            group_ids: Groups to notify
            channel: email or sms
            cancel_token: Stops the batch before the next group when fired

        Returns:
            Batch totals; groups processed before a cancellation stay processed

        Raises:
            ConfigError: If the channel's gateway is not configured
        """
        command = build_command(
            SendGroupNotificationsCommand, group_ids=group_ids, channel=channel
        )

        if command.channel == NotificationChannel.EMAIL:
            self.gateways.email.ensure_configured()
        else:
            self.gateways.sms.ensure_configured()

        logger.info(
            "Sending group notifications",
            group_count=len(command.group_ids),
            channel=command.channel.value,
        )

        result = NotificationBatchResult()

        for group_id in command.group_ids:
            if cancel_token is not None and cancel_token.cancelled:
                logger.warning(
                    "Group notification batch cancelled",
                    groups_processed=result.groups_processed,
                    remaining=len(command.group_ids) - result.groups_processed - len(result.failed_groups),
                    reason=cancel_token.reason,
                )
                result.cancelled = True
                break

            with correlation_context(group_id=group_id):
                try:
                    group = await self.groups.get_group(group_id)
                except Exception as e:
                    logger.error("Failed to load group for notification", group_id=group_id, error=str(e))
                    result.failed_groups.append(group_id)
                    continue

                sent = await self._notify_group(group, command.channel)

                try:
                    await self.groups.update_group_status(group.id, GroupStatus.ACTIVE)
                except Exception as e:
                    logger.error("Failed to activate group after notification", group_id=group_id, error=str(e))
                    result.failed_groups.append(group_id)
                    continue

            if command.channel == NotificationChannel.EMAIL:
                result.emails_sent += sent
            else:
                result.sms_sent += sent
            result.groups_processed += 1

            log_business_event(
                "group_notified",
                group_id=group.id,
                channel=command.channel.value,
                members=len(group.members),
                delivered=sent,
            )

        logger.info(
            "Group notifications complete",
            emails_sent=result.emails_sent,
            sms_sent=result.sms_sent,
            groups_processed=result.groups_processed,
            failed_groups=result.failed_groups,
        )
        return result

    async def _notify_group(self, group: Group, channel: NotificationChannel) -> int:
        """Attempt every member concurrently; return the number of successful sends."""
        roster = format_roster(group.members)

        if channel == NotificationChannel.EMAIL:
            sends = [
                self._send_member_email(group, member, roster)
                for member in group.members
            ]
        else:
            sends = [
                self._send_member_sms(group, member, roster)
                for member in group.members
            ]

        # return_exceptions keeps one failed send from cancelling its siblings
        outcomes = await asyncio.gather(*sends, return_exceptions=True)

        delivered = 0
        for member, outcome in zip(group.members, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Failed to notify group member",
                    group_id=group.id,
                    user_id=member.user_id,
                    channel=channel.value,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
            elif outcome:
                delivered += 1
        return delivered

    async def _send_member_email(self, group: Group, member: GroupMember, roster: str) -> bool:
        email = member.profile.email if member.profile else None
        if not email:
            logger.warning("Group member has no email, skipping", group_id=group.id, user_id=member.user_id)
            return False

        await self.gateways.email.send(
            from_=self.settings.email_from,
            to=email,
            subject=EMAIL_SUBJECT.format(group_name=group.name),
            text=compose_group_email(group, member, roster),
        )
        logger.info("Email sent to group member", group_id=group.id, user_id=member.user_id)
        return True

    async def _send_member_sms(self, group: Group, member: GroupMember, roster: str) -> bool:
        phone = member.profile.phone_number if member.profile else None
        if not phone:
            logger.warning("Group member has no phone, skipping", group_id=group.id, user_id=member.user_id)
            return False

        try:
            await self.send_sms(
                to=phone,
                message=SMS_TEMPLATE.format(roster=roster),
                group_name=group.name,
            )
        except ConflictError:
            logger.info("Group member unsubscribed from SMS, skipping", group_id=group.id, user_id=member.user_id)
            return False
        return True

    async def send_sms(
        self,
        to: str,
        message: str,
        thread_id: Optional[str] = None,
        group_name: Optional[str] = None,
        sender_name: Optional[str] = None,
    ) -> SMSSendResult:
        """
        Send a single SMS on the recipient's thread.

        Args:
            to: Recipient phone number
            message: Message text
            thread_id: Thread to continue; a thread is found or created when omitted
            group_name: Prefixed to the message when given
            sender_name: Prefixed as ``{sender} says:`` when given

        Returns:
            Provider message SID, thread ID and web reply link

        Raises:
            ConfigError: If SMS credentials are missing; nothing is created
            NotFoundError: If ``thread_id`` does not exist
            ConflictError: If the recipient's thread is unsubscribed
            GatewayError: If the provider fails the send
        """
        command = build_command(
            SendSMSCommand,
            to=to,
            message=message,
            thread_id=thread_id,
            group_name=group_name,
            sender_name=sender_name,
        )

        self.gateways.sms.ensure_configured()

        thread = await self.thread_manager.get_or_create_thread(command.to, command.thread_id)
        if not thread.is_active:
            logger.warning("Recipient unsubscribed, SMS not sent", thread_id=thread.id)
            raise ConflictError(
                "Recipient has unsubscribed from SMS notifications",
                entity_id=thread.id,
                expected_status="active",
                current_status="unsubscribed",
            )

        response_link = self.thread_manager.build_response_link(thread)
        body = compose_sms_body(
            command.message,
            response_link,
            group_name=command.group_name,
            sender_name=command.sender_name,
        )

        receipt = await self.gateways.sms.send(command.to, body)

        await self.thread_manager.append_message(
            thread,
            MessageDirection.OUTBOUND,
            body,
            provider_message_id=receipt.sid,
            provider_status=receipt.status,
            from_number=receipt.from_number,
            to_number=receipt.to_number or command.to,
        )

        log_business_event(
            "sms_sent",
            to=command.to,
            message_sid=receipt.sid,
            thread_id=thread.id,
        )

        return SMSSendResult(
            message_sid=receipt.sid,
            thread_id=thread.id,
            response_link=response_link,
        )
