"""
Group matching workflow: generate -> (human review) -> approve -> export -> notify.

Each step is an explicit caller-invoked operation; nothing chains
automatically.
"""
from typing import Dict, List, Optional, Protocol, Union

import structlog

from fivec.core.cancellation import CancellationToken
from fivec.core.exceptions import (
    ComputeError,
    ConflictError,
    ExportError,
    FiveCError,
    OperationCancelledError,
)
from fivec.core.logging import correlation_context, log_business_event
from fivec.models.group import GroupStatus, NotificationChannel
from fivec.schemas.commands import (
    ApproveGroupCommand,
    ExportGroupsCommand,
    GenerateMatchesCommand,
    build_command,
)
from fivec.schemas.results import ExportPayload, MatchResult, NotificationBatchResult
from fivec.services.gateways import GatewaySet
from fivec.services.notification_dispatcher import NotificationDispatcher
from fivec.services.store import GroupAccessor

logger = structlog.get_logger(__name__)

EXPORT_MEDIA_TYPES = {
    "pdf": ("application/pdf", "pdf"),
    "excel": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "xlsx"),
}


class NotificationSink(Protocol):
    """Caller-supplied presentation channel (toasts, banners, ...)."""

    def info(self, title: str, description: str) -> None: ...

    def error(self, title: str, description: str) -> None: ...


class LoggingNotificationSink:
    """Default sink: presentation messages go to the log only."""

    def info(self, title: str, description: str) -> None:
        logger.info("User notification", title=title, description=description)

    def error(self, title: str, description: str) -> None:
        logger.warning("User notification", title=title, description=description)


class MatchOrchestrator:
    """Drives the matching workflow against external compute services."""

    def __init__(
        self,
        groups: GroupAccessor,
        dispatcher: NotificationDispatcher,
        gateways: GatewaySet,
        sink: Optional[NotificationSink] = None,
    ):
        self.groups = groups
        self.dispatcher = dispatcher
        self.gateways = gateways
        self.sink = sink or LoggingNotificationSink()

    async def generate_matches(
        self,
        criteria_weights: Optional[Dict[str, float]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> MatchResult:
        """
        Run the external matcher.

        Raises:
            ComputeError: If the match service fails; logged before re-raising
            OperationCancelledError: If cancelled before the service answered
        """
        command = build_command(GenerateMatchesCommand, criteria_weights=criteria_weights)
        logger.info("Generating matches", criteria=sorted((command.criteria_weights or {}).keys()))

        try:
            call = self.gateways.match_compute.compute(command.criteria_weights)
            if cancel_token is not None:
                result = await cancel_token.run(call, "generate_matches")
            else:
                result = await call
        except OperationCancelledError:
            raise
        except FiveCError as e:
            logger.error("Error generating matches", error=str(e), error_code=e.error_code)
            self.sink.error("Error generating matches", e.detail)
            raise
        except Exception as e:
            logger.error("Error generating matches", error=str(e), error_type=type(e).__name__)
            self.sink.error("Error generating matches", str(e))
            raise ComputeError("Match Service", str(e)) from e

        log_business_event(
            "matches_generated",
            groups_created=result.groups_created,
            members_matched=result.members_matched,
        )
        self.sink.info(
            "Matches generated",
            f"Generated {result.groups_created} potential groups with {result.members_matched} members.",
        )
        return result

    async def approve_group(self, group_id: str, actor_id: str) -> None:
        """
        Move a group from pending to approved.

        The update is conditional on the group still being pending, so two
        admins approving at once cannot both succeed.

        Raises:
            NotFoundError: If the group does not exist
            ConflictError: If the group is not pending
        """
        command = build_command(ApproveGroupCommand, group_id=group_id, actor_id=actor_id)

        with correlation_context(group_id=command.group_id, user_id=command.actor_id):
            updated = await self.groups.compare_and_set_group_status(
                command.group_id,
                expected=GroupStatus.PENDING,
                new=GroupStatus.APPROVED,
                approved_by=command.actor_id,
            )

            if not updated:
                current = await self.groups.get_group(command.group_id)
                logger.warning(
                    "Group approval rejected",
                    current_status=current.status.value,
                    approved_by=current.approved_by,
                )
                self.sink.error(
                    "Error approving group",
                    f"Group is {current.status.value}, not pending.",
                )
                raise ConflictError(
                    f"Group '{command.group_id}' cannot be approved from status '{current.status.value}'",
                    entity_id=command.group_id,
                    expected_status=GroupStatus.PENDING.value,
                    current_status=current.status.value,
                )

            log_business_event("group_approved", group_id=command.group_id, approved_by=command.actor_id)
            self.sink.info(
                "Group approved",
                "The group has been approved and members can now be notified.",
            )

    async def export_groups(
        self,
        format: str,
        group_ids: Optional[List[str]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ExportPayload:
        """
        Render groups as a PDF or Excel document.

        Raises:
            ExportError: If the export service fails
            OperationCancelledError: If cancelled before rendering finished
        """
        command = build_command(ExportGroupsCommand, format=format, group_ids=group_ids)
        logger.info("Exporting groups", format=command.format, group_count=len(command.group_ids or []))

        try:
            call = self.gateways.export_compute.render(command.format, command.group_ids)
            if cancel_token is not None:
                content = await cancel_token.run(call, "export_groups")
            else:
                content = await call
        except OperationCancelledError:
            raise
        except ComputeError as e:
            logger.error("Error exporting groups", error=str(e), error_code=e.error_code)
            self.sink.error("Error exporting groups", e.detail)
            if isinstance(e, ExportError):
                raise
            raise ExportError("Export Service", e.detail) from e
        except FiveCError as e:
            logger.error("Error exporting groups", error=str(e), error_code=e.error_code)
            self.sink.error("Error exporting groups", e.detail)
            raise
        except Exception as e:
            logger.error("Error exporting groups", error=str(e), error_type=type(e).__name__)
            self.sink.error("Error exporting groups", str(e))
            raise ExportError("Export Service", str(e)) from e

        media_type, extension = EXPORT_MEDIA_TYPES[command.format]
        self.sink.info(
            "Export completed",
            f"Groups exported successfully as {command.format.upper()}.",
        )
        return ExportPayload(
            format=command.format,
            content=content,
            filename=f"groups.{extension}",
            media_type=media_type,
        )

    async def notify_groups(
        self,
        group_ids: List[str],
        channel: Union[NotificationChannel, str] = NotificationChannel.EMAIL,
        cancel_token: Optional[CancellationToken] = None,
    ) -> NotificationBatchResult:
        """Final workflow step: notify members of approved groups."""
        try:
            result = await self.dispatcher.send_group_notifications(
                group_ids, channel=channel, cancel_token=cancel_token
            )
        except FiveCError as e:
            self.sink.error("Error sending notifications", e.detail)
            raise

        self.sink.info(
            "Notifications sent",
            f"Sent notifications to {result.emails_sent + result.sms_sent} members "
            f"across {result.groups_processed} groups.",
        )
        return result
