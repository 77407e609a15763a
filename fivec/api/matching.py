"""
Group matching workflow endpoints: generate, approve, export, notify.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import Response
from pydantic import BaseModel, Field

from fivec.core.dependencies import get_match_orchestrator
from fivec.schemas.commands import (
    ExportGroupsCommand,
    GenerateMatchesCommand,
    SendGroupNotificationsCommand,
)
from fivec.schemas.results import MatchResult, NotificationBatchResult
from fivec.services.match_orchestrator import MatchOrchestrator

router = APIRouter(prefix="/matching", tags=["matching"])


class ApproveGroupRequest(BaseModel):
    """Request schema for group approval."""

    actor_id: str = Field(..., min_length=1, description="Admin approving the group")


class ApproveGroupResponse(BaseModel):
    """Response schema for group approval."""

    success: bool
    group_id: str
    approved_by: str


@router.post("/generate", response_model=MatchResult, summary="Generate candidate groups")
async def generate_matches(
    request: GenerateMatchesCommand,
    orchestrator: MatchOrchestrator = Depends(get_match_orchestrator),
) -> MatchResult:
    return await orchestrator.generate_matches(request.criteria_weights)


@router.post(
    "/groups/{group_id}/approve",
    response_model=ApproveGroupResponse,
    responses={
        404: {"description": "Group not found"},
        409: {"description": "Group is not pending"},
    },
    summary="Approve a pending group",
)
async def approve_group(
    group_id: str,
    request: ApproveGroupRequest,
    orchestrator: MatchOrchestrator = Depends(get_match_orchestrator),
) -> ApproveGroupResponse:
    await orchestrator.approve_group(group_id, request.actor_id)
    return ApproveGroupResponse(success=True, group_id=group_id, approved_by=request.actor_id)


@router.post("/export", summary="Export groups as PDF or Excel")
async def export_groups(
    request: ExportGroupsCommand,
    orchestrator: MatchOrchestrator = Depends(get_match_orchestrator),
) -> Response:
    payload = await orchestrator.export_groups(request.format, request.group_ids)
    return Response(
        content=payload.content,
        media_type=payload.media_type,
        headers={"Content-Disposition": f'attachment; filename="{payload.filename}"'},
    )


@router.post("/notify", response_model=NotificationBatchResult, summary="Notify group members")
async def notify_groups(
    request: SendGroupNotificationsCommand,
    orchestrator: MatchOrchestrator = Depends(get_match_orchestrator),
) -> NotificationBatchResult:
    return await orchestrator.notify_groups(request.group_ids, channel=request.channel)
