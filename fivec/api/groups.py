"""
Group health endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends

from fivec.core.dependencies import get_group_health_service
from fivec.models.five_c import GroupConfig, GroupHealthReport
from fivec.services.group_health import GroupHealthService

router = APIRouter(prefix="/groups", tags=["groups"])


@router.post(
    "/{group_id}/health",
    response_model=GroupHealthReport,
    summary="Score a group's 5C health",
)
async def group_health(
    group_id: str,
    config: Optional[GroupConfig] = Body(default=None),
    service: GroupHealthService = Depends(get_group_health_service),
) -> GroupHealthReport:
    """Per-dimension status, overall score and suggestions for inactive dimensions."""
    return await service.get_group_health(group_id, config)
