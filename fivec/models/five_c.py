"""
5C health models: events, per-dimension status and group scoring config.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class Dimension(str, Enum):
    """The five fixed axes of group health."""

    CONNECTION = "connection"
    CARE = "care"
    CONTRIBUTION = "contribution"
    CELEBRATION = "celebration"
    CONSISTENCY = "consistency"


class FiveCEvent(BaseModel):
    """A recorded group activity along one dimension. Immutable once recorded."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Event identifier")
    dimension: Dimension = Field(..., description="Dimension the event counts toward")
    occurred_at: datetime = Field(..., description="When the activity happened")
    metadata: Dict[str, Any] = Field(
        default_factory=dict, description="Opaque event metadata"
    )


class DimensionStatus(BaseModel):
    """Activity state of a single dimension."""

    model_config = ConfigDict(frozen=True)

    active: bool = False
    last_activity: Optional[datetime] = None


class FiveCStatus(BaseModel):
    """Status of all five dimensions. Always carries exactly the five fixed keys."""

    model_config = ConfigDict(frozen=True)

    connection: DimensionStatus = Field(default_factory=DimensionStatus)
    care: DimensionStatus = Field(default_factory=DimensionStatus)
    contribution: DimensionStatus = Field(default_factory=DimensionStatus)
    celebration: DimensionStatus = Field(default_factory=DimensionStatus)
    consistency: DimensionStatus = Field(default_factory=DimensionStatus)

    def get(self, dimension: Dimension) -> DimensionStatus:
        return getattr(self, Dimension(dimension).value)

    def items(self):
        return [(dimension, self.get(dimension)) for dimension in Dimension]


class GroupConfig(BaseModel):
    """Read-only scoring inputs taken from the group record."""

    last_meeting_date: Optional[datetime] = None
    target_cadence_days: Optional[int] = Field(default=None, ge=0)


class NextAction(BaseModel):
    """Suggested step to strengthen a dimension."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str


class GroupHealthReport(BaseModel):
    """Scored health of a single group."""

    group_id: str
    status: FiveCStatus
    score: int = Field(..., ge=0, le=100)
    suggestions: Dict[Dimension, NextAction] = Field(default_factory=dict)
    computed_at: datetime
