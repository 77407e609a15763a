"""
5C health scoring for community groups.

Computes per-dimension activity from a group's event log. All functions here
are pure: they never raise, never mutate their inputs and return the same
output for the same (events, config, now).
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import structlog

from fivec.models.five_c import (
    Dimension,
    DimensionStatus,
    FiveCEvent,
    FiveCStatus,
    GroupConfig,
    NextAction,
)

logger = structlog.get_logger(__name__)

# Lookback windows for the event-driven dimensions
DIMENSION_WINDOWS: Dict[Dimension, timedelta] = {
    Dimension.CONNECTION: timedelta(days=14),
    Dimension.CARE: timedelta(days=30),
    Dimension.CONTRIBUTION: timedelta(days=60),
    Dimension.CELEBRATION: timedelta(days=60),
}

# Used for consistency when the group has no meeting cadence configured
CONSISTENCY_FALLBACK_WINDOW = timedelta(days=30)

NEXT_ACTIONS: Dict[Dimension, NextAction] = {
    Dimension.CONNECTION: NextAction(
        title="Deepen relationships",
        description="Share more personally with your group",
    ),
    Dimension.CARE: NextAction(
        title="Offer support",
        description="Check in on someone going through a difficult time",
    ),
    Dimension.CONTRIBUTION: NextAction(
        title="Give back together",
        description="Plan a way for the group to serve your neighborhood",
    ),
    Dimension.CELEBRATION: NextAction(
        title="Share a win",
        description="Celebrate a milestone or good news",
    ),
    Dimension.CONSISTENCY: NextAction(
        title="Schedule your next gathering",
        description="Put the next meeting on everyone's calendar",
    ),
}

EventLike = Union[FiveCEvent, Mapping[str, Any]]


def _as_utc(value: Any) -> Optional[datetime]:
    """Normalize a timestamp to an aware UTC datetime, or None if unusable."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _event_fields(event: EventLike):
    """Extract (dimension, occurred_at) from an event, or None if malformed."""
    if isinstance(event, FiveCEvent):
        return event.dimension, _as_utc(event.occurred_at)

    if not isinstance(event, Mapping):
        return None

    raw_dimension = event.get("dimension", event.get("c_key"))
    try:
        dimension = Dimension(raw_dimension)
    except ValueError:
        return None

    occurred_at = _as_utc(event.get("occurred_at"))
    return dimension, occurred_at


def _recent_activity(
    events: List[tuple], dimension: Dimension, cutoff: datetime
) -> DimensionStatus:
    latest = None
    for event_dimension, occurred_at in events:
        if event_dimension != dimension or occurred_at is None:
            continue
        # Inclusive: an event exactly at the cutoff counts
        if occurred_at >= cutoff and (latest is None or occurred_at > latest):
            latest = occurred_at

    return DimensionStatus(active=latest is not None, last_activity=latest)


def _consistency(
    events: List[tuple], config: Optional[GroupConfig], now: datetime
) -> DimensionStatus:
    last_meeting = _as_utc(config.last_meeting_date) if config else None
    cadence = config.target_cadence_days if config else None

    if last_meeting is not None and cadence is not None:
        days_since = (now - last_meeting).total_seconds() / 86400
        return DimensionStatus(active=days_since <= cadence, last_activity=last_meeting)

    return _recent_activity(events, Dimension.CONSISTENCY, now - CONSISTENCY_FALLBACK_WINDOW)


def _coerce_config(config: Any) -> Optional[GroupConfig]:
    if config is None or isinstance(config, GroupConfig):
        return config
    if isinstance(config, Mapping):
        try:
            return GroupConfig(**config)
        except (TypeError, ValueError):
            return None
    return None


def compute_status(
    events: Optional[Iterable[EventLike]],
    config: Optional[Union[GroupConfig, Mapping[str, Any]]] = None,
    now: Optional[datetime] = None,
) -> FiveCStatus:
    """
    Compute the 5C status for a group.

    Args:
        events: The group's event log, in any order. Malformed entries are skipped.
        config: Meeting cadence used for consistency, if known
        now: Reference time; naive datetimes are treated as UTC

    Returns:
        Status with exactly the five dimension keys
    """
    reference = _as_utc(now) or datetime.now(timezone.utc)

    parsed = []
    try:
        for event in events or ():
            fields = _event_fields(event)
            if fields is not None:
                parsed.append(fields)
    except TypeError:
        logger.warning("Event log is not iterable, scoring as empty", events_type=type(events).__name__)
        parsed = []

    statuses = {
        dimension.value: _recent_activity(parsed, dimension, reference - window)
        for dimension, window in DIMENSION_WINDOWS.items()
    }
    statuses[Dimension.CONSISTENCY.value] = _consistency(
        parsed, _coerce_config(config), reference
    )

    return FiveCStatus(**statuses)


def health_score(status: FiveCStatus) -> int:
    """Overall 5C health score between 0 and 100."""
    active_count = sum(1 for _, dimension_status in status.items() if dimension_status.active)
    return round(active_count / len(Dimension) * 100)


def next_action(dimension: Union[Dimension, str]) -> NextAction:
    """Suggested next step for strengthening a dimension."""
    return NEXT_ACTIONS[Dimension(dimension)]


def inactive_dimensions(status: FiveCStatus) -> List[Dimension]:
    """Dimensions needing attention, in fixed dimension order."""
    return [dimension for dimension, dimension_status in status.items() if not dimension_status.active]
