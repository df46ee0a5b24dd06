from __future__ import annotations

import logging
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.domain.activity.db_models import ActivityEvent, ActivitySeverity, ActivityType
from servicedesk.infra.metrics import metrics

logger = logging.getLogger(__name__)

MAX_ACTIVITY_PAGE = 200


class ActivityRecorder:
    """Append-only writer for the activity trail.

    Each call opens its own session so a failing write can never roll back or
    block the caller's unit of work.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(
        self,
        type: ActivityType | str,
        message: str,
        *,
        booking_id: str | None = None,
        brand_name: str | None = None,
        metadata: dict[str, Any] | None = None,
        severity: ActivitySeverity | str = ActivitySeverity.INFO,
    ) -> ActivityEvent | None:
        event_type = getattr(type, "value", type)
        event_severity = getattr(severity, "value", severity)
        try:
            async with self._session_factory() as session:
                entry = ActivityEvent(
                    type=event_type,
                    message=message,
                    booking_id=booking_id,
                    brand_name=brand_name,
                    severity=event_severity,
                    metadata_json=metadata or {},
                )
                session.add(entry)
                await session.commit()
                return entry
        except Exception as exc:  # noqa: BLE001
            metrics.record_activity_write_failure()
            logger.warning(
                "activity_log_failed",
                extra={
                    "extra": {
                        "type": event_type,
                        "booking_id": booking_id,
                        "reason": _error_type(exc),
                    }
                },
            )
            return None


def _error_type(exc: BaseException) -> str:
    return exc.__class__.__name__


async def list_activity(
    session: AsyncSession,
    *,
    booking_id: str | None = None,
    event_type: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[ActivityEvent]:
    stmt = select(ActivityEvent)
    if booking_id:
        stmt = stmt.where(ActivityEvent.booking_id == booking_id)
    if event_type:
        stmt = stmt.where(ActivityEvent.type == event_type)
    stmt = (
        stmt.order_by(ActivityEvent.created_at.desc(), ActivityEvent.activity_id.desc())
        .limit(max(1, min(limit, MAX_ACTIVITY_PAGE)))
        .offset(max(0, offset))
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
