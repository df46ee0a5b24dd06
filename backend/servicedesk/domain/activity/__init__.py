from servicedesk.domain.activity.db_models import ActivityEvent, ActivitySeverity, ActivityType
from servicedesk.domain.activity.service import ActivityRecorder, list_activity

__all__ = [
    "ActivityEvent",
    "ActivityRecorder",
    "ActivitySeverity",
    "ActivityType",
    "list_activity",
]
