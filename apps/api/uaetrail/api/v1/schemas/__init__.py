from uaetrail.api.v1.schemas.admin import AuditEntryOut, MetricsOut
from uaetrail.api.v1.schemas.events import (
    EventCreate,
    EventListOut,
    EventModerationIn,
    EventOut,
    EventUpdate,
    ModerationAction,
)
from uaetrail.api.v1.schemas.join_requests import (
    Decision,
    DecisionOut,
    JoinRequestCreate,
    JoinRequestDecision,
    JoinRequestDetailOut,
    JoinRequestOut,
    ParticipantOut,
)
from uaetrail.api.v1.schemas.notifications import NotificationOut

__all__ = [
    "MetricsOut",
    "AuditEntryOut",
    "EventCreate",
    "EventUpdate",
    "EventOut",
    "EventListOut",
    "EventModerationIn",
    "ModerationAction",
    "JoinRequestCreate",
    "JoinRequestDecision",
    "JoinRequestOut",
    "JoinRequestDetailOut",
    "Decision",
    "DecisionOut",
    "ParticipantOut",
    "NotificationOut",
]
