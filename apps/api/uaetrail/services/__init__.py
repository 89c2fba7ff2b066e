from uaetrail.services.events_service import (
    cancel_event,
    create_event,
    moderate_event,
    publish_event,
    update_event,
)
from uaetrail.services.join_request_service import (
    approve_join_request,
    cancel_join_request,
    decide_join_request,
    reject_join_request,
    submit_join_request,
)
from uaetrail.services.participants_service import check_in_participant, list_participants

__all__ = [
    "create_event",
    "update_event",
    "publish_event",
    "cancel_event",
    "moderate_event",
    "submit_join_request",
    "approve_join_request",
    "reject_join_request",
    "decide_join_request",
    "cancel_join_request",
    "list_participants",
    "check_in_participant",
]
