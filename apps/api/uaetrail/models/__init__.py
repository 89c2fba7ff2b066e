from uaetrail.models.audit_log import AuditLog
from uaetrail.models.base import Base
from uaetrail.models.event import Event
from uaetrail.models.join_request import JoinRequest
from uaetrail.models.notification import Notification
from uaetrail.models.participant import Participant
from uaetrail.models.refresh_token import RefreshToken
from uaetrail.models.user import User

__all__ = [
    "Base",
    "User",
    "RefreshToken",
    "Event",
    "JoinRequest",
    "Participant",
    "Notification",
    "AuditLog",
]
