from enum import Enum


class ErrorCode(str, Enum):
    EVENT_NOT_FOUND = "event_not_found"
    EVENT_NOT_PUBLISHABLE = "event_not_publishable"
    EVENT_CANCELLED = "event_cancelled"
    EVENT_FULL = "event_full"
    EVENT_STARTS_IN_PAST = "event_starts_in_past"
    INVALID_TIME_RANGE = "invalid_time_range"
    CAPACITY_BELOW_PARTICIPANTS = "capacity_below_participants"
    NOT_EVENT_ORGANIZER = "not_event_organizer"
    ORGANIZER_ROLE_REQUIRED = "organizer_role_required"

    REQUEST_NOT_FOUND = "request_not_found"
    REQUEST_EXISTS = "request_exists"
    REQUEST_FINALIZED = "request_finalized"
    REQUEST_NOT_CANCELLABLE = "request_not_cancellable"
    ORGANIZER_CANNOT_JOIN = "organizer_cannot_join"

    PARTICIPANT_NOT_FOUND = "participant_not_found"
    ALREADY_CHECKED_IN = "already_checked_in"

    NOTIFICATION_NOT_FOUND = "notification_not_found"
