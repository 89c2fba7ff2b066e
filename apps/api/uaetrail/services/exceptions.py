from uaetrail.services.error_codes import ErrorCode


class ServiceError(Exception):
    def __init__(self, code: str, message: str | None = None) -> None:
        self.code = code
        self.message = message or code
        super().__init__(self.message)


class NotFoundError(ServiceError):
    pass


class PermissionDeniedError(ServiceError):
    pass


class ConflictError(ServiceError):
    pass


class ValidationError(ServiceError):
    pass


class RequestFinalizedError(ConflictError):
    def __init__(self, message: str = "only pending requests can be processed") -> None:
        super().__init__(ErrorCode.REQUEST_FINALIZED.value, message)


class EventNotPublishableError(ConflictError):
    def __init__(self, message: str = "event must be published before approval") -> None:
        super().__init__(ErrorCode.EVENT_NOT_PUBLISHABLE.value, message)


class CapacityExceededError(ConflictError):
    """The event has no open slot left; retrying the same approval cannot succeed."""

    def __init__(self, message: str = "event capacity has already been reached") -> None:
        super().__init__(ErrorCode.EVENT_FULL.value, message)
