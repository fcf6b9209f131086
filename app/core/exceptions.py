# app/core/exceptions.py

"""
Error taxonomy shared by every group/membership/match operation.

Services raise these; the transport layer (app/main.py) maps `kind`
to an HTTP status. Nothing in here knows about HTTP.
"""


class WatchMatesError(Exception):
    kind = "error"
    default_detail = "An error occurred"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(WatchMatesError):
    kind = "validation"
    default_detail = "Invalid input"


class NotFoundError(WatchMatesError):
    kind = "not_found"
    default_detail = "Resource not found"


class ForbiddenError(WatchMatesError):
    kind = "forbidden"
    default_detail = "Permission denied"


class ConflictError(WatchMatesError):
    kind = "conflict"
    default_detail = "Conflict"


class LimitExceededError(WatchMatesError):
    kind = "limit_exceeded"
    default_detail = "Group member limit exceeded"
