"""
Client-side errors.

Mutation failures are surfaced to the user and never retried: a retried
submit could create a second order.
"""


class SessionClientError(Exception):
    """A request to the API failed (transport error or non-2xx response)."""

    def __init__(self, message: str, status_code: int | None = None, detail: str | None = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class SessionGoneError(SessionClientError):
    """The session no longer exists or can no longer be used from this device."""
