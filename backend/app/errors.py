"""Exception taxonomy shared by actions, routes and repositories."""


class LMSError(Exception):
    """Base class for errors raised by this service."""

    pass


class ActionError(LMSError):
    """Business-rule rejection whose message is shown to the caller as-is."""

    pass


class NotAuthorizedError(ActionError):
    """Caller is authenticated but lacks the role or ownership required."""

    pass


class AuthenticationError(LMSError):
    """No valid session could be established for the request."""

    pass


class RateLimitedError(LMSError):
    """Caller exceeded the allowed request frequency."""

    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__("Too many requests. Please try again later.")
        self.retry_after_seconds = retry_after_seconds


class DownstreamError(LMSError):
    """Failure reported by the hosted database or identity provider.

    The message is surfaced to the caller verbatim.
    """

    def __init__(self, message: str, source: str = "database") -> None:
        super().__init__(message)
        self.source = source
