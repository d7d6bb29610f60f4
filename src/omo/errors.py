"""Exception types raised by the turn engine and its collaborators."""


class OmoError(Exception):
    """Base class for all omo errors."""


class TransportError(OmoError):
    """The model endpoint answered with a non-success status.

    Args:
        status: HTTP status code returned by the endpoint.
        body: Response body text, as returned by the endpoint.
    """

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"API Error {status}: {body}")


class StreamError(OmoError):
    """The stream carried an explicit error record."""


class StreamTimeoutError(OmoError):
    """No chunk arrived within the configured read timeout."""


class ToolArgumentError(OmoError):
    """A tool call's argument buffer is not a JSON object."""


class AuthError(OmoError):
    """Credentials are missing or unreadable."""
