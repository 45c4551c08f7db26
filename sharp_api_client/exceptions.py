from typing import Optional


class SharpApiError(Exception):
    """Base class for every error raised by the client"""


class InvalidConfiguration(SharpApiError, ValueError):
    pass


class TransportFailure(SharpApiError):
    """A request to the service failed at the HTTP level"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class MalformedResponse(SharpApiError):
    """The service answered with a body we can't interpret"""


class Cancelled(SharpApiError):
    """The caller aborted a poll loop while it was waiting"""
