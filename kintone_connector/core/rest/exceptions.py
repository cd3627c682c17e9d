"""Connector exceptions for error handling.

Every exception carries enough context for remote-side diagnosis: the object
class, the identifier or name involved and, when a response was received,
its status code and body.
"""
from __future__ import annotations
from typing import Optional


class ConnectorError(Exception):
    """Base exception for all connector operations.

    Attributes:
        message: Human readable description
        object_class: Object class involved (user, organization, group)
        identifier: Uid value or name involved
        status_code: HTTP status code, when a response was received
        body: Response body, when a response was received
    """

    def __init__(
        self,
        message: str,
        *,
        object_class: Optional[str] = None,
        identifier: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        self.message = message
        self.object_class = object_class
        self.identifier = identifier
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class ConfigurationError(ConnectorError):
    """Connector configuration is missing or invalid."""
    pass


class AuthenticationError(ConnectorError):
    """The remote API rejected our credentials, or could not be reached at all during the test."""
    pass


class AlreadyExistsError(ConnectorError):
    """Create failed - an object with the same code already exists."""
    pass


class InvalidAttributeValueError(ConnectorError):
    """The request was rejected as invalid, or the caller supplied bad input."""
    pass


class UnknownUidError(ConnectorError):
    """Update or delete addressed an object that is no longer present."""
    pass


class ConnectorIOError(ConnectorError):
    """Generic I/O failure talking to the remote API."""
    pass


class TransientServerError(ConnectorIOError):
    """5xx response or network-level failure. Not retried by this layer."""
    pass


class ProtocolViolationError(ConnectorIOError):
    """Response shape does not match the API contract (e.g. wrong record count)."""
    pass
