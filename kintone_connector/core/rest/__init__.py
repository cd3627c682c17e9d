"""Generic REST access layer.

- client.py: HTTP transport with response classification and generic calls
- errors.py: error classification policy
- exceptions.py: typed exceptions for error handling
"""
from .client import RESTClient, REQUEST_TIMEOUT, response_body
from .errors import ErrorClassifier, StatusCodeClassifier
from .exceptions import (
    ConnectorError,
    ConfigurationError,
    AuthenticationError,
    AlreadyExistsError,
    InvalidAttributeValueError,
    UnknownUidError,
    ConnectorIOError,
    TransientServerError,
    ProtocolViolationError,
)

__all__ = [
    "RESTClient",
    "REQUEST_TIMEOUT",
    "response_body",
    "ErrorClassifier",
    "StatusCodeClassifier",
    "ConnectorError",
    "ConfigurationError",
    "AuthenticationError",
    "AlreadyExistsError",
    "InvalidAttributeValueError",
    "UnknownUidError",
    "ConnectorIOError",
    "TransientServerError",
    "ProtocolViolationError",
]
