"""Error classification policy for REST responses.

The transport asks a classifier what a raw response means instead of
hard-coding status codes, because backends disagree: kintone for instance
answers "already exists", "not found" and "invalid" all with a 400 and tells
them apart only through its error payload.
"""
from __future__ import annotations
import abc

import requests


class ErrorClassifier(abc.ABC):
    """Predicate set evaluated against a raw response."""

    @abc.abstractmethod
    def is_not_authenticated(self, response: requests.Response) -> bool:
        ...

    @abc.abstractmethod
    def is_invalid_request(self, response: requests.Response) -> bool:
        ...

    @abc.abstractmethod
    def is_already_exists(self, response: requests.Response) -> bool:
        ...

    @abc.abstractmethod
    def is_not_found(self, response: requests.Response) -> bool:
        ...

    @abc.abstractmethod
    def is_ok(self, response: requests.Response) -> bool:
        ...

    @abc.abstractmethod
    def is_server_error(self, response: requests.Response) -> bool:
        ...


class StatusCodeClassifier(ErrorClassifier):
    """Plain HTTP semantics, for backends that use distinct status codes."""

    def is_not_authenticated(self, response: requests.Response) -> bool:
        return response.status_code == 401

    def is_invalid_request(self, response: requests.Response) -> bool:
        return response.status_code == 400

    def is_already_exists(self, response: requests.Response) -> bool:
        return response.status_code == 409

    def is_not_found(self, response: requests.Response) -> bool:
        return response.status_code == 404

    def is_ok(self, response: requests.Response) -> bool:
        return 200 <= response.status_code < 300

    def is_server_error(self, response: requests.Response) -> bool:
        return 500 <= response.status_code <= 599
