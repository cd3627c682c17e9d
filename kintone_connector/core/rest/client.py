"""Low-level HTTP client for REST resource APIs.

Handles JSON bodies, response classification and the generic
create/update/patch/delete call patterns shared by every object type.
"""
from __future__ import annotations
import json
import logging
from typing import Any, Dict, Optional, Tuple

import requests

from ..pagination import PageFetcher, QueryHandler, paginate
from .errors import ErrorClassifier, StatusCodeClassifier
from .exceptions import (
    AlreadyExistsError,
    AuthenticationError,
    ConnectorError,
    ConnectorIOError,
    InvalidAttributeValueError,
    TransientServerError,
    UnknownUidError,
)
from ..framework import Uid

REQUEST_TIMEOUT: Tuple[float, float] = (10.0, 10.0)

logger = logging.getLogger(__name__)


def response_body(response: requests.Response) -> str:
    """Return the response text, or a marker when it cannot be decoded."""
    try:
        return response.text
    except (UnicodeDecodeError, LookupError):
        logger.error("Unexpected API response, cannot decode body", exc_info=True)
        return "<failed_to_parse_response>"


class RESTClient:
    """HTTP client with pluggable response classification.

    Features:
    - One pooled ``requests.Session`` reused across calls
    - Authentication and server errors raised before any caller sees a response
    - Create/update/patch/delete helpers mapping responses to typed exceptions

    Usage:
        client = RESTClient("kintone", session, KintoneErrorClassifier())
        resp = client.get("https://example.cybozu.com/v1/users.json", {"size": "1"})
    """

    def __init__(
        self,
        instance_name: str,
        session: Optional[requests.Session] = None,
        error_handler: Optional[ErrorClassifier] = None,
        start_offset: int = 0,
        timeout: Tuple[float, float] = REQUEST_TIMEOUT,
    ):
        """Initialize the client.

        Args:
            instance_name: Name used in every error message
            session: Pre-configured session (auth headers, proxies)
            error_handler: Classifier for raw responses
            start_offset: First cursor value of the backend (0 or 1)
            timeout: ``(connect, read)`` timeout in seconds
        """
        self.instance_name = instance_name
        self.session = session or requests.Session()
        self.error_handler = error_handler or StatusCodeClassifier()
        self.start_offset = start_offset
        self.timeout = timeout

    def close(self) -> None:
        self.session.close()

    # ─────────────────────────────────────────────────────────────────────────
    # Verbs
    # ─────────────────────────────────────────────────────────────────────────
    def get(self, url: str, params: Optional[Dict[str, str]] = None) -> requests.Response:
        """Execute GET request with query parameters.

        Raises:
            AuthenticationError: Credentials rejected
            TransientServerError: 5xx response or network failure
        """
        return self._send("GET", url, params=params)

    def post(self, url: str, body: Any) -> requests.Response:
        return self._send("POST", url, body=body)

    def put(self, url: str, body: Any) -> requests.Response:
        return self._send("PUT", url, body=body)

    def patch(self, url: str, body: Any) -> requests.Response:
        return self._send("PATCH", url, body=body)

    def delete(self, url: str, body: Any = None) -> requests.Response:
        return self._send("DELETE", url, body=body)

    def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, str]] = None,
        body: Any = None,
    ) -> requests.Response:
        kwargs: Dict[str, Any] = {"timeout": self.timeout}
        if params:
            kwargs["params"] = params
        if body is not None:
            kwargs["data"] = self._to_json(body)
            kwargs["headers"] = {"Content-Type": "application/json; charset=UTF-8"}

        logger.debug("%s %s", method, url)
        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise TransientServerError(f"{self.instance_name} server error: {e}") from e

        self._raise_if_unauthorized(resp)
        self._raise_if_server_error(resp)
        return resp

    def _to_json(self, body: Any) -> str:
        try:
            return json.dumps(body, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise ConnectorIOError("Failed to write request json body") from e

    def _raise_if_unauthorized(self, resp: requests.Response) -> None:
        if self.error_handler.is_not_authenticated(resp):
            raise AuthenticationError(
                f"Cannot authenticate to the {self.instance_name} REST API: {resp.reason}",
                status_code=resp.status_code,
                body=response_body(resp),
            )

    def _raise_if_server_error(self, resp: requests.Response) -> None:
        if self.error_handler.is_server_error(resp):
            body = response_body(resp)
            raise TransientServerError(
                f"{self.instance_name} server error: {body}",
                status_code=resp.status_code,
                body=body,
            )

    def read_json(self, resp: requests.Response) -> Dict[str, Any]:
        """Decode a JSON object body.

        Raises:
            ConnectorIOError: Body is not a JSON object
        """
        try:
            data = resp.json()
        except ValueError as e:
            raise ConnectorIOError(
                f"Cannot parse {self.instance_name} REST API Response",
                status_code=resp.status_code,
                body=response_body(resp),
            ) from e
        if not isinstance(data, dict):
            raise ConnectorIOError(
                f"Cannot parse {self.instance_name} REST API Response: expected a JSON object",
                status_code=resp.status_code,
                body=response_body(resp),
            )
        return data

    # ─────────────────────────────────────────────────────────────────────────
    # Generic calls
    # ─────────────────────────────────────────────────────────────────────────
    def call_create(self, object_class: str, url: str, body: Any, name: str) -> requests.Response:
        """POST a new object.

        Raises:
            AlreadyExistsError: An object with ``name`` already exists
            InvalidAttributeValueError: The request was rejected as invalid
            ConnectorIOError: Any other non-ok response
        """
        resp = self.post(url, body)
        if self.error_handler.is_already_exists(resp):
            raise AlreadyExistsError(
                f"{self.instance_name} {object_class} '{name}' already exists.",
                object_class=object_class, identifier=name,
                status_code=resp.status_code, body=response_body(resp),
            )
        if self.error_handler.is_invalid_request(resp):
            raise InvalidAttributeValueError(
                f"Bad request when creating {self.instance_name} {object_class} '{name}', "
                f"response: {response_body(resp)}",
                object_class=object_class, identifier=name,
                status_code=resp.status_code, body=response_body(resp),
            )
        if not self.error_handler.is_ok(resp):
            raise ConnectorIOError(
                f"Failed to create {self.instance_name} {object_class} '{name}', "
                f"statusCode: {resp.status_code}, response: {response_body(resp)}",
                object_class=object_class, identifier=name,
                status_code=resp.status_code, body=response_body(resp),
            )
        return resp

    def call_update(self, object_class: str, url: str, uid: Uid, body: Any) -> requests.Response:
        """PUT an update for an existing object.

        Raises:
            AlreadyExistsError: A rename collided with an existing code
            UnknownUidError: The object is no longer present
            InvalidAttributeValueError: The request was rejected as invalid
            ConnectorIOError: Any other non-ok response
        """
        return self._check_modify(self.put(url, body), "update", object_class, uid)

    def call_patch(self, object_class: str, url: str, uid: Uid, body: Any) -> requests.Response:
        """PATCH an existing object. Same failure mapping as ``call_update``."""
        return self._check_modify(self.patch(url, body), "patch", object_class, uid)

    def _check_modify(self, resp: requests.Response, verb: str, object_class: str,
                      uid: Uid) -> requests.Response:
        target = _describe(uid)

        # Not-found before invalid-request: kintone answers both with a 400
        if self.error_handler.is_already_exists(resp):
            raise AlreadyExistsError(
                f"{self.instance_name} {object_class} conflicts when updating {target}, "
                f"response: {response_body(resp)}",
                object_class=object_class, identifier=target,
                status_code=resp.status_code, body=response_body(resp),
            )
        if self.error_handler.is_not_found(resp):
            raise UnknownUidError(
                f"{self.instance_name} {object_class} {target} not found",
                object_class=object_class, identifier=target,
                status_code=resp.status_code, body=response_body(resp),
            )
        if self.error_handler.is_invalid_request(resp):
            raise InvalidAttributeValueError(
                f"Bad request when updating {self.instance_name} {object_class}: {target}, "
                f"response: {response_body(resp)}",
                object_class=object_class, identifier=target,
                status_code=resp.status_code, body=response_body(resp),
            )
        if not self.error_handler.is_ok(resp):
            raise ConnectorIOError(
                f"Failed to {verb} {self.instance_name} {object_class}: {target}, "
                f"statusCode: {resp.status_code}, response: {response_body(resp)}",
                object_class=object_class, identifier=target,
                status_code=resp.status_code, body=response_body(resp),
            )
        return resp

    def call_delete(self, object_class: str, url: str, uid: Uid, body: Any = None) -> requests.Response:
        """DELETE an existing object.

        Raises:
            UnknownUidError: The object is already gone
            ConnectorIOError: Any other non-ok response
        """
        resp = self.delete(url, body)
        target = _describe(uid)

        if self.error_handler.is_not_found(resp):
            raise UnknownUidError(
                f"{self.instance_name} {object_class} {target} not found",
                object_class=object_class, identifier=target,
                status_code=resp.status_code, body=response_body(resp),
            )
        if not self.error_handler.is_ok(resp):
            raise ConnectorIOError(
                f"Failed to delete {self.instance_name} {object_class}: {target}, "
                f"statusCode: {resp.status_code}, response: {response_body(resp)}",
                object_class=object_class, identifier=target,
                status_code=resp.status_code, body=response_body(resp),
            )
        return resp

    def get_all(self, handler: QueryHandler, page_size: int, page_offset: Optional[int],
                fetch_page: PageFetcher) -> int:
        """Run a paged query through the pagination façade.

        Anything other than a ``ConnectorError`` escaping the page fetch or the
        handler is wrapped in ``ConnectorIOError``.
        """
        try:
            return paginate(handler, page_size, page_offset, fetch_page, self.start_offset)
        except ConnectorError:
            raise
        except Exception as e:
            raise ConnectorIOError(f"{self.instance_name} query failed: {e}") from e


def _describe(uid: Uid) -> str:
    if uid.name_hint:
        return f"{uid.value} ({uid.name_hint})"
    return uid.value
