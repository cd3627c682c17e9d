"""kintone error classification.

kintone answers "already exists", "not found" and other validation failures
with the same ``400`` / ``CB_VA01`` error and only the localized message
under the offending field path tells them apart, e.g.::

    {"code": "CB_VA01", "id": "...", "message": "...",
     "errors": {"users.code": {"messages": ["already exists"]}}}
"""
from __future__ import annotations
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

import requests
import yaml

from ..rest.errors import ErrorClassifier
from ..rest.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_PHRASES_PATH = Path(__file__).with_name("error_phrases.yaml")

VALIDATION_ERROR_CODE = "CB_VA01"
NOT_AUTHENTICATED_CODES = frozenset({"CB_WA01", "CB_AU01"})  # invalid credential, no auth header
CODE_FIELD_PATHS = ("users.code", "groups.code", "organizations.code")


@dataclass(frozen=True)
class PhraseTable:
    """Message fragments, one per locale, that identify an error kind."""
    already_exists: Tuple[str, ...] = ()
    not_found: Tuple[str, ...] = ()

    def merged(self, other: "PhraseTable") -> "PhraseTable":
        return PhraseTable(
            already_exists=_unique(self.already_exists + other.already_exists),
            not_found=_unique(self.not_found + other.not_found),
        )


def _unique(values: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(values))


def load_phrase_table(path: Optional[Path] = None) -> PhraseTable:
    """Load a phrase table from YAML.

    Args:
        path: YAML file with ``already_exists`` / ``not_found`` lists
            (defaults to the packaged table)

    Raises:
        ConfigurationError: File missing or malformed
    """
    path = Path(path) if path else DEFAULT_PHRASES_PATH
    if not path.exists():
        raise ConfigurationError(f"Error phrase table not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Error phrase table must be a mapping: {path}")

    def _phrases(key: str) -> Tuple[str, ...]:
        values = data.get(key) or []
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise ConfigurationError(f"'{key}' in {path} must be a list of strings")
        return tuple(values)

    return PhraseTable(already_exists=_phrases("already_exists"), not_found=_phrases("not_found"))


class KintoneErrorClassifier(ErrorClassifier):
    """Classify kintone REST API responses."""

    def __init__(self, phrases: Optional[PhraseTable] = None):
        self.phrases = phrases or load_phrase_table()

    @classmethod
    def with_extra_phrases(cls, path: Optional[str]) -> "KintoneErrorClassifier":
        """Packaged table, extended with the phrases found in ``path`` if given."""
        phrases = load_phrase_table()
        if path:
            phrases = phrases.merged(load_phrase_table(Path(path)))
        return cls(phrases)

    def is_not_authenticated(self, response: requests.Response) -> bool:
        if response.status_code == 401:
            return True
        if response.status_code != 520:
            return False
        error = _error_payload(response)
        return error.get("code") in NOT_AUTHENTICATED_CODES

    def is_already_exists(self, response: requests.Response) -> bool:
        return self._has_code_error(response, self.phrases.already_exists)

    def is_not_found(self, response: requests.Response) -> bool:
        return self._has_code_error(response, self.phrases.not_found)

    def is_invalid_request(self, response: requests.Response) -> bool:
        return response.status_code == 400

    def is_ok(self, response: requests.Response) -> bool:
        return response.status_code in (200, 204)

    def is_server_error(self, response: requests.Response) -> bool:
        return 500 <= response.status_code <= 599

    def _has_code_error(self, response: requests.Response, keywords: Tuple[str, ...]) -> bool:
        if response.status_code != 400:
            return False
        error = _error_payload(response)
        if error.get("code") != VALIDATION_ERROR_CODE:
            return False

        errors = error.get("errors") or {}
        if not isinstance(errors, dict):
            return False
        for path in CODE_FIELD_PATHS:
            if path in errors:
                return _has_message(errors[path], keywords)
        return False


def _has_message(field_error: Any, keywords: Tuple[str, ...]) -> bool:
    if not isinstance(field_error, dict):
        return False
    messages = field_error.get("messages") or []
    # The message language depends on the API user's locale
    return any(k in m for m in messages if isinstance(m, str) for k in keywords)


def _error_payload(response: requests.Response) -> Dict[str, Any]:
    try:
        data = json.loads(response.text or "{}")
    except ValueError:
        logger.debug("Error response is not JSON (status %s)", response.status_code)
        return {}
    return data if isinstance(data, dict) else {}
