"""Pytest shared fixtures for connector tests."""
import json
import pathlib
import sys
from typing import Any, Callable, List, Optional
from unittest.mock import MagicMock

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests

from kintone_connector.config.settings import ConnectorConfig
from kintone_connector.core.framework import GuardedString
from kintone_connector.core.kintone.client import KintoneClient

BASE_URL = "https://example.cybozu.com"


# ─────────────────────────────────────────────────────────────────────────────
# HTTP stubs
# ─────────────────────────────────────────────────────────────────────────────
class _StubResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, text: Optional[str] = None,
                 reason: str = ""):
        self._payload = payload
        self.status_code = status_code
        self.reason = reason
        if text is not None:
            self.text = text
        else:
            self.text = json.dumps(payload) if payload is not None else ""

    def json(self):
        if self._payload is None:
            return json.loads(self.text)
        return self._payload


def kintone_error(code: str, field_path: Optional[str] = None, message: str = "", status_code: int = 400):
    """Build a kintone-style error response."""
    payload = {"code": code, "id": "1505999166-897850006", "message": message or code}
    if field_path:
        payload["errors"] = {field_path: {"messages": [message]}}
    return _StubResponse(payload, status_code=status_code)


class FakeSession:
    """Stand-in for ``requests.Session`` recording every request.

    Responses come from ``routes`` (callable taking method, url, params, body)
    or, when no route matches, from the ``responses`` queue.
    """

    def __init__(self):
        self.headers = {}
        self.proxies = {}
        self.trust_env = True
        self.calls: List[dict] = []
        self.responses: List[_StubResponse] = []
        self.route: Optional[Callable[..., Optional[_StubResponse]]] = None
        self.closed = False

    def queue(self, *responses: _StubResponse) -> "FakeSession":
        self.responses.extend(responses)
        return self

    def request(self, method, url, params=None, data=None, headers=None, timeout=None):
        body = json.loads(data) if data is not None else None
        self.calls.append({"method": method, "url": url, "params": params, "body": body, "timeout": timeout})
        if self.route is not None:
            resp = self.route(method, url, params, body)
            if resp is not None:
                return resp
        if not self.responses:
            raise AssertionError(f"Unexpected {method} {url} params={params}")
        return self.responses.pop(0)

    def get(self, url, params=None, timeout=None):
        return self.request("GET", url, params=params, timeout=timeout)

    def close(self):
        self.closed = True


@pytest.fixture()
def stub_response():
    return _StubResponse


@pytest.fixture()
def config():
    return ConnectorConfig(
        base_url=BASE_URL,
        login_name="admin",
        password=GuardedString("secret"),
    )


@pytest.fixture()
def fake_session():
    return FakeSession()


@pytest.fixture()
def kintone_client(config, fake_session):
    """Real KintoneClient over the recording session."""
    return KintoneClient(config, session=fake_session)


@pytest.fixture()
def mock_client():
    """Client double for handler and connector tests."""
    client = MagicMock(spec=KintoneClient)
    client.instance_name = "kintone"
    return client


@pytest.fixture(autouse=True)
def _no_network(monkeypatch, request):
    """Fail fast if a unit test opens a real connection."""
    if request.node.get_closest_marker("integration"):
        return

    def _blocked(self, method, url, *args, **kwargs):
        raise RuntimeError(f"Unexpected network access in tests: {method} {url}")

    monkeypatch.setattr(requests.Session, "request", _blocked)
