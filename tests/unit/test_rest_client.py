"""Unit tests for the generic REST transport and its error mapping."""
import pytest
import requests

from kintone_connector.core.framework import Uid
from kintone_connector.core.kintone.errors import KintoneErrorClassifier
from kintone_connector.core.rest.client import RESTClient
from kintone_connector.core.rest.exceptions import (
    AlreadyExistsError,
    AuthenticationError,
    ConnectorError,
    ConnectorIOError,
    InvalidAttributeValueError,
    TransientServerError,
    UnknownUidError,
)

from tests.conftest import FakeSession, _StubResponse, kintone_error

URL = "https://example.cybozu.com/v1/groups.json"


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def client(session):
    return RESTClient("kintone", session, KintoneErrorClassifier(), timeout=(1.0, 2.0))


# ============================================================================
# Transport gates
# ============================================================================

def test_get_passes_params_and_timeout(client, session):
    session.queue(_StubResponse({"groups": []}))

    client.get(URL, {"size": "1"})

    assert session.calls == [{"method": "GET", "url": URL, "params": {"size": "1"}, "body": None,
                              "timeout": (1.0, 2.0)}]


def test_post_serializes_json_body(client, session):
    session.queue(_StubResponse({}))

    client.post(URL, {"groups": [{"code": "営業"}]})

    assert session.calls[0]["body"] == {"groups": [{"code": "営業"}]}


@pytest.mark.parametrize("resp", [
    _StubResponse(status_code=401),
    kintone_error("CB_WA01", status_code=520),
])
def test_authentication_failure_raised_on_every_verb(client, session, resp):
    session.queue(resp)
    with pytest.raises(AuthenticationError) as exc:
        client.put(URL, {"groups": []})
    assert exc.value.status_code == resp.status_code


def test_server_error_is_transient(client, session):
    session.queue(_StubResponse(status_code=503, text="maintenance"))

    with pytest.raises(TransientServerError) as exc:
        client.get(URL)

    assert exc.value.body == "maintenance"
    assert isinstance(exc.value, ConnectorIOError)


def test_network_failure_is_transient(client, session):
    def boom(method, url, params, body):
        raise requests.ConnectionError("connection refused")
    session.route = boom

    with pytest.raises(TransientServerError):
        client.get(URL)


def test_unserializable_body_raises_io_error(client):
    with pytest.raises(ConnectorIOError):
        client.post(URL, {"value": object()})


def test_read_json_rejects_non_object(client):
    with pytest.raises(ConnectorIOError):
        client.read_json(_StubResponse([1, 2]))


def test_read_json_rejects_invalid_body(client):
    with pytest.raises(ConnectorIOError):
        client.read_json(_StubResponse(status_code=200, text="not json"))


# ============================================================================
# Create
# ============================================================================

def test_create_already_exists(client, session):
    session.queue(kintone_error("CB_VA01", "groups.code", "already exists"))

    with pytest.raises(AlreadyExistsError) as exc:
        client.call_create("group", URL, {"groups": [{"code": "sales"}]}, "sales")

    assert exc.value.object_class == "group"
    assert exc.value.identifier == "sales"
    assert exc.value.status_code == 400


def test_create_invalid(client, session):
    session.queue(kintone_error("CB_VA01", "groups.name", "Required field."))
    with pytest.raises(InvalidAttributeValueError):
        client.call_create("group", URL, {"groups": [{"code": "sales"}]}, "sales")


def test_create_other_failure(client, session):
    session.queue(_StubResponse(status_code=403, text="forbidden"))
    with pytest.raises(ConnectorIOError) as exc:
        client.call_create("group", URL, {}, "sales")
    assert exc.value.body == "forbidden"


# ============================================================================
# Update / delete
# ============================================================================

@pytest.mark.critical
def test_update_not_found_wins_over_invalid(client, session):
    session.queue(kintone_error("CB_VA01", "groups.code", "The specified group was not found."))

    with pytest.raises(UnknownUidError) as exc:
        client.call_update("group", URL, Uid("7", "sales"), {"groups": []})

    assert exc.value.identifier == "7 (sales)"


def test_update_rename_conflict_is_already_exists(client, session):
    session.queue(kintone_error("CB_VA01", "groups.code", "already exists"))
    with pytest.raises(AlreadyExistsError):
        client.call_update("group", URL, Uid("7", "sales"), {})


def test_update_invalid(client, session):
    session.queue(kintone_error("CB_VA01", "groups.name", "Too long."))
    with pytest.raises(InvalidAttributeValueError):
        client.call_update("group", URL, Uid("7", "sales"), {})


def test_patch_other_failure(client, session):
    session.queue(_StubResponse(status_code=409, text="conflict"))
    with pytest.raises(ConnectorIOError):
        client.call_patch("group", URL, Uid("7"), {})


def test_update_ok(client, session):
    session.queue(_StubResponse({}, status_code=200))
    resp = client.call_update("group", URL, Uid("7", "sales"), {"groups": []})
    assert resp.status_code == 200
    assert session.calls[0]["method"] == "PUT"


def test_delete_not_found(client, session):
    session.queue(kintone_error("CB_VA01", "groups.code", "見つかりません"))
    with pytest.raises(UnknownUidError):
        client.call_delete("group", URL, Uid("7", "sales"), {"codes": ["sales"]})


def test_delete_other_failure(client, session):
    session.queue(kintone_error("CB_VA01", "groups.name", "Something else"))
    with pytest.raises(ConnectorIOError):
        client.call_delete("group", URL, Uid("7", "sales"), {"codes": ["sales"]})


# ============================================================================
# Paged queries
# ============================================================================

def test_get_all_wraps_unexpected_errors(client):
    def fetch_page(start, size):
        raise KeyError("users")

    with pytest.raises(ConnectorIOError):
        client.get_all(lambda e: True, 10, None, fetch_page)


def test_get_all_propagates_connector_errors(client):
    def fetch_page(start, size):
        raise AuthenticationError("expired")

    with pytest.raises(AuthenticationError):
        client.get_all(lambda e: True, 10, None, fetch_page)


def test_exceptions_share_base():
    assert issubclass(TransientServerError, ConnectorError)
