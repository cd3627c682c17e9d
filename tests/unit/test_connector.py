"""Unit tests for the connector entry points and its error boundary."""
import logging
from unittest.mock import MagicMock

import pytest

from kintone_connector.core import connector as connector_module
from kintone_connector.core.connector import KintoneConnector
from kintone_connector.core.filters import EqualsFilter
from kintone_connector.core.framework import (
    GROUP,
    NAME,
    UID,
    USER,
    Attribute,
    AttributeDelta,
    CollectingResultsHandler,
    OperationOptions,
    SearchResult,
    Uid,
)
from kintone_connector.core.kintone.models import GroupModel, UserModel
from kintone_connector.core.rest.exceptions import (
    AlreadyExistsError,
    AuthenticationError,
    ConfigurationError,
    ConnectorIOError,
    InvalidAttributeValueError,
    UnknownUidError,
)

from tests.conftest import BASE_URL, _StubResponse


@pytest.fixture
def connector(config, mock_client):
    return KintoneConnector(config, client=mock_client)


# ============================================================================
# Initialization and lifecycle
# ============================================================================

def test_init_runs_connection_test(connector, mock_client):
    mock_client.test.assert_called_once_with()
    assert connector.instance_name == "kintone"


def test_init_rejects_invalid_configuration(config, mock_client):
    config.base_url = ""
    with pytest.raises(ConfigurationError):
        KintoneConnector(config, client=mock_client)
    mock_client.test.assert_not_called()


def test_init_propagates_authentication_failure(config, mock_client, caplog):
    mock_client.test.side_effect = AuthenticationError("Failed kintone test response. statusCode: 520")

    with caplog.at_level(logging.ERROR, logger="kintone_connector.core.connector"):
        with pytest.raises(AuthenticationError):
            KintoneConnector(config, client=mock_client)

    assert "during initialize" in caplog.text


def test_test_reconnects_with_fresh_client(connector, mock_client, monkeypatch):
    fresh = MagicMock()
    monkeypatch.setattr(connector_module, "KintoneClient", MagicMock(return_value=fresh))

    connector.test()

    mock_client.close.assert_called_once_with()
    fresh.test.assert_called_once_with()
    assert connector.client is fresh


def test_dispose_closes_client(connector, mock_client):
    connector.schema()

    connector.dispose()

    mock_client.close.assert_called_once_with()
    assert connector.client is None
    assert connector._handlers is None


def test_schema_lists_all_object_classes(connector):
    schemas = connector.schema()
    assert set(schemas) == {"user", "organization", "group"}
    assert schemas[GROUP].name.native_name == "code"


# ============================================================================
# Create / update / delete
# ============================================================================

def test_create_delegates_to_handler(connector, mock_client):
    mock_client.create_group.return_value = Uid("1", "foo")

    uid = connector.create(GROUP, [Attribute.of(NAME, "foo"), Attribute.of("name", "FOO")])

    assert uid == Uid("1", "foo")


def test_create_with_empty_attributes_raises(connector):
    with pytest.raises(InvalidAttributeValueError):
        connector.create(GROUP, [])


def test_create_unknown_attribute_raises(connector, mock_client):
    with pytest.raises(InvalidAttributeValueError) as exc:
        connector.create(GROUP, [Attribute.of(NAME, "foo"), Attribute.of("colour", "red")])
    assert "colour" in str(exc.value)
    mock_client.create_group.assert_not_called()


def test_unsupported_object_class_raises(connector):
    with pytest.raises(InvalidAttributeValueError):
        connector.create("printer", [Attribute.of(NAME, "p1")])


def test_already_exists_is_logged_as_warning(connector, mock_client, caplog):
    mock_client.create_group.side_effect = AlreadyExistsError("kintone group 'foo' already exists.")

    with caplog.at_level(logging.WARNING, logger="kintone_connector.core.connector"):
        with pytest.raises(AlreadyExistsError):
            connector.create(GROUP, [Attribute.of(NAME, "foo")])

    assert [r.levelname for r in caplog.records] == ["WARNING"]


def test_update_unknown_uid_is_logged_as_warning(connector, mock_client, caplog):
    mock_client.resolve_group_code.side_effect = UnknownUidError("kintone group 1 not found")

    with caplog.at_level(logging.WARNING, logger="kintone_connector.core.connector"):
        with pytest.raises(UnknownUidError):
            connector.update_delta(GROUP, Uid("1"), [AttributeDelta.replace("name", "x")])

    assert caplog.records[0].levelname == "WARNING"
    assert "uid: 1" in caplog.text


def test_bad_value_error_carries_object_class(connector, mock_client):
    with pytest.raises(InvalidAttributeValueError) as exc:
        connector.update_delta(USER, Uid("1", "user1"), [AttributeDelta.replace("sortOrder", "abc")])

    assert exc.value.object_class == USER
    assert exc.value.identifier == "sortOrder"
    mock_client.update_user.assert_not_called()


def test_unexpected_error_is_wrapped(connector, mock_client, caplog):
    mock_client.delete_group.side_effect = RuntimeError("boom")

    with caplog.at_level(logging.ERROR, logger="kintone_connector.core.connector"):
        with pytest.raises(ConnectorIOError) as exc:
            connector.delete(GROUP, Uid("1", "foo"))

    assert isinstance(exc.value.__cause__, RuntimeError)
    assert exc.value.object_class == GROUP
    assert "unexpected error" in caplog.text


def test_update_and_delete_require_uid(connector):
    with pytest.raises(InvalidAttributeValueError):
        connector.update_delta(GROUP, None, [])
    with pytest.raises(InvalidAttributeValueError):
        connector.delete(GROUP, None)


# ============================================================================
# Search
# ============================================================================

def test_search_by_uid(connector, mock_client):
    mock_client.get_group.return_value = GroupModel.from_payload({"id": "1", "code": "foo", "name": "FOO"})
    results = CollectingResultsHandler()

    outcome = connector.execute_query(GROUP, EqualsFilter(UID, Uid("1")), results)

    assert outcome is None
    assert [o.name.value for o in results.objects] == ["foo"]
    mock_client.get_group.assert_called_once_with(Uid("1"))


def test_search_by_name(connector, mock_client):
    mock_client.get_user_by_name.return_value = UserModel.from_payload({"id": "1", "code": "alice"})
    results = CollectingResultsHandler()

    connector.execute_query(USER, EqualsFilter(NAME, "alice"), results)

    assert results.objects[0].uid == Uid("1", "alice")


def test_search_rejects_other_filters(connector):
    with pytest.raises(InvalidAttributeValueError):
        connector.execute_query(GROUP, EqualsFilter("name", "FOO"), CollectingResultsHandler())
    with pytest.raises(InvalidAttributeValueError):
        connector.execute_query(GROUP, EqualsFilter(UID, "1", negated=True), CollectingResultsHandler())


def test_search_unknown_attribute_to_get_raises(connector):
    options = OperationOptions(attributes_to_get=["colour"])
    with pytest.raises(InvalidAttributeValueError):
        connector.execute_query(GROUP, None, CollectingResultsHandler(), options)


def test_full_scan_uses_default_page_size(connector, mock_client, config):
    mock_client.get_groups.return_value = 0

    outcome = connector.execute_query(GROUP, None, CollectingResultsHandler())

    assert outcome is None
    _, page_size, page_offset = mock_client.get_groups.call_args.args
    assert page_size == config.default_query_page_size
    assert page_offset == 0


@pytest.mark.critical
def test_explicit_page_returns_remaining_count(connector, mock_client):
    mock_client.get_groups.return_value = 10
    results = CollectingResultsHandler()

    outcome = connector.execute_query(GROUP, None, results, OperationOptions(page_size=10, paged_results_offset=2))

    assert outcome == SearchResult(None, 10 - 10 * 2)
    assert results.search_result == outcome


@pytest.mark.critical
def test_explicit_empty_page_fetches_once(config, kintone_client, fake_session):
    fake_session.queue(_StubResponse({"users": []}))  # connection test
    connector = KintoneConnector(config, client=kintone_client)
    fake_session.queue(_StubResponse({"groups": []}))
    results = CollectingResultsHandler()

    connector.execute_query(GROUP, None, results, OperationOptions(page_size=20, paged_results_offset=1))

    assert results.objects == []
    page_calls = fake_session.calls[1:]
    assert len(page_calls) == 1
    assert page_calls[0]["url"] == f"{BASE_URL}/v1/groups.json"
    assert page_calls[0]["params"] == {"offset": "0", "size": "20"}


def test_search_returns_requested_attributes_only(connector, mock_client):
    mock_client.get_user.return_value = UserModel.from_payload(
        {"id": "1", "code": "alice", "email": "a@example.com", "phone": "123"})
    mock_client.get_groups_for_user.return_value = ["everyone", "dev"]
    results = CollectingResultsHandler()

    connector.execute_query(USER, EqualsFilter(UID, "1"), results,
                            OperationOptions(attributes_to_get=["email", "groups"]))

    obj = results.objects[0]
    assert set(obj.attributes) == {"email", "groups"}
    assert obj.get("groups").values == ["dev"]
