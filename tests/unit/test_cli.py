import json
from unittest.mock import MagicMock

import pytest

from kintone_connector import cli
from kintone_connector.core.framework import (
    NAME,
    UID,
    Attribute,
    AttributeDelta,
    ConnectorObject,
    Name,
    SearchResult,
    Uid,
)
from kintone_connector.core.rest.exceptions import AuthenticationError, UnknownUidError


@pytest.fixture
def connector(monkeypatch, config):
    instance = MagicMock()
    monkeypatch.setattr(cli, "load_settings", MagicMock(return_value=config))
    monkeypatch.setattr(cli, "KintoneConnector", MagicMock(return_value=instance))
    return instance


def run(capsys, *argv):
    code = cli.main(list(argv))
    out, err = capsys.readouterr()
    return code, (json.loads(out) if out.strip() else None), err


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "usage" in capsys.readouterr().out


def test_test_command(connector, capsys):
    code, out, _ = run(capsys, "test")

    assert code == 0
    assert out == {"status": "ok"}
    connector.test.assert_called_once_with()
    connector.dispose.assert_called_once_with()


def test_create_groups_repeated_values(connector, capsys):
    connector.create.return_value = Uid("1", "foo")

    code, out, _ = run(capsys, "create", "user", "--attr", "__NAME__=foo", "--attr", "groups=a", "--attr", "groups=b")

    assert code == 0
    assert out == {"uid": "1", "name": "foo"}
    object_class, attributes = connector.create.call_args.args
    assert object_class == "user"
    assert attributes == [Attribute(NAME, ["foo"]), Attribute("groups", ["a", "b"])]


def test_update_builds_deltas(connector, capsys):
    code, _, _ = run(
        capsys, "update", "user", "--uid", "12", "--name", "alice",
        "--set", "email=a@example.com", "--clear", "phone",
        "--add", "groups=dev", "--remove", "groups=ops", "--remove", "services=office",
    )

    assert code == 0
    object_class, uid, deltas = connector.update_delta.call_args.args
    assert uid == Uid("12", "alice")
    assert deltas == [
        AttributeDelta("email", values_to_replace=["a@example.com"]),
        AttributeDelta("phone", values_to_replace=[]),
        AttributeDelta("groups", values_to_add=["dev"], values_to_remove=["ops"]),
        AttributeDelta("services", values_to_add=None, values_to_remove=["office"]),
    ]


def test_update_without_changes_is_usage_error(connector, capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["update", "group", "--uid", "1"])
    assert exc.value.code == 2


def test_malformed_pair_is_usage_error(connector, capsys):
    with pytest.raises(SystemExit):
        cli.main(["create", "group", "--attr", "novalue"])


def test_delete(connector, capsys):
    code, out, _ = run(capsys, "delete", "group", "--uid", "3")

    assert code == 0
    assert out == {"status": "deleted", "uid": "3"}
    connector.delete.assert_called_once_with("group", Uid("3", None))


def test_search_prints_objects_and_remaining(connector, capsys):
    def fake_query(object_class, query, results, options):
        results(ConnectorObject("group", Uid("1", "foo"), Name("foo"),
                                {"name": Attribute.of("name", "FOO")}))
        results.handle_result(SearchResult(None, 5))
    connector.execute_query.side_effect = fake_query

    code, out, _ = run(capsys, "search", "group", "--uid", "1", "--page-size", "1", "--page-offset", "1")

    assert code == 0
    assert out == {
        "results": [{"objectClass": "group", "uid": "1", "name": "foo", "attributes": {"name": ["FOO"]}}],
        "remainingPagedResults": 5,
    }
    _, query, _, options = connector.execute_query.call_args.args
    assert query.attribute == UID
    assert options.page_size == 1
    assert options.paged_results_offset == 1


def test_search_marks_incomplete_attributes(connector, capsys):
    def fake_query(object_class, query, results, options):
        results(ConnectorObject("user", Uid("1", "a"), Name("a"),
                                {"groups": Attribute("groups", [], complete=False)}))
    connector.execute_query.side_effect = fake_query

    _, out, _ = run(capsys, "search", "user", "--name", "a", "--attributes", "groups", "--allow-partial")

    assert out["results"][0]["attributes"]["groups"] == {"values": [], "complete": False}
    options = connector.execute_query.call_args.args[3]
    assert options.attributes_to_get == ["groups"]
    assert options.allow_partial_attribute_values is True


def test_connector_error_exits_with_one(connector, capsys):
    connector.delete.side_effect = UnknownUidError("kintone group 3 not found")

    code, _, err = run(capsys, "delete", "group", "--uid", "3")

    assert code == 1
    assert "UnknownUidError" in err
    connector.dispose.assert_called_once_with()


def test_initialization_failure_exits_with_one(monkeypatch, config, capsys):
    monkeypatch.setattr(cli, "load_settings", MagicMock(return_value=config))
    monkeypatch.setattr(cli, "KintoneConnector", MagicMock(side_effect=AuthenticationError("bad credentials")))

    code, _, err = run(capsys, "test")

    assert code == 1
    assert "bad credentials" in err
