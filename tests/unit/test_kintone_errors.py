import pytest

from kintone_connector.core.kintone.errors import (
    KintoneErrorClassifier,
    PhraseTable,
    load_phrase_table,
)
from kintone_connector.core.rest.exceptions import ConfigurationError

from tests.conftest import _StubResponse, kintone_error


@pytest.fixture
def classifier():
    return KintoneErrorClassifier()


@pytest.mark.parametrize("message", [
    "ユーザーコード「alice」はすでに登録されています。",
    "The user code \"alice\" already exists.",
    "用户代码“alice”已存在。",
])
def test_already_exists_in_every_locale(classifier, message):
    resp = kintone_error("CB_VA01", "users.code", message)

    assert classifier.is_already_exists(resp)
    assert not classifier.is_not_found(resp)
    assert classifier.is_invalid_request(resp)


@pytest.mark.parametrize("field_path,message", [
    ("groups.code", "指定したグループが見つかりません。"),
    ("organizations.code", "The specified organization was not found."),
    ("users.code", "未找到指定的用户。"),
])
def test_not_found_on_every_code_path(classifier, field_path, message):
    resp = kintone_error("CB_VA01", field_path, message)

    assert classifier.is_not_found(resp)
    assert not classifier.is_already_exists(resp)


def test_other_validation_error_is_only_invalid(classifier):
    resp = kintone_error("CB_VA01", "users.name", "Required field.")

    assert not classifier.is_already_exists(resp)
    assert not classifier.is_not_found(resp)
    assert classifier.is_invalid_request(resp)


def test_phrase_match_requires_validation_code(classifier):
    resp = kintone_error("GAIA_XX01", "users.code", "already exists")
    assert not classifier.is_already_exists(resp)


def test_phrase_match_requires_400(classifier):
    resp = kintone_error("CB_VA01", "users.code", "already exists", status_code=409)
    assert not classifier.is_already_exists(resp)


def test_non_json_error_body_is_not_classified(classifier):
    resp = _StubResponse(status_code=400, text="<html>Bad Request</html>")

    assert not classifier.is_already_exists(resp)
    assert not classifier.is_not_found(resp)
    assert classifier.is_invalid_request(resp)


@pytest.mark.parametrize("resp,expected", [
    (_StubResponse(status_code=401), True),
    (kintone_error("CB_WA01", status_code=520), True),
    (kintone_error("CB_AU01", status_code=520), True),
    (kintone_error("CB_IL02", status_code=520), False),
    (_StubResponse(status_code=403), False),
])
def test_not_authenticated(classifier, resp, expected):
    assert classifier.is_not_authenticated(resp) is expected


@pytest.mark.parametrize("status,ok,server", [
    (200, True, False),
    (204, True, False),
    (201, False, False),
    (500, False, True),
    (503, False, True),
])
def test_ok_and_server_error(classifier, status, ok, server):
    resp = _StubResponse(status_code=status)
    assert classifier.is_ok(resp) is ok
    assert classifier.is_server_error(resp) is server


def test_packaged_table_covers_three_locales():
    table = load_phrase_table()
    assert {"すでに登録されています", "already exists", "已存在"} <= set(table.already_exists)
    assert {"見つかりません", "not found", "未找到指定的"} <= set(table.not_found)


def test_extra_phrases_extend_packaged_table(tmp_path):
    extra = tmp_path / "phrases.yaml"
    extra.write_text("already_exists:\n  - \"existe déjà\"\nnot_found: []\n", encoding="utf-8")

    classifier = KintoneErrorClassifier.with_extra_phrases(str(extra))

    assert "existe déjà" in classifier.phrases.already_exists
    assert "already exists" in classifier.phrases.already_exists
    assert classifier.is_already_exists(kintone_error("CB_VA01", "users.code", "Le code existe déjà."))


def test_merged_table_has_no_duplicates():
    merged = PhraseTable(already_exists=("a", "b")).merged(PhraseTable(already_exists=("b", "c")))
    assert merged.already_exists == ("a", "b", "c")


def test_missing_phrase_file_raises(tmp_path):
    with pytest.raises(ConfigurationError):
        load_phrase_table(tmp_path / "missing.yaml")


def test_malformed_phrase_file_raises(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("already_exists: 42\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_phrase_table(bad)
