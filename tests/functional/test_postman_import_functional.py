"""Functional tests for Postman collection import."""

from __future__ import annotations

import json

import pytest
from sqlalchemy.exc import IntegrityError

from curlew.logic import postman_import
from curlew.logic import repository_requests
from curlew.logic.errors import ImportFormatError, StoreError
from curlew.logic.events import COLLECTION_IMPORTED, get_buffered_events


def _leaf(name: str, method: str = "GET", url="https://api.test/x", **extra) -> dict:
    return {"name": name, "request": {"method": method, "url": url, **extra}}


def _document(items: list, **info) -> str:
    base_info = {
        "name": "Shop API",
        "_postman_id": "abc",
        "schema": "https://schema.getpostman.com/json/collection/v2.1.0/collection.json",
    }
    base_info.update(info)
    return json.dumps({"info": base_info, "item": items})


def _collections(sql) -> dict:
    rows = sql("SELECT id, name, description, parent_collection FROM collections")
    return {r[1]: {"id": r[0], "description": r[2], "parent": r[3]} for r in rows}


def _requests(sql) -> dict:
    rows = sql(
        "SELECT name, collection_id, sort_order, method, url, description, headers, body, "
        "body_type, body_format, auth FROM requests"
    )
    keys = ["collection_id", "sort_order", "method", "url", "description", "headers", "body", "body_type", "body_format", "auth"]
    return {r[0]: dict(zip(keys, r[1:])) for r in rows}


def test_folder_and_top_level_leaf_land_in_separate_scopes(engine, sql) -> None:
    doc = _document(
        [
            {"name": "Auth", "item": [_leaf("Login", "POST"), _leaf("Logout", "POST")]},
            _leaf("Ping"),
        ]
    )

    summary = postman_import.import_collection(doc)

    cols = _collections(sql)
    reqs = _requests(sql)
    assert set(cols) == {"Shop API", "Auth"}
    assert len(reqs) == 3
    root_id, auth_id = cols["Shop API"]["id"], cols["Auth"]["id"]
    assert cols["Auth"]["parent"] == root_id
    assert cols["Shop API"]["parent"] is None
    assert reqs["Ping"]["collection_id"] == root_id
    assert (reqs["Login"]["collection_id"], reqs["Login"]["sort_order"]) == (auth_id, 0)
    assert (reqs["Logout"]["collection_id"], reqs["Logout"]["sort_order"]) == (auth_id, 1)
    assert summary.collection_id == root_id
    assert (summary.collections_created, summary.requests_created) == (2, 3)


def test_each_folder_numbers_from_zero_in_document_order(engine, sql) -> None:
    doc = _document(
        [
            _leaf("top-0"),
            {"name": "Nested", "item": [_leaf("n-0"), {"name": "Deeper", "item": [_leaf("d-0")]}, _leaf("n-1")]},
            _leaf("top-1"),
            _leaf("top-2"),
        ]
    )

    postman_import.import_collection(doc)

    reqs = _requests(sql)
    assert [reqs[n]["sort_order"] for n in ("top-0", "top-1", "top-2")] == [0, 1, 2]
    assert [reqs[n]["sort_order"] for n in ("n-0", "n-1")] == [0, 1]
    assert reqs["d-0"]["sort_order"] == 0


def test_description_and_url_accept_string_or_object(engine, sql) -> None:
    doc = _document(
        [
            {
                "name": "Folder",
                "description": {"content": "folder docs", "type": "text/markdown"},
                "item": [
                    {
                        "name": "Structured",
                        "description": {"content": "structured docs"},
                        "request": {"method": "get", "url": {"raw": "https://api.test/a?x=1", "host": ["api", "test"]}},
                    },
                    {"name": "Plain", "description": "plain docs", "request": {"method": "GET", "url": "https://api.test/b"}},
                    {"name": "Neither", "description": {"type": "text/plain"}, "request": {"url": {"host": ["h"]}}},
                ],
            }
        ],
        description="root docs",
    )

    postman_import.import_collection(doc)

    cols = _collections(sql)
    reqs = _requests(sql)
    assert cols["Shop API"]["description"] == "root docs"
    assert cols["Folder"]["description"] == "folder docs"
    assert (reqs["Structured"]["description"], reqs["Structured"]["url"]) == ("structured docs", "https://api.test/a?x=1")
    assert (reqs["Plain"]["description"], reqs["Plain"]["url"]) == ("plain docs", "https://api.test/b")
    assert reqs["Neither"]["description"] is None
    assert reqs["Neither"]["url"] is None
    assert reqs["Neither"]["method"] == "GET"
    assert reqs["Structured"]["method"] == "GET"


def test_sub_documents_stored_as_canonical_json(engine, sql) -> None:
    header = [{"key": "Content-Type", "value": "application/json"}]
    body = {"options": {"raw": {"language": "json"}}, "raw": "{\"a\": 1}", "mode": "raw"}
    auth = {"type": "bearer", "bearer": [{"key": "token", "value": "t0k"}]}
    doc = _document([_leaf("Create", "POST", header=header, body=body, auth=auth), _leaf("Bare")])

    postman_import.import_collection(doc)

    reqs = _requests(sql)
    create = reqs["Create"]
    assert create["headers"] == '[{"key":"Content-Type","value":"application/json"}]'
    assert json.loads(create["body"]) == body
    assert create["body"].startswith('{"mode":"raw","options"')
    assert json.loads(create["auth"]) == auth
    assert (create["body_type"], create["body_format"]) == ("raw", "JSON")
    bare = reqs["Bare"]
    assert (bare["headers"], bare["body"], bare["auth"]) == (None, None, None)
    assert bare["body_type"] == "none"


def test_empty_nodes_are_skipped_and_leaf_children_ignored(engine, sql) -> None:
    doc = _document(
        [
            {"name": "Empty folder", "item": []},
            {"name": "Nothing"},
            {**_leaf("Leaf with kids"), "item": [_leaf("Ignored child")]},
            _leaf("After"),
        ]
    )

    summary = postman_import.import_collection(doc)

    assert set(_collections(sql)) == {"Shop API"}
    reqs = _requests(sql)
    assert set(reqs) == {"Leaf with kids", "After"}
    assert reqs["After"]["sort_order"] == 1
    assert summary.requests_created == 2


def test_string_request_is_a_get(engine, sql) -> None:
    postman_import.import_collection(_document([{"name": "Short", "request": "https://api.test/short"}]))

    reqs = _requests(sql)
    assert (reqs["Short"]["method"], reqs["Short"]["url"]) == ("GET", "https://api.test/short")


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        "[]",
        json.dumps({"item": []}),
        json.dumps({"info": {"name": "x"}, "item": "nope"}),
        "",
    ],
)
def test_malformed_documents_write_nothing(engine, sql, raw) -> None:
    with pytest.raises(ImportFormatError):
        postman_import.import_collection(raw)
    assert sql("SELECT COUNT(*) FROM collections")[0][0] == 0
    assert sql("SELECT COUNT(*) FROM requests")[0][0] == 0


def test_oversized_document_is_rejected(engine) -> None:
    with pytest.raises(ImportFormatError, match="limit"):
        postman_import.import_collection(_document([_leaf("a")]), max_bytes=10)


def test_version_object_and_string_are_stored(engine, sql) -> None:
    postman_import.import_collection(
        _document([], name="Structured", version={"major": 2, "minor": 1, "patch": 0, "identifier": "rc1"})
    )
    postman_import.import_collection(_document([], name="Semver", version="1.4.2-beta"))

    rows = sql(
        "SELECT name, schema, version_major, version_minor, version_patch, version_identifier FROM collections ORDER BY name"
    )
    assert [tuple(r[2:]) for r in rows] == [(1, 4, 2, "beta"), (2, 1, 0, "rc1")]
    assert rows[0][1].endswith("collection.json")


@pytest.mark.parametrize("version", [2, {"major": "x"}, ["1", "0"], True])
def test_unsupported_version_is_ignored(engine, sql, version) -> None:
    summary = postman_import.import_collection(_document([_leaf("a")], name="V", version=version))

    assert summary.requests_created == 1
    rows = sql("SELECT version_major, version_minor, version_patch, version_identifier FROM collections")
    assert [tuple(r) for r in rows] == [(None, None, None, None)]


def _nested(depth: int) -> str:
    node = json.dumps(_leaf("bottom"))
    for _ in range(depth):
        node = '{"name":"f","item":[' + node + "]}"
    return '{"info":{"name":"Deep"},"item":[' + node + "]}"


@pytest.mark.parametrize("depth", [postman_import.MAX_FOLDER_DEPTH, 3000])
def test_deeply_nested_folders_are_a_format_error(engine, sql, depth) -> None:
    with pytest.raises(ImportFormatError, match="nested"):
        postman_import.import_collection(_nested(depth))
    assert sql("SELECT COUNT(*) FROM collections")[0][0] == 0


def test_folder_nesting_up_to_the_limit_imports(engine, sql) -> None:
    summary = postman_import.import_collection(_nested(postman_import.MAX_FOLDER_DEPTH - 2))

    assert summary.collections_created == postman_import.MAX_FOLDER_DEPTH - 1
    assert summary.requests_created == 1


def _fail_on_second_insert(monkeypatch) -> None:
    real = repository_requests.insert_request
    calls = {"n": 0}

    def _flaky(conn, scope, position, fields):
        calls["n"] += 1
        if calls["n"] == 2:
            raise IntegrityError("INSERT INTO requests", {}, Exception("constraint failed"))
        return real(conn, scope, position, fields)

    monkeypatch.setattr(repository_requests, "insert_request", _flaky)


def test_atomic_import_rolls_back_on_failure(engine, sql, monkeypatch) -> None:
    _fail_on_second_insert(monkeypatch)

    with pytest.raises(StoreError):
        postman_import.import_collection(_document([_leaf("one"), _leaf("two"), _leaf("three")]))

    assert sql("SELECT COUNT(*) FROM collections")[0][0] == 0
    assert sql("SELECT COUNT(*) FROM requests")[0][0] == 0


def test_non_atomic_import_keeps_rows_written_before_failure(engine, sql, monkeypatch) -> None:
    _fail_on_second_insert(monkeypatch)

    with pytest.raises(StoreError):
        postman_import.import_collection(_document([_leaf("one"), _leaf("two"), _leaf("three")]), atomic=False)

    assert sql("SELECT COUNT(*) FROM collections")[0][0] == 1
    assert [r[0] for r in sql("SELECT name FROM requests")] == ["one"]


def test_import_publishes_summary_event(engine) -> None:
    summary = postman_import.import_collection(_document([_leaf("a")]))

    (event,) = get_buffered_events()
    assert event["type"] == COLLECTION_IMPORTED
    assert event["payload"]["collection_id"] == summary.collection_id
