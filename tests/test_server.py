# tests/test_server.py

import json

import pytest
from fastapi.testclient import TestClient

from src.trivelastic.errors import DeliveryError
from src.trivelastic.pool import WorkerPool
from src.trivelastic.server import create_app


class RecordingIndexer:
    def __init__(self, fail=False):
        self.fail = fail
        self.documents = []

    def index(self, document):
        self.documents.append(document)
        if self.fail:
            raise DeliveryError("all retries failed", attempts=3, status_code=500)
        return []


def make_client(indexer, size=2):
    pool = WorkerPool(size, indexer)
    return pool, TestClient(create_app(pool))


@pytest.fixture
def indexer():
    return RecordingIndexer()


@pytest.fixture
def client(indexer):
    pool, test_client = make_client(indexer)
    with test_client as c:
        yield c
    pool.shutdown()


def test_post_with_healthy_downstream_returns_sanitized_document(client, indexer):
    payload = {"name": "x", "empty": "", "nested": {"lastModifiedDate": None}}

    response = client.post("/", json=payload)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    body = response.json()
    assert body["status"] == "success"
    assert body["message"] == "Data processed successfully"
    assert body["data"] == {"name": "x"}
    assert indexer.documents == [{"name": "x"}]


def test_any_path_is_accepted(client, indexer):
    response = client.post("/some/deep/path", json={"a": 1})

    assert response.status_code == 200
    assert response.json()["data"] == {"a": 1}


def test_get_is_method_not_allowed(client, indexer):
    response = client.get("/")

    assert response.status_code == 405
    assert response.headers["content-type"].startswith("text/plain")
    assert "Only POST method is allowed" in response.text
    assert indexer.documents == []


@pytest.mark.parametrize("method", ["PUT", "DELETE", "PATCH"])
def test_other_methods_are_rejected(client, method):
    response = client.request(method, "/", content=b"{}")

    assert response.status_code == 405


@pytest.mark.parametrize("method", ["TRACE", "PURGE", "PROPFIND"])
def test_any_method_reaches_the_worker(client, indexer, method):
    response = client.request(method, "/some/path")

    assert response.status_code == 405
    assert response.headers["content-type"].startswith("text/plain")
    assert "Only POST method is allowed" in response.text
    assert indexer.documents == []


def test_nan_in_body_is_bad_request(client, indexer):
    response = client.post("/", content=b'{"a": NaN, "b": 1}')

    assert response.status_code == 400
    assert response.text.startswith("Error parsing JSON:")
    assert indexer.documents == []


def test_malformed_json_is_bad_request(client, indexer):
    response = client.post(
        "/",
        content=b'{"name": "x",',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text.startswith("Error parsing JSON:")
    assert indexer.documents == []


def test_empty_body_is_bad_request(client):
    response = client.post("/", content=b"")

    assert response.status_code == 400
    assert "Error parsing JSON" in response.text


def test_unicode_is_preserved(client, indexer):
    response = client.post("/", json={"title": "Zürich ☃", "blank": ""})

    assert response.status_code == 200
    assert response.json()["data"] == {"title": "Zürich ☃"}


def test_downstream_failure_is_warning_not_error():
    failing = RecordingIndexer(fail=True)
    pool, test_client = make_client(failing, size=1)
    try:
        with test_client as c:
            response = c.post("/", json={"keep": 0, "drop": None})
    finally:
        pool.shutdown()

    assert response.status_code == 200
    body = response.json()
    assert body == {
        "status": "warning",
        "message": "Request processed but failed to store in Elasticsearch",
        "data": {"keep": 0},
    }


def test_large_nested_body_round_trips(client):
    payload = {
        "items": [{"id": i, "tags": ["", None, f"t{i}"], "meta": {}} for i in range(200)]
    }

    response = client.post("/", content=json.dumps(payload).encode("utf-8"))

    assert response.status_code == 200
    items = response.json()["data"]["items"]
    assert len(items) == 200
    assert items[5] == {"id": 5, "tags": ["", "t5"]}
