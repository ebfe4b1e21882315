"""
Tests for the blob store emulator endpoints.
"""

import json
import os

import pytest
from fastapi.testclient import TestClient

from FlowChat.api.routes_api import app, configure_store


@pytest.fixture
def client(tmp_path):
    configure_store(str(tmp_path / "storage"))
    with TestClient(app) as c:
        yield c


def _put_index(client, conv_id, messages=(), title="T", sender="ABCDE"):
    body = {"messages": list(messages), "title": title, "sender": sender}
    r = client.put("/json", params={"key": f"conversations/{conv_id}/index.json"}, json=body)
    assert r.status_code == 200


class TestBlobEndpoints:

    def test_upload_then_get(self, client):
        r = client.put("/upload", params={"key": "conversations/c1/assets/a.png"},
                       content=b"\x89PNG", headers={"Content-Type": "image/png"})
        assert r.status_code == 200
        url = r.json()["url"]
        assert url.endswith("/get?key=conversations%2Fc1%2Fassets%2Fa.png")

        got = client.get("/get", params={"key": "conversations/c1/assets/a.png"})
        assert got.status_code == 200
        assert got.content == b"\x89PNG"
        assert got.headers["content-type"] == "image/png"

    def test_upload_without_content_type(self, client):
        client.put("/upload", params={"key": "k/raw"}, content=b"abc")
        r = client.get("/get", params={"key": "k/raw"})
        assert r.headers["content-type"] == "application/octet-stream"

    def test_get_missing(self, client):
        r = client.get("/get", params={"key": "nope"})
        assert r.status_code == 404
        assert r.text == "Not found"

    def test_missing_key_param(self, client):
        assert client.get("/get").status_code == 400
        assert client.put("/upload", content=b"x").status_code == 400
        assert client.delete("/delete-file").json() == {"error": "missing key"}
        assert client.delete("/delete-conversation").status_code == 400
        assert client.get("/export").status_code == 400

    def test_key_escaping_storage_rejected(self, client):
        r = client.put("/upload", params={"key": "../outside"}, content=b"x")
        assert r.status_code == 400


class TestJsonEndpoints:

    def test_put_and_get_json(self, client):
        r = client.put("/json", params={"key": "a/doc.json"}, json={"x": [1, 2], "é": "ü"})
        assert r.json() == {"ok": True}
        assert client.get("/json", params={"key": "a/doc.json"}).json() == {"x": [1, 2], "é": "ü"}

    def test_post_json(self, client):
        client.post("/json", params={"key": "a/doc.json"}, json=[1])
        assert client.get("/json", params={"key": "a/doc.json"}).json() == [1]

    def test_stored_pretty_printed(self, client, tmp_path):
        client.put("/json", params={"key": "a/doc.json"}, json={"x": 1})
        with open(os.path.join(tmp_path, "storage", "a", "doc.json"), encoding="utf-8") as f:
            assert f.read() == '{\n  "x": 1\n}'

    def test_missing_json_is_null_404(self, client):
        r = client.get("/json", params={"key": "missing.json"})
        assert r.status_code == 404
        assert r.json() is None

    def test_invalid_body(self, client):
        r = client.put("/json", params={"key": "a/doc.json"}, content=b"{oops")
        assert r.status_code == 400
        assert "error" in r.json()

    def test_invalid_stored_json(self, client):
        client.put("/upload", params={"key": "a/bad.json"}, content=b"{oops")
        assert client.get("/json", params={"key": "a/bad.json"}).status_code == 500


class TestConversationEndpoints:

    def test_list_conversations(self, client):
        assert client.get("/list-conversations").json() == []
        catalog = [{"id": "c1", "title": "T", "updatedAt": 5}]
        client.put("/json", params={"key": "conversations/index.json"}, json=catalog)
        assert client.get("/list-conversations").json() == catalog

    def test_list_conversations_invalid_catalog(self, client):
        client.put("/upload", params={"key": "conversations/index.json"}, content=b"garbage")
        assert client.get("/list-conversations").json() == []

    def test_delete_conversation(self, client):
        _put_index(client, "c1")
        client.put("/upload", params={"key": "conversations/c1/assets/f.txt"}, content=b"x")
        _put_index(client, "c2")

        assert client.delete("/delete-conversation", params={"id": "c1"}).json() == {"ok": True}
        assert client.get("/get", params={"key": "conversations/c1/assets/f.txt"}).status_code == 404
        assert client.get("/json", params={"key": "conversations/c2/index.json"}).status_code == 200
        assert client.delete("/delete-conversation", params={"id": "c1"}).status_code == 404

    def test_export(self, client):
        _put_index(client, "c1", [{"id": "m1", "time": "2024-01-01-00:00:00", "text": "hi"}], title="T")
        r = client.get("/export", params={"conv": "c1"})
        assert r.status_code == 200
        assert r.text == "Conversation: T\nSender: ABCDE\n---\n2024-01-01-00:00:00\thi"
        assert r.headers["content-type"].startswith("text/plain")

    def test_export_by_key_and_missing(self, client):
        _put_index(client, "c1", title="")
        assert client.get("/export", params={"key": "c1"}).text.startswith("Conversation: c1\n")
        assert client.get("/export", params={"conv": "zz"}).status_code == 404

    def test_rename(self, client):
        _put_index(client, "old1", title="Room")
        client.put("/upload", params={"key": "conversations/old1/assets/f.txt"}, content=b"x",
                   headers={"Content-Type": "text/plain"})

        r = client.post("/rename-conversation", json={"oldId": "old1", "newId": "new1"})

        assert r.json() == {"ok": True}
        assert client.get("/json", params={"key": "conversations/old1/index.json"}).status_code == 404
        assert client.get("/json", params={"key": "conversations/new1/index.json"}).json()["title"] == "Room"
        moved = client.get("/get", params={"key": "conversations/new1/assets/f.txt"})
        assert moved.content == b"x"
        assert moved.headers["content-type"].startswith("text/plain")

    def test_rename_errors(self, client):
        _put_index(client, "a1")
        _put_index(client, "b1")
        assert client.put("/rename-conversation", json={"oldId": "a1"}).status_code == 400
        assert client.post("/rename-conversation", json={"oldId": "zz", "newId": "yy"}).status_code == 404
        conflict = client.post("/rename-conversation", json={"oldId": "a1", "newId": "b1"})
        assert conflict.status_code == 409
        assert conflict.json() == {"error": "new already exists"}


class TestDeleteFile:

    def _upload(self, client, key):
        client.put("/upload", params={"key": key}, content=b"data")

    def test_exact_key(self, client):
        self._upload(client, "conversations/c1/assets/a.txt")
        r = client.delete("/delete-file", params={"key": "conversations/c1/assets/a.txt"})
        assert r.json() == {"ok": True}
        assert client.get("/get", params={"key": "conversations/c1/assets/a.txt"}).status_code == 404

    def test_encoded_key_matches_decoded_file(self, client):
        self._upload(client, "conversations/c1/assets/my photo.jpg")
        r = client.delete("/delete-file", params={"key": "conversations/c1/assets/my%20photo.jpg"})
        assert r.status_code == 200
        assert client.get("/get", params={"key": "conversations/c1/assets/my photo.jpg"}).status_code == 404

    def test_suffix_match(self, client):
        self._upload(client, "conversations/c1/assets/2024-01-01-000000-a.txt")
        r = client.delete("/delete-file", params={"key": "conversations/c1/assets/a.txt"})
        assert r.status_code == 200

    def test_sidecar_removed(self, client, tmp_path):
        self._upload(client, "conversations/c1/assets/a.txt")
        self._upload(client, "conversations/c1/assets/b.txt")
        client.delete("/delete-file", params={"key": "conversations/c1/assets/a.txt"})
        assets = os.listdir(os.path.join(tmp_path, "storage", "conversations", "c1", "assets"))
        assert sorted(assets) == ["b.txt", "b.txt.meta.json"]

    def test_not_found_lists_tried(self, client):
        r = client.delete("/delete-file", params={"key": "conversations/c1/assets/x y.txt"})
        assert r.status_code == 404
        body = r.json()
        assert body["error"] == "not found"
        assert body["tried"][:2] == [
            "conversations/c1/assets/x y.txt",
            "conversations/c1/assets/x%20y.txt",
        ]


def test_cors_headers(client):
    r = client.get("/list-conversations", headers={"Origin": "http://example.com"})
    assert r.headers["access-control-allow-origin"] == "*"


def test_catalog_document_is_json(client, tmp_path):
    client.put("/json", params={"key": "conversations/index.json"}, json=[])
    with open(os.path.join(tmp_path, "storage", "conversations", "index.json"), encoding="utf-8") as f:
        assert json.load(f) == []
