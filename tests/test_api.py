"""Tests for the HTTP API."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from taskmind.api.app import create_app
from taskmind.config import Settings
from taskmind.core.session import MindMapSession


@pytest.fixture
def client(settings: Settings, session: MindMapSession) -> TestClient:
    return TestClient(create_app(settings, session=session))


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_generate_and_read_tree(client: TestClient) -> None:
    assert client.get("/mindmap").json()["ok"] is False

    body = client.post("/mindmap", json={"topic": "Learn Guitar"}).json()

    assert body["ok"] is True
    assert body["tree"]["id"] == "Learn-Guitar"
    assert body["tree"]["subtopics"][0]["parentId"] == "Learn-Guitar"
    assert client.get("/mindmap").json()["version"] == body["version"]


def test_expand_select_and_roles(client: TestClient) -> None:
    client.post("/mindmap", json={"topic": "Learn Guitar"})

    body = client.post("/nodes/Learn-Guitar-Basics/roles").json()
    assert body == {
        "ok": False,
        "errorKind": "PreconditionError",
        "error": "role generation for 'Learn-Guitar-Basics' requires fetched task detail",
    }

    body = client.post("/nodes/Learn-Guitar-Basics/expand").json()
    assert body["ok"] is True
    assert body["outcome"]["addedIds"] == ["Learn-Guitar-Basics-Open-Chords"]

    body = client.post("/nodes/Learn-Guitar-Basics/select").json()
    assert body["node"]["taskDetail"] == "How to approach Basics."
    assert body["enrichment"]["detail"] == "fetched"

    body = client.post("/nodes/Learn-Guitar-Basics/roles").json()
    assert body["node"]["rrData"][0]["role"] == "Learner"


def test_missing_nodes_are_soft_errors(client: TestClient) -> None:
    client.post("/mindmap", json={"topic": "Learn Guitar"})

    resp = client.delete("/nodes/missing")
    assert resp.status_code == 200
    assert resp.json()["errorKind"] == "NotFoundError"

    body = client.post("/nodes/missing/expand").json()
    assert body["ok"] is False
    assert body["outcome"]["status"] == "not_found"


def test_edit_status_checklist_and_delete(client: TestClient) -> None:
    client.post("/mindmap", json={"topic": "Learn Guitar"})
    node = "Learn-Guitar-Music-Theory"

    body = client.patch(f"/nodes/{node}", json={"details": "Intervals and keys"}).json()
    assert body["node"]["details"] == "Intervals and keys"

    body = client.put(f"/nodes/{node}/status", json={"status": "in_progress"}).json()
    assert body["node"]["status"] == "in_progress"

    client.post(f"/nodes/{node}/select")
    body = client.post(f"/nodes/{node}/checklist", json={"item": "Can name intervals"}).json()
    assert body["node"]["evaluationChecklist"][-1] == "Can name intervals"
    body = client.delete(f"/nodes/{node}/checklist/0").json()
    assert len(body["node"]["evaluationChecklist"]) == 2

    body = client.delete(f"/nodes/{node}").json()
    assert body["removed"] == [node]


def test_export_and_import(client: TestClient) -> None:
    client.post("/mindmap", json={"topic": "Learn Guitar"})

    exported = client.get("/export/json").json()
    markdown = client.get("/export/markdown").text
    assert markdown.startswith("# Learn Guitar")

    client.delete("/nodes/Learn-Guitar-Basics")
    body = client.post("/import", json=exported).json()

    assert body["ok"] is True
    assert [c["name"] for c in body["tree"]["subtopics"]] == ["Basics", "Music Theory"]
    assert client.post("/import", json={"topic": "no root"}).json()["ok"] is False
