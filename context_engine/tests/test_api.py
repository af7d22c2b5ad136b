from __future__ import annotations

import json

import httpx
import pytest

from context_engine.app.dependencies import reset_dependency_cache
from context_engine.app.main import app

pytestmark = pytest.mark.anyio


@pytest.fixture
def projects_root(tmp_path, monkeypatch):
    monkeypatch.setenv("CONTEXT_PROJECTS_ROOT", str(tmp_path))
    monkeypatch.setenv("CONTEXT_USAGE_BACKEND", "json")
    project_dir = tmp_path / "shop"
    (project_dir / "context").mkdir(parents=True)
    (project_dir / "config.json").write_text(
        json.dumps({"name": "Online Shop", "description": "Sells things"}),
        encoding="utf-8",
    )
    (tmp_path / "empty").mkdir()
    reset_dependency_cache()
    yield tmp_path
    reset_dependency_cache()


def get_client() -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


async def test_health_endpoint() -> None:
    async with get_client() as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"]


async def test_select_unknown_project_returns_404(projects_root) -> None:
    async with get_client() as client:
        response = await client.post("/projects/missing/context/select", json={})
    assert response.status_code == 404


async def test_select_empty_project_returns_message(projects_root) -> None:
    async with get_client() as client:
        response = await client.post("/projects/empty/context/select", json={})
    assert response.status_code == 200
    payload = response.json()
    assert payload["selected_documents"] == []
    assert payload["formatted_context"] == ""
    assert payload["total_documents"] == 0
    assert payload["message"] == "No context documents found"


async def test_create_and_select_context(projects_root) -> None:
    async with get_client() as client:
        created = await client.post(
            "/projects/shop/context",
            json={
                "title": "Payment Gateway Design",
                "content": "Stripe checkout integration.",
                "tags": ["payment"],
                "category": "design",
            },
        )
        assert created.status_code == 200
        await client.post(
            "/projects/shop/context",
            json={"title": "Hiring Plan", "content": "Two engineers.", "category": "other"},
        )

        response = await client.post(
            "/projects/shop/context/select",
            json={"work_context": "payment gateway", "max_documents": 1, "max_tokens": 500},
        )
    assert response.status_code == 200
    payload = response.json()
    assert payload["total_documents"] == 2
    assert [doc["title"] for doc in payload["selected_documents"]] == ["Payment Gateway Design"]
    assert payload["selected_documents"][0]["score_breakdown"]["keyword_overlap"] > 0
    assert payload["formatted_context"].startswith("# Project: Online Shop\nSells things\n")
    assert "Stripe checkout integration." in payload["formatted_context"]
    assert payload["selection_criteria"]["max_documents"] == 1
    assert payload["usage_tracking"] == "recorded"
    usage = json.loads((projects_root / "shop" / "usage.json").read_text(encoding="utf-8"))
    assert usage["entries"][0]["document_ids"] == [created.json()["id"]]


async def test_select_with_zero_budget_selects_nothing(projects_root) -> None:
    async with get_client() as client:
        await client.post("/projects/shop/context", json={"title": "Notes", "content": "Hello"})
        response = await client.post(
            "/projects/shop/context/select", json={"max_tokens": 0}
        )
    assert response.status_code == 200
    payload = response.json()
    assert payload["selected_documents"] == []
    assert payload["usage_tracking"] == "skipped"
    assert payload["formatted_context"] == "# Project: Online Shop\nSells things\n"


async def test_list_get_and_delete_context(projects_root) -> None:
    async with get_client() as client:
        created = await client.post(
            "/projects/shop/context",
            json={"title": "API Reference", "content": "GET /orders", "category": "api"},
        )
        doc_id = created.json()["id"]
        await client.post("/projects/shop/context", json={"title": "Roadmap", "content": "Q3"})

        listed = await client.get("/projects/shop/context", params={"category": "api"})
        assert listed.status_code == 200
        assert [doc["id"] for doc in listed.json()["documents"]] == [doc_id]

        fetched = await client.get(f"/projects/shop/context/{doc_id}")
        assert fetched.status_code == 200
        assert fetched.json()["content"] == "GET /orders"

        deleted = await client.delete(f"/projects/shop/context/{doc_id}")
        assert deleted.status_code == 200
        assert deleted.json() == {"deleted": doc_id}

        missing = await client.get(f"/projects/shop/context/{doc_id}")
    assert missing.status_code == 404


async def test_api_key_required_when_configured(projects_root, monkeypatch) -> None:
    monkeypatch.setenv("CONTEXT_API_KEYS", "secret")
    async with get_client() as client:
        response = await client.get("/projects/shop/context")
        assert response.status_code == 401

        ok_response = await client.get(
            "/projects/shop/context", headers={"Authorization": "Bearer secret"}
        )
    assert ok_response.status_code == 200


async def test_reader_cannot_create_documents(projects_root, monkeypatch) -> None:
    monkeypatch.setenv("CONTEXT_API_KEY_MAP", json.dumps({"reader-key": {"role": "reader"}}))
    async with get_client() as client:
        response = await client.post(
            "/projects/shop/context",
            json={"title": "Secret", "content": "nope"},
            headers={"X-API-Key": "reader-key"},
        )
        select_response = await client.post(
            "/projects/shop/context/select",
            json={},
            headers={"X-API-Key": "reader-key"},
        )
    assert response.status_code == 403
    assert select_response.status_code == 200
