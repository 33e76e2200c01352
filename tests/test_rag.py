"""RAG API integration tests (fake embeddings, index under tmp_path)."""

from pathlib import Path

import pytest


@pytest.fixture
def docs(tmp_path: Path) -> Path:
    root = tmp_path / "docs"
    (root / "node_modules").mkdir(parents=True)
    (root / "node_modules" / "dep.js").write_text("ignored")
    (root / "setup.md").write_text("Install with pip and run the server on port 8000.")
    (root / "recipes.txt").write_text("Bake the bread for forty minutes.")
    return root


async def _build(client, app_container, docs: Path, model: str = "nomic-embed-text"):
    resp = await client.post(
        "/rag/index",
        json={"sources": [{"path": str(docs), "type": "folder"}], "embedding_model": model},
    )
    assert resp.status_code == 202
    assert resp.json()["state"] == "running"
    return await app_container.rag_use_case.wait_for_build()


@pytest.mark.asyncio
async def test_empty_index_info_and_query(client):
    info = (await client.get("/rag/info")).json()
    assert info == {"count": 0, "indexed_at": None, "embedding_model": None}

    resp = await client.post("/rag/query", json={"query": "anything"})
    assert resp.status_code == 200
    assert resp.json() == {"results": []}


@pytest.mark.asyncio
async def test_build_then_query(client, app_container, docs):
    status = await _build(client, app_container, docs)
    assert status.state == "succeeded"

    resp = await client.get("/rag/index/status")
    assert resp.json()["state"] == "succeeded"
    assert resp.json()["report"]["count"] == 2

    info = (await client.get("/rag/info")).json()
    assert info["count"] == 2
    assert info["embedding_model"] == "nomic-embed-text"
    assert info["indexed_at"] > 0

    resp = await client.post("/rag/query", json={"query": "which port does the server run on", "top_k": 1})
    assert resp.status_code == 200
    results = resp.json()["results"]
    assert len(results) == 1
    assert results[0]["source_path"].endswith("setup.md")
    assert -1.0 <= results[0]["score"] <= 1.0


@pytest.mark.asyncio
async def test_query_model_mismatch_is_409(client, app_container, docs):
    await _build(client, app_container, docs)

    resp = await client.post("/rag/query", json={"query": "port", "embedding_model": "other-model"})

    assert resp.status_code == 409
    assert "other-model" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_query_embedding_failure_is_502(client, app_container, docs, fake_embeddings):
    await _build(client, app_container, docs)
    fake_embeddings.fail_after = len(fake_embeddings.calls)

    resp = await client.post("/rag/query", json={"query": "port"})

    assert resp.status_code == 502


@pytest.mark.asyncio
async def test_failed_build_reported(client, app_container, docs, fake_embeddings):
    fake_embeddings.fail_after = 0

    status = await _build(client, app_container, docs)

    assert status.state == "failed"
    assert (await client.get("/rag/index/status")).json()["error"]
    assert (await client.get("/rag/info")).json()["count"] == 0


@pytest.mark.asyncio
async def test_clear(client, app_container, docs):
    await _build(client, app_container, docs)

    resp = await client.post("/rag/clear")

    assert resp.status_code == 200
    assert resp.json()["count"] == 0
    assert (await client.get("/rag/info")).json()["count"] == 0


@pytest.mark.asyncio
async def test_cancel_without_build(client):
    resp = await client.post("/rag/index/cancel")
    assert resp.json() == {"cancelled": False}


@pytest.mark.asyncio
async def test_index_validation(client):
    resp = await client.post("/rag/index", json={"sources": [], "embedding_model": "m"})
    assert resp.status_code == 422

    resp = await client.post(
        "/rag/index",
        json={"sources": [{"path": "/tmp", "type": "folder"}], "embedding_model": ""},
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_query_validation(client):
    resp = await client.post("/rag/query", json={"query": ""})
    assert resp.status_code == 422
