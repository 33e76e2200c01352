"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from ragrelay.api.container import Container, reset_container, set_container
from ragrelay.domain.errors import EmbeddingError
from ragrelay.domain.ports.config import AppConfig, RAGConfig
from ragrelay.infrastructure.rag.index_store import JsonIndexStore


def letter_vector(text: str) -> list[float]:
    """26-dim a..z letter counts. Texts without letters map to the zero vector."""
    vec = [0.0] * 26
    for ch in text.lower():
        if "a" <= ch <= "z":
            vec[ord(ch) - ord("a")] += 1.0
    return vec


class FakeEmbeddings:
    """Deterministic embeddings; records calls; can fail after N calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.vectors: dict[str, list[float]] = {}
        self.fail_after: int | None = None

    async def embed(self, model: str, text: str) -> list[float]:
        self.calls.append((model, text))
        if self.fail_after is not None and len(self.calls) > self.fail_after:
            raise EmbeddingError("Ollama embeddings error (500): model crashed", status_code=500)
        if text in self.vectors:
            return list(self.vectors[text])
        return letter_vector(text)


@pytest.fixture
def fake_embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture
def store(tmp_path: Path) -> JsonIndexStore:
    return JsonIndexStore(tmp_path / "rag_index.json")


@pytest.fixture
def app_container(tmp_path: Path, fake_embeddings: FakeEmbeddings):
    """Global container backed by tmp_path and fake embeddings."""
    config = AppConfig(rag=RAGConfig(index_path=str(tmp_path / "rag_index.json")))
    container = Container(config=config)
    container.embeddings = fake_embeddings
    set_container(container)
    yield container
    reset_container()


@pytest.fixture
async def client(app_container: Container, monkeypatch):
    """HTTP client bound to the FastAPI app (no network), rate limits off."""
    import sse_starlette.sse as sse

    from ragrelay.api.dependencies import limiter
    from ragrelay.main import app

    monkeypatch.setattr(limiter, "enabled", False)
    # The shutdown event is created per loop; each test runs on a fresh loop
    if hasattr(sse, "AppStatus"):
        monkeypatch.setattr(sse.AppStatus, "should_exit_event", None, raising=False)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        timeout=5.0,
    ) as c:
        yield c
