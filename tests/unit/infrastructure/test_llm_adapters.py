"""Tests for LLM adapters (Ollama, OpenAI-compatible)."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ragrelay.domain.entities.stream_events import StreamEventType
from ragrelay.domain.ports.config import OllamaConfig
from ragrelay.domain.ports.llm import ApiProviderConfig, ChatOptions, LLMMessage
from ragrelay.infrastructure.llm.ollama import OllamaAdapter
from ragrelay.infrastructure.llm.openai_compatible import (
    OpenAICompatibleAdapter,
    models_url_for,
)


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


def _recording_transport(response_factory):
    """MockTransport that records each request and its decoded JSON body."""
    seen: list[tuple[httpx.Request, dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        seen.append((request, body))
        return response_factory(request)

    return httpx.MockTransport(handler), seen


async def _collect(stream):
    return [(e.kind, e.data) async for e in stream]


class TestOllamaAdapter:
    """Tests for OllamaAdapter."""

    @pytest.fixture
    def config(self):
        return OllamaConfig(host="http://localhost:11434", timeout=30)

    @pytest.mark.asyncio
    async def test_stream_chat_relays_ndjson(self, config):
        """Deltas split across reads arrive intact, then one end."""
        transport, seen = _recording_transport(
            lambda _: httpx.Response(
                200,
                content=_chunks(
                    b'{"message":{"role":"assistant","content":"Hel',
                    b'lo"},"done":false}\n{"message":{"content":" there"},"done":false}\n',
                    b'{"message":{"content":""},"done":true}\n',
                ),
            )
        )
        adapter = OllamaAdapter(config, transport=transport)

        events = await _collect(
            adapter.stream_chat([LLMMessage(role="user", content="Hi")], "llama3")
        )

        assert events == [
            (StreamEventType.DELTA, "Hello"),
            (StreamEventType.DELTA, " there"),
            (StreamEventType.END, ""),
        ]
        request, body = seen[0]
        assert str(request.url) == "http://localhost:11434/api/chat"
        assert body["model"] == "llama3"
        assert body["stream"] is True
        assert body["messages"] == [{"role": "user", "content": "Hi"}]
        assert "options" not in body
        await adapter.close()

    @pytest.mark.asyncio
    async def test_options_mapped(self, config):
        transport, seen = _recording_transport(lambda _: httpx.Response(200, content=b""))
        adapter = OllamaAdapter(config, transport=transport)
        options = ChatOptions(temperature=0.2, max_tokens=64, top_p=0.9, seed=7, stop_sequences=["###"])

        await _collect(adapter.stream_chat([LLMMessage(role="user", content="x")], "llama3", options))

        assert seen[0][1]["options"] == {
            "temperature": 0.2,
            "num_predict": 64,
            "top_p": 0.9,
            "seed": 7,
            "stop": ["###"],
        }

    @pytest.mark.asyncio
    async def test_images_passed_through(self, config):
        transport, seen = _recording_transport(lambda _: httpx.Response(200, content=b""))
        adapter = OllamaAdapter(config, transport=transport)
        message = LLMMessage(role="user", content="what is this?", images=["aGVsbG8="])

        await _collect(adapter.stream_chat([message], "llava"))

        assert seen[0][1]["messages"][0]["images"] == ["aGVsbG8="]

    @pytest.mark.asyncio
    async def test_non_2xx_single_error(self, config):
        transport, _ = _recording_transport(
            lambda _: httpx.Response(404, content=b'{"error":"model \\"nope\\" not found"}')
        )
        adapter = OllamaAdapter(config, transport=transport)

        events = await _collect(adapter.stream_chat([LLMMessage(role="user", content="x")], "nope"))

        assert len(events) == 1
        kind, data = events[0]
        assert kind is StreamEventType.ERROR
        assert data.startswith("Ollama API error (404)")

    @pytest.mark.asyncio
    async def test_unreachable_single_error(self, config):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        adapter = OllamaAdapter(config, transport=httpx.MockTransport(refuse))

        events = await _collect(adapter.stream_chat([LLMMessage(role="user", content="x")], "llama3"))

        assert len(events) == 1
        assert events[0][0] is StreamEventType.ERROR
        assert "unreachable" in events[0][1]

    @pytest.mark.asyncio
    async def test_missing_model(self, config):
        adapter = OllamaAdapter(config)
        events = await _collect(adapter.stream_chat([LLMMessage(role="user", content="x")], ""))
        assert events == [(StreamEventType.ERROR, "Missing Ollama model.")]

    @pytest.mark.asyncio
    async def test_is_available(self, config):
        transport = httpx.MockTransport(lambda _: httpx.Response(200, json={"models": []}))
        assert await OllamaAdapter(config, transport=transport).is_available() is True

    @pytest.mark.asyncio
    async def test_is_available_false_on_error(self, config):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        assert await OllamaAdapter(config, transport=httpx.MockTransport(refuse)).is_available() is False

    @pytest.mark.asyncio
    async def test_list_models(self, config):
        adapter = OllamaAdapter(config)
        adapter._ollama.list = AsyncMock(
            return_value=MagicMock(models=[MagicMock(model="llama3:8b"), MagicMock(model="nomic-embed-text")])
        )
        assert await adapter.list_models() == ["llama3:8b", "nomic-embed-text"]

    @pytest.mark.asyncio
    async def test_list_models_unreachable(self, config):
        adapter = OllamaAdapter(config)
        adapter._ollama.list = AsyncMock(side_effect=httpx.ConnectError("refused"))
        assert await adapter.list_models() == []


class TestOpenAICompatibleAdapter:
    """Tests for OpenAICompatibleAdapter."""

    @pytest.fixture
    def provider(self):
        return ApiProviderConfig(
            base_url="https://api.example.test/v1/chat/completions",
            api_key="sk-test",
            model="gpt-test",
        )

    @pytest.mark.asyncio
    async def test_stream_chat_relays_sse(self, provider):
        transport, seen = _recording_transport(
            lambda _: httpx.Response(
                200,
                content=_chunks(
                    b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n',
                    b'data: {"choices":[{"delta":{"content":"Yo"}}]}\n',
                    b"\ndata: [DONE]\n\n",
                ),
            )
        )
        adapter = OpenAICompatibleAdapter(provider, transport=transport)

        events = await _collect(adapter.stream_chat([LLMMessage(role="user", content="Hi")]))

        assert events == [(StreamEventType.DELTA, "Yo"), (StreamEventType.END, "")]
        request, body = seen[0]
        assert str(request.url) == provider.base_url
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert body["model"] == "gpt-test"
        assert body["stream"] is True

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self):
        provider = ApiProviderConfig(base_url="http://localhost:1234/v1/chat/completions", model="local")
        transport, seen = _recording_transport(lambda _: httpx.Response(200, content=b"data: [DONE]\n"))

        await _collect(OpenAICompatibleAdapter(provider, transport=transport).stream_chat([]))

        assert "Authorization" not in seen[0][0].headers

    @pytest.mark.asyncio
    async def test_options_mapped_to_top_level(self, provider):
        transport, seen = _recording_transport(lambda _: httpx.Response(200, content=b"data: [DONE]\n"))
        adapter = OpenAICompatibleAdapter(provider, transport=transport)
        options = ChatOptions(temperature=0.5, max_tokens=100, stop_sequences=["END"])

        await _collect(adapter.stream_chat([LLMMessage(role="user", content="x")], None, options))

        body = seen[0][1]
        assert body["temperature"] == 0.5
        assert body["max_tokens"] == 100
        assert body["stop"] == ["END"]
        assert "top_p" not in body
        assert "options" not in body

    @pytest.mark.asyncio
    async def test_images_become_content_parts(self, provider):
        transport, seen = _recording_transport(lambda _: httpx.Response(200, content=b"data: [DONE]\n"))
        adapter = OpenAICompatibleAdapter(provider, transport=transport)
        message = LLMMessage(role="user", content="describe", images=["aGVsbG8=", "data:image/jpeg;base64,AAAA"])

        await _collect(adapter.stream_chat([message]))

        content = seen[0][1]["messages"][0]["content"]
        assert content[0] == {"type": "text", "text": "describe"}
        assert content[1]["image_url"]["url"] == "data:image/png;base64,aGVsbG8="
        assert content[2]["image_url"]["url"] == "data:image/jpeg;base64,AAAA"

    @pytest.mark.asyncio
    async def test_non_2xx_single_error(self, provider):
        transport, _ = _recording_transport(lambda _: httpx.Response(401, content=b"invalid api key"))
        adapter = OpenAICompatibleAdapter(provider, transport=transport)

        events = await _collect(adapter.stream_chat([LLMMessage(role="user", content="x")]))

        assert events == [(StreamEventType.ERROR, "API error (401): invalid api key")]

    @pytest.mark.asyncio
    async def test_in_band_error(self, provider):
        transport, _ = _recording_transport(
            lambda _: httpx.Response(200, content=b'data: {"error":{"message":"overloaded"}}\n')
        )
        adapter = OpenAICompatibleAdapter(provider, transport=transport)

        events = await _collect(adapter.stream_chat([LLMMessage(role="user", content="x")]))

        assert events == [(StreamEventType.ERROR, "overloaded")]

    @pytest.mark.asyncio
    async def test_list_models(self, provider):
        transport, seen = _recording_transport(
            lambda _: httpx.Response(200, json={"data": [{"id": "gpt-a"}, {"id": "gpt-b"}, {"object": "x"}]})
        )
        models = await OpenAICompatibleAdapter(provider, transport=transport).list_models()
        assert models == ["gpt-a", "gpt-b"]
        assert str(seen[0][0].url) == "https://api.example.test/v1/models"

    @pytest.mark.asyncio
    async def test_list_models_failure_returns_empty(self, provider):
        transport = httpx.MockTransport(lambda _: httpx.Response(500, text="down"))
        assert await OpenAICompatibleAdapter(provider, transport=transport).list_models() == []


class TestModelsUrl:
    @pytest.mark.parametrize(
        ("base", "expected"),
        [
            ("https://api.groq.com/openai/v1/chat/completions", "https://api.groq.com/openai/v1/models"),
            ("http://localhost:1234/v1", "http://localhost:1234/v1/models"),
            ("http://localhost:1234/v1/", "http://localhost:1234/v1/models"),
        ],
    )
    def test_models_url_for(self, base, expected):
        assert models_url_for(base) == expected
