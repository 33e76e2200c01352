"""Tests for port models: RAG records and chat options."""

import pytest
from pydantic import ValidationError

from ragrelay.domain.errors import ModelMismatchError
from ragrelay.domain.ports.llm import ChatOptions
from ragrelay.domain.ports.rag import IndexEntry, RagIndex, RagSource


class TestRagSource:
    def test_from_path_detects_folder(self, tmp_path):
        source = RagSource.from_path(str(tmp_path))
        assert source.type == "folder"
        assert source.id
        assert source.added_at > 0

    def test_from_path_file(self, tmp_path):
        f = tmp_path / "a.md"
        f.write_text("x")
        assert RagSource.from_path(str(f)).type == "file"

    def test_empty_path_rejected(self):
        with pytest.raises(ValidationError):
            RagSource(path="", type="file")

    def test_frozen(self, tmp_path):
        source = RagSource.from_path(str(tmp_path))
        with pytest.raises(ValidationError):
            source.path = "/elsewhere"


class TestRagIndex:
    def test_empty_sentinel(self):
        index = RagIndex.empty()
        assert index.is_empty
        assert index.indexed_at is None
        assert index.embedding_model is None

    def test_accepts_camel_case(self):
        index = RagIndex.model_validate(
            {
                "entries": [
                    {"id": "/a:0", "sourcePath": "/a", "chunkIndex": 0, "content": "c", "embedding": [1, 2]}
                ],
                "indexedAt": 5,
                "embeddingModel": "m",
            }
        )
        assert index.entries[0].source_path == "/a"
        assert index.entries[0].embedding == (1.0, 2.0)

    def test_entry_id(self):
        assert IndexEntry.make_id("/docs/a.md", 3) == "/docs/a.md:3"


class TestChatOptions:
    def test_unset_options_are_omitted(self):
        assert ChatOptions().to_ollama_options() == {}
        assert ChatOptions().to_openai_fields() == {}

    def test_ollama_mapping(self):
        opts = ChatOptions(max_tokens=10, stop_sequences=["a"]).to_ollama_options()
        assert opts == {"num_predict": 10, "stop": ["a"]}

    def test_openai_mapping(self):
        fields = ChatOptions(temperature=0.0, top_p=1.0, seed=3).to_openai_fields()
        assert fields == {"temperature": 0.0, "top_p": 1.0, "seed": 3}

    def test_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            ChatOptions(temperature=3.0)


class TestModelMismatchError:
    def test_message_names_both_models(self):
        err = ModelMismatchError("other-model", "nomic-embed-text")
        assert str(err) == "Embedding model mismatch (index: nomic-embed-text, requested: other-model)."

    def test_no_model(self):
        assert str(ModelMismatchError(None, None)) == "No embedding model available."
