"""ragrelay - local RAG index/query engine and streaming chat relay."""

__version__ = "0.1.0"
