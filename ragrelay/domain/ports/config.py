"""Config Port - application configuration models."""

from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, model_validator


class OllamaConfig(BaseModel):
    """Local inference server (Ollama) connection."""

    host: str = "http://localhost:11434"
    timeout: int = 120


class EmbeddingsConfig(BaseModel):
    """Embeddings for RAG."""

    model: str = "nomic-embed-text"


class RAGConfig(BaseModel):
    """RAG index settings."""

    index_path: str = "output/rag_index.json"
    chunk_size: int = Field(1000, gt=0)
    chunk_overlap: int = Field(200, ge=0)
    max_chunks: int = Field(500, gt=0)  # Global across one build, not per file
    max_file_bytes: int = Field(2 * 1024 * 1024, gt=0)
    top_k: int = Field(5, ge=1, le=20)

    @model_validator(mode="after")
    def _overlap_below_size(self) -> "RAGConfig":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be less than chunk_size")
        return self


class StreamConfig(BaseModel):
    """Chat stream relay settings."""

    # A partial line longer than this is treated as an unrecoverable framing error.
    max_line_bytes: int = Field(1024 * 1024, gt=0)


class SecurityConfig(BaseModel):
    """Security settings."""

    rate_limit_requests_per_minute: int = 100
    cors_origins: list[str] = ["http://localhost:5173"]


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000


class AppConfig(BaseModel):
    """Full application configuration."""

    model_config = ConfigDict(extra="ignore")

    server: ServerConfig = ServerConfig()
    ollama: OllamaConfig = OllamaConfig()
    embeddings: EmbeddingsConfig = EmbeddingsConfig()
    rag: RAGConfig = RAGConfig()
    stream: StreamConfig = StreamConfig()
    security: SecurityConfig = SecurityConfig()
    log_level: str = "INFO"
    # Log file: path relative to cwd or absolute. Empty = only stdout.
    log_file: str = ""
    log_rotation_max_mb: int = 5
    log_rotation_backups: int = 3


class ConfigPort(Protocol):
    """Interface for configuration providers."""

    def get_config(self) -> AppConfig:
        """Get the full application configuration."""
        ...
