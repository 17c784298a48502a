"""Application configuration via environment variables."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Semantic triage engine settings."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./semantic_triage.db"

    # Embeddings
    # hashing needs no model download and is the offline default; set
    # sentence-transformers (all-MiniLM-L6-v2) or ollama for real semantic matches
    embedding_provider: str = "hashing"  # hashing, ollama, sentence-transformers
    embedding_model: str = "all-MiniLM-L6-v2"
    embedding_dimension: Optional[int] = None  # None: look the model up in the registry
    hashing_dimension: int = 384

    # Ollama
    ollama_url: str = "http://localhost:11434"
    ollama_timeout: float = 60.0

    # Search
    default_top_k: int = 5
    text_max_length: int = 400

    # Logging
    log_level: str = "INFO"

    @property
    def database_label(self) -> str:
        """Database URL without credentials, safe to log."""
        return self.database_url.split("@")[-1]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
