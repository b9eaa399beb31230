from datetime import timedelta

from pydantic import model_validator
from pydantic_settings import BaseSettings

from campus_rag.core.errors import ConfigurationError


class Settings(BaseSettings):
    APP_NAME: str = "campus-rag"
    ENV: str = "dev"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite+aiosqlite:///./campus_rag.db"

    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    SESSION_COOKIE_MAX_AGE: int = int(timedelta(days=30).total_seconds())

    EMBEDDING_MODEL: str = "BAAI/bge-small-en-v1.5"
    EMBEDDING_DIM: int = 384

    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "qwen2.5:7b-instruct"
    OLLAMA_TIMEOUT: float = 300.0
    LLM_TEMPERATURE: float = 0.0

    VECTOR_BACKEND: str = "pinecone"  # pinecone | local
    PINECONE_API_KEY: str = ""
    PINECONE_INDEX_NAME: str = "campus-rag"
    PINECONE_NAMESPACE: str = "esut-2025"
    PINECONE_CLOUD: str = "aws"
    PINECONE_REGION: str = "us-east-1"

    MAX_UPLOAD_MB: int = 10
    CHUNK_TOKENS: int = 1000
    CHUNK_OVERLAP: int = 150
    TOP_K: int = 5

    COMPRESS_INPUT_CHARS: int = 3000
    COMPRESS_FALLBACK_CHARS: int = 1000
    HISTORY_WINDOW: int = 5

    EMBED_CONCURRENCY: int = 4
    COMPRESS_CONCURRENCY: int = 5

    class Config:
        env_file = ".env"
        case_sensitive = True

    @model_validator(mode="after")
    def _check_chunking(self) -> "Settings":
        if self.CHUNK_TOKENS <= 0:
            raise ConfigurationError("CHUNK_TOKENS must be positive")
        if not 0 <= self.CHUNK_OVERLAP < self.CHUNK_TOKENS:
            raise ConfigurationError("CHUNK_OVERLAP must be >= 0 and < CHUNK_TOKENS")
        if self.VECTOR_BACKEND not in ("pinecone", "local"):
            raise ConfigurationError(f"unknown VECTOR_BACKEND {self.VECTOR_BACKEND!r}")
        return self


def get_settings() -> Settings:
    return Settings()
