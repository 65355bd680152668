import os
from pydantic import BaseModel
from functools import lru_cache
from dotenv import load_dotenv
load_dotenv()

class Settings(BaseModel):
    APP_NAME: str = os.getenv("APP_NAME", "AI CV & Project Evaluator")
    ENV: str = os.getenv("ENV", "development")
    STORAGE_DIR: str = os.getenv("STORAGE_DIR", "storage")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    PIPELINE_DEBUG_LOG: str | None = os.getenv("PIPELINE_DEBUG_LOG") or None
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///app.sqlite3")

    QDRANT_URL: str = os.getenv("QDRANT_URL", "http://localhost:6333")
    QDRANT_API_KEY: str | None = os.getenv("QDRANT_API_KEY") or None
    RAG_COLLECTION: str = os.getenv("RAG_COLLECTION", "system_docs")
    RAG_TOP_K: int = int(os.getenv("RAG_TOP_K", "5"))
    RAG_QUERY_MAX_CHARS: int = int(os.getenv("RAG_QUERY_MAX_CHARS", "2000"))
    RAG_MAX_ATTEMPTS: int = int(os.getenv("RAG_MAX_ATTEMPTS", "3"))

    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY") or None
    OPENAI_API_BASE: str = os.getenv("OPENAI_API_BASE", "https://api.openai.com/v1")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_EMBEDDING_MODEL: str = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
    OPENROUTER_API_KEY: str | None = os.getenv("OPENROUTER_API_KEY") or None
    OPENROUTER_MODEL: str = os.getenv("OPENROUTER_MODEL", "openai/gpt-4o-mini")
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "20"))
    LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "800"))
    LLM_MAX_ATTEMPTS: int = int(os.getenv("LLM_MAX_ATTEMPTS", "3"))
    LLM_BACKOFF_BASE_SECONDS: float = float(os.getenv("LLM_BACKOFF_BASE_SECONDS", "0.5"))
    LLM_BACKOFF_CAP_SECONDS: float = float(os.getenv("LLM_BACKOFF_CAP_SECONDS", "16"))

    QUEUE_NAME: str = os.getenv("QUEUE_NAME", "evaluation")
    QUEUE_LEASE_SECONDS: float = float(os.getenv("QUEUE_LEASE_SECONDS", "300"))
    QUEUE_STALL_INTERVAL_SECONDS: float = float(os.getenv("QUEUE_STALL_INTERVAL_SECONDS", "30"))
    QUEUE_MAX_STALLED_COUNT: int = int(os.getenv("QUEUE_MAX_STALLED_COUNT", "3"))
    WORKER_CONCURRENCY: int = int(os.getenv("WORKER_CONCURRENCY", "1"))
    WORKER_POLL_INTERVAL_SECONDS: float = float(os.getenv("WORKER_POLL_INTERVAL_SECONDS", "1.0"))

@lru_cache
def get_settings() -> Settings:
    return Settings()

settings = get_settings()