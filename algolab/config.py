"""
Application Settings — All via environment variables with sensible defaults.
"""
import os
from typing import Optional


class Settings:
    # ── Server ──
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8001"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # ── Database ──
    # Default: SQLite (zero config). Production: set DATABASE_URL env var.
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./algolab.db")

    # ── CORS ──
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:8000,http://localhost:3000,*")

    # ── Execution pipeline ──
    SAMPLE_PAGE_SIZE: int = int(os.getenv("SAMPLE_PAGE_SIZE", "100"))
    RESULT_BATCH_SIZE: int = int(os.getenv("RESULT_BATCH_SIZE", "100"))

    # ── Run queue worker (off by default; sessions can be computed on demand) ──
    RUN_QUEUE_WORKER: bool = os.getenv("RUN_QUEUE_WORKER", "false").lower() == "true"
    RUN_QUEUE_POLL_SECONDS: float = float(os.getenv("RUN_QUEUE_POLL_SECONDS", "5"))

    # ── Estimation applied when a run does not ask for one ──
    DEFAULT_ESTIMATE_ALIAS: str = os.getenv("DEFAULT_ESTIMATE_ALIAS", "DEFAULT")
    DEFAULT_ESTIMATE_CONFIG: Optional[str] = os.getenv("DEFAULT_ESTIMATE_CONFIG", "{}")


settings = Settings()
