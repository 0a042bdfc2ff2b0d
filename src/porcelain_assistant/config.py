"""Environment-driven settings for the catalog assistant."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from porcelain_assistant.errors import ConfigurationError


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except Exception:
        return default
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except Exception:
        return default
    return value if value >= 0 else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class CohereConfig:
    api_key: str
    base_url: str
    chat_model: str
    embed_model: str
    vision_model: str
    timeout_seconds: float
    max_retries: int

    @classmethod
    def from_env(cls) -> "CohereConfig":
        return cls(
            api_key=os.getenv("COHERE_API_KEY", "").strip(),
            base_url=_env_str("COHERE_API_BASE_URL", "https://api.cohere.com/v2"),
            chat_model=_env_str("PA_CHAT_MODEL", "command-r-08-2024"),
            embed_model=_env_str("PA_EMBED_MODEL", "embed-v4.0"),
            vision_model=_env_str("PA_VISION_MODEL", "command-a-vision-07-2025"),
            timeout_seconds=_env_float("PA_COHERE_TIMEOUT_SECONDS", 20.0),
            max_retries=_env_int("PA_COHERE_MAX_RETRIES", 1),
        )

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError("COHERE_API_KEY is not set.")
        return self.api_key


@dataclass(frozen=True)
class AssistantSettings:
    data_dir: Path
    db_path: Path | None
    top_k: int = 5
    product_limit: int = 5
    default_product_term: str = "plate"
    cache_ttl_seconds: float = 3600.0
    cache_max_size: int = 100
    request_timeout_seconds: float = 30.0
    temperature: float = 0.3
    max_tokens: int = 1000
    worker_threads: int = 4
    auto_seed: bool = True
    site_base_url: str = "https://www.rakporcelain.com"
    vocabulary_path: Path | None = None

    def __post_init__(self) -> None:
        if self.top_k < 1:
            raise ConfigurationError("PA_TOP_K must be at least 1.")
        if self.product_limit < 1:
            raise ConfigurationError("PA_PRODUCT_LIMIT must be at least 1.")
        if self.cache_max_size < 1:
            raise ConfigurationError("PA_CACHE_MAX_SIZE must be at least 1.")
        if self.worker_threads < 1:
            raise ConfigurationError("PA_WORKER_THREADS must be at least 1.")

    @classmethod
    def from_env(cls, root_dir: Path | None = None) -> "AssistantSettings":
        root = root_dir or Path(__file__).resolve().parents[2]
        data_dir = Path(_env_str("PA_DATA_DIR", str(root / "data")))

        raw_db_path = os.getenv("PA_DB_PATH")
        if raw_db_path is None:
            db_path: Path | None = data_dir / "catalog.db"
        elif raw_db_path.strip():
            db_path = Path(raw_db_path.strip())
        else:
            db_path = None

        raw_vocabulary = os.getenv("PA_VOCABULARY_PATH", "").strip()

        return cls(
            data_dir=data_dir,
            db_path=db_path,
            top_k=_env_int("PA_TOP_K", 5),
            product_limit=_env_int("PA_PRODUCT_LIMIT", 5),
            default_product_term=_env_str("PA_DEFAULT_PRODUCT_TERM", "plate"),
            cache_ttl_seconds=_env_float("PA_CACHE_TTL_SECONDS", 3600.0),
            cache_max_size=_env_int("PA_CACHE_MAX_SIZE", 100),
            request_timeout_seconds=_env_float("PA_REQUEST_TIMEOUT_SECONDS", 30.0),
            temperature=_env_float("PA_TEMPERATURE", 0.3),
            max_tokens=_env_int("PA_MAX_TOKENS", 1000),
            worker_threads=_env_int("PA_WORKER_THREADS", 4),
            auto_seed=_env_bool("PA_AUTO_SEED", True),
            site_base_url=_env_str("PA_SITE_BASE_URL", "https://www.rakporcelain.com").rstrip("/"),
            vocabulary_path=Path(raw_vocabulary) if raw_vocabulary else None,
        )
