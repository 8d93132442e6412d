from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple


PROVIDER_CONFIG: Dict[str, Dict[str, str]] = {
    "gemini": {
        "api_key_env": "GEMINI_API_KEY",
        "default_model": "gemini-2.5-pro",
        "default_base_url": "https://generativelanguage.googleapis.com/v1beta/openai/",
    },
    "openai": {
        "api_key_env": "OPENAI_API_KEY",
        "default_model": "gpt-4o",
        "default_base_url": "https://api.openai.com/v1",
    },
}

DEFAULT_DATABASE_URL = "sqlite:///nexus.db"
DEFAULT_MAX_BODY_BYTES = 50 * 1024 * 1024


def _split_csv(raw: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class ModelSettings:
    provider: str
    model: str
    base_url: str
    api_key_env: str
    api_key: Optional[str] = field(default=None, repr=False)
    temperature: float = 0.1


@dataclass(frozen=True)
class Settings:
    model: ModelSettings
    session_store_impl: str = "sql"
    database_url: str = DEFAULT_DATABASE_URL
    mongo_url: str = "mongodb://localhost:27017"
    mongo_db: str = "nexus"
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    cors_origins: Tuple[str, ...] = ("http://localhost:3000", "http://127.0.0.1:3000")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Read settings from the environment (or a supplied mapping).

        Credentials are read but never required here; absence surfaces only
        when generation is attempted.
        """
        env = env if env is not None else os.environ
        provider = (env.get("NEXUS_MODEL_PROVIDER") or "gemini").strip().lower()
        if provider not in PROVIDER_CONFIG:
            provider = "gemini"
        cfg = PROVIDER_CONFIG[provider]
        model = ModelSettings(
            provider=provider,
            model=env.get("NEXUS_MODEL") or cfg["default_model"],
            base_url=env.get("NEXUS_MODEL_BASE_URL") or cfg["default_base_url"],
            api_key_env=cfg["api_key_env"],
            api_key=(env.get(cfg["api_key_env"]) or "").strip() or None,
            temperature=float(env.get("NEXUS_MODEL_TEMPERATURE") or 0.1),
        )
        origins: List[str] = list(_split_csv(env.get("NEXUS_CORS_ORIGINS") or ""))
        kwargs = {}
        if origins:
            kwargs["cors_origins"] = tuple(origins)
        return cls(
            model=model,
            session_store_impl=(env.get("NEXUS_SESSION_STORE_IMPL") or "sql").strip().lower(),
            database_url=env.get("NEXUS_DATABASE_URL") or DEFAULT_DATABASE_URL,
            mongo_url=env.get("MONGO_URL") or "mongodb://localhost:27017",
            mongo_db=env.get("MONGO_DB") or "nexus",
            max_body_bytes=int(env.get("NEXUS_MAX_BODY_BYTES") or DEFAULT_MAX_BODY_BYTES),
            **kwargs,
        )
