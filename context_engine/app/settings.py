from __future__ import annotations

import json
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _parse_weights(raw: str) -> dict[str, float]:
    """Parse `key=value,key=value` pairs into a float mapping."""
    mapping: dict[str, float] = {}
    for part in raw.split(","):
        part = part.strip()
        if not part or "=" not in part:
            continue
        key, value = part.split("=", 1)
        key = key.strip().lower()
        value = value.strip()
        if not key or not value:
            continue
        try:
            mapping[key] = float(value)
        except ValueError:
            continue
    return mapping


@dataclass(frozen=True)
class Settings:
    projects_root_raw: str = os.getenv("CONTEXT_PROJECTS_ROOT", ".ai-project/projects")
    max_tokens: int = int(os.getenv("CONTEXT_MAX_TOKENS", "8000"))
    max_documents: int = int(os.getenv("CONTEXT_MAX_DOCUMENTS", "5"))
    recency_half_life_days: float = float(os.getenv("CONTEXT_RECENCY_HALF_LIFE_DAYS", "7"))
    recency_weight: float = float(os.getenv("CONTEXT_RECENCY_WEIGHT", "0.2"))
    content_scan_chars: int = int(os.getenv("CONTEXT_CONTENT_SCAN_CHARS", "2000"))
    self_penalty: float = float(os.getenv("CONTEXT_SELF_PENALTY", "0.25"))
    category_weights_raw: str = os.getenv("CONTEXT_CATEGORY_WEIGHTS", "")
    usage_backend_raw: str = os.getenv("CONTEXT_USAGE_BACKEND", "json")
    usage_db_uri_raw: str | None = os.getenv("CONTEXT_USAGE_DB_URI")
    metrics_enabled: bool = os.getenv("CONTEXT_METRICS_ENABLED", "true").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("CONTEXT_LOG_LEVEL", "INFO")
    api_keys_raw: str = os.getenv("CONTEXT_API_KEYS", "")
    api_key_map_raw: str = os.getenv("CONTEXT_API_KEY_MAP", "")

    @property
    def projects_root(self) -> str:
        return os.getenv("CONTEXT_PROJECTS_ROOT", self.projects_root_raw)

    @property
    def usage_backend(self) -> str:
        return os.getenv("CONTEXT_USAGE_BACKEND", self.usage_backend_raw).strip().lower()

    @property
    def usage_db_uri(self) -> str:
        return os.getenv("CONTEXT_USAGE_DB_URI", self.usage_db_uri_raw or "")

    @property
    def allow_anonymous(self) -> bool:
        return os.getenv("CONTEXT_ALLOW_ANONYMOUS", "false").lower() in {"1", "true", "yes"}

    @property
    def category_weights(self) -> dict[str, float]:
        raw = os.getenv("CONTEXT_CATEGORY_WEIGHTS", self.category_weights_raw).strip()
        if not raw:
            return {}
        return _parse_weights(raw)

    @property
    def api_keys(self) -> set[str]:
        raw = os.getenv("CONTEXT_API_KEYS", self.api_keys_raw)
        return {value.strip() for value in raw.split(",") if value.strip()}

    @property
    def api_key_map(self) -> dict[str, str]:
        """Map of API key to role, parsed from JSON."""
        raw = os.getenv("CONTEXT_API_KEY_MAP", self.api_key_map_raw).strip()
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return {}
        if not isinstance(data, dict):
            return {}
        result: dict[str, str] = {}
        for key, value in data.items():
            if not isinstance(key, str):
                continue
            if isinstance(value, str):
                result[key] = value
            elif isinstance(value, dict) and isinstance(value.get("role"), str):
                result[key] = value["role"]
        return result


settings = Settings()
