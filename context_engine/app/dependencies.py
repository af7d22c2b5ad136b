from __future__ import annotations

import logging
from functools import lru_cache

from context_engine.app.settings import settings
from context_engine.selection.engine import ContextSelectionEngine
from context_engine.selection.scoring import RelevanceScorer
from context_engine.storage.documents import ProjectDocumentStore
from context_engine.storage.usage import JsonUsageLog, SqlUsageStore, UsageSink

logger = logging.getLogger(__name__)


@lru_cache
def get_document_store() -> ProjectDocumentStore:
    return ProjectDocumentStore(settings.projects_root)


@lru_cache
def get_engine() -> ContextSelectionEngine:
    scorer = RelevanceScorer(
        content_scan_chars=settings.content_scan_chars,
        recency_half_life_days=settings.recency_half_life_days,
        self_penalty=settings.self_penalty,
    )
    return ContextSelectionEngine(scorer=scorer, usage_sink=build_usage_sink())


def reset_dependency_cache() -> None:
    get_document_store.cache_clear()
    get_engine.cache_clear()


def build_usage_sink() -> UsageSink | None:
    backend = settings.usage_backend
    if backend in {"", "none", "off"}:
        return None
    if backend == "json":
        return JsonUsageLog(get_document_store().project_dir)
    if backend == "sql":
        if not settings.usage_db_uri:
            logger.warning("usage_db_uri_missing")
            return None
        return SqlUsageStore(settings.usage_db_uri)
    raise ValueError(f"Unsupported usage backend: {backend}")
