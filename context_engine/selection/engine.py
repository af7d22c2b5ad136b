from __future__ import annotations

"""Context selection engine: score, budget, format and track usage."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from context_engine.selection.formatter import format_context_for_ai
from context_engine.selection.scoring import RelevanceScorer
from context_engine.selection.selector import select_within_budget
from context_engine.selection.types import (
    ContextDocument,
    ProjectInfo,
    ScoredDocument,
    SelectionOptions,
)
from context_engine.storage.usage import TrackingStatus, UsageSink

logger = logging.getLogger(__name__)


@dataclass
class ContextSelectionEngine:
    scorer: RelevanceScorer = field(default_factory=RelevanceScorer)
    usage_sink: UsageSink | None = None

    def score_documents(
        self, documents: list[ContextDocument], options: SelectionOptions
    ) -> list[ScoredDocument]:
        return self.scorer.score_pool(list(documents), options)

    def select_relevant_context(
        self, documents: list[ContextDocument], options: SelectionOptions | None = None
    ) -> list[ScoredDocument]:
        """Select the most relevant documents within the options' budget."""
        opts = options or SelectionOptions()
        if not documents:
            return []
        scored = self.score_documents(documents, opts)
        selected = select_within_budget(
            scored, max_documents=opts.max_documents, max_tokens=opts.max_tokens
        )
        logger.info(
            "context_selected",
            extra={
                "candidates": len(scored),
                "selected": len(selected),
                "max_documents": opts.max_documents,
                "max_tokens": opts.max_tokens,
            },
        )
        return selected

    def format_context_for_ai(
        self, selected: list[ScoredDocument], project_info: ProjectInfo | None = None
    ) -> str:
        return format_context_for_ai(selected, project_info)

    def update_usage_tracking(
        self,
        project_ref: str,
        document_ids: list[str],
        timestamp: datetime | None = None,
    ) -> TrackingStatus:
        """Record selected ids; failures are logged and never raised."""
        if self.usage_sink is None or not document_ids:
            return TrackingStatus.SKIPPED
        recorded_at = timestamp or datetime.now(timezone.utc)
        try:
            self.usage_sink.record(project_ref, list(document_ids), recorded_at)
        except Exception as exc:
            logger.warning(
                "usage_tracking_failed",
                extra={
                    "project_ref": project_ref,
                    "document_count": len(document_ids),
                    "detail": type(exc).__name__,
                },
            )
            return TrackingStatus.FAILED
        logger.info(
            "usage_tracked",
            extra={"project_ref": project_ref, "document_count": len(document_ids)},
        )
        return TrackingStatus.RECORDED
