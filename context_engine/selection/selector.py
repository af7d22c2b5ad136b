from __future__ import annotations

"""Budgeted selection of scored documents."""

import logging
from datetime import datetime, timezone

from context_engine.selection.tokens import estimate_tokens
from context_engine.selection.types import ScoredDocument

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def rank_documents(scored: list[ScoredDocument]) -> list[ScoredDocument]:
    """Order by score, then newest first, then id for a total order."""
    by_id = sorted(scored, key=lambda item: item.document.id)
    by_recency = sorted(
        by_id,
        key=lambda item: item.document.last_modified or _OLDEST,
        reverse=True,
    )
    return sorted(by_recency, key=lambda item: item.relevance_score, reverse=True)


def select_within_budget(
    scored: list[ScoredDocument], max_documents: int, max_tokens: int
) -> list[ScoredDocument]:
    """Greedily pick top-ranked documents under count and token caps.

    Documents that do not fit the remaining budget are skipped whole; the
    walk continues so a smaller, lower-ranked document can still be used.
    """
    if max_documents <= 0 or max_tokens <= 0:
        return []
    selected: list[ScoredDocument] = []
    total_tokens = 0
    skipped = 0
    for item in rank_documents(scored):
        if len(selected) >= max_documents:
            break
        doc_tokens = estimate_tokens(item.document.content)
        if total_tokens + doc_tokens > max_tokens:
            skipped += 1
            continue
        selected.append(item)
        total_tokens += doc_tokens
    logger.debug(
        "budget_applied",
        extra={
            "candidates": len(scored),
            "selected": len(selected),
            "skipped_over_budget": skipped,
            "estimated_tokens": total_tokens,
        },
    )
    return selected
