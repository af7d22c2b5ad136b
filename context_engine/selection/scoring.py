from __future__ import annotations

"""Multi-signal relevance scoring for context documents."""

import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from context_engine.selection.types import (
    Category,
    ContextDocument,
    ScoredDocument,
    SelectionOptions,
)

_TOKEN_RE = re.compile(r"[a-z0-9]{3,}")
_EXTENSION_RE = re.compile(r"\.[^./]+$")

FILE_WEIGHT = 0.3
KEYWORD_WEIGHT = 0.3
TAG_WEIGHT = 0.1

STACK_TAGS = frozenset({"react", "typescript", "api", "database", "auth", "testing"})

SEMANTIC_EXPANSIONS: dict[str, tuple[str, ...]] = {
    "auth": ("authentication", "login", "user", "permission", "security"),
    "payment": ("billing", "stripe", "checkout", "transaction", "invoice"),
    "user": ("profile", "account", "settings", "preferences", "data"),
    "api": ("endpoint", "request", "response", "rest", "graphql"),
    "ui": ("component", "interface", "design", "layout", "style"),
    "database": ("model", "schema", "query", "data", "storage"),
    "test": ("testing", "spec", "unit", "integration", "e2e"),
}

_SCRIPT_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".py")
_STYLE_EXTENSIONS = (".css", ".scss")
_TEXT_EXTENSIONS = (".md", ".txt")

_SECONDS_PER_DAY = 86400.0


def reference_time(documents: Iterable[ContextDocument]) -> datetime | None:
    """Return the newest valid timestamp in the pool."""
    timestamps = [doc.last_modified for doc in documents if doc.last_modified is not None]
    if not timestamps:
        return None
    return max(timestamps)


def matches_current_file(document: ContextDocument, current_file: str) -> bool:
    """Check whether a document is the file the user is working on."""
    path = _normalize_path(current_file)
    if not path:
        return False
    name = path.rsplit("/", 1)[-1]
    candidates = {value for value in (path, name, _strip_extension(name)) if value}
    names = {document.id.strip().lower(), document.title.strip().lower()}
    if document.filename:
        filename = document.filename.strip().lower()
        names.update({filename, _strip_extension(filename)})
    return bool(candidates.intersection(names))


@dataclass
class RelevanceScorer:
    """Score documents against the current selection options."""
    content_scan_chars: int = 2000
    recency_half_life_days: float = 7.0
    self_penalty: float = 0.25

    def score_pool(
        self, documents: list[ContextDocument], options: SelectionOptions
    ) -> list[ScoredDocument]:
        """Score every document, normalizing recency against the pool."""
        reference = reference_time(documents)
        return [self.score(doc, options, reference) for doc in documents]

    def score(
        self,
        document: ContextDocument,
        options: SelectionOptions,
        reference: datetime | None,
    ) -> ScoredDocument:
        """Score a single document; pure for a fixed reference time."""
        is_current = matches_current_file(document, options.current_file)
        file_relevance = 0.0 if is_current else self.file_relevance(document, options.current_file)
        keyword_overlap = self.keyword_overlap(document, options.work_context)
        # The current file's own name must not boost its tags.
        tag_file = "" if is_current else options.current_file
        tag_relevance = self.tag_relevance(document, tag_file, options.work_context)
        recency = self.recency(document, reference)
        category_multiplier = _category_multiplier(document.category, options.category_preferences)
        penalty = self.self_penalty if is_current else 1.0

        base = (
            file_relevance * FILE_WEIGHT
            + keyword_overlap * KEYWORD_WEIGHT
            + recency * max(options.recency_weight, 0.0)
            + tag_relevance * TAG_WEIGHT
        )
        relevance_score = max(base * category_multiplier * penalty, 0.0)
        return ScoredDocument(
            document=document,
            relevance_score=relevance_score,
            score_breakdown={
                "file_relevance": file_relevance,
                "keyword_overlap": keyword_overlap,
                "tag_relevance": tag_relevance,
                "recency": recency,
                "category_multiplier": category_multiplier,
                "self_penalty": penalty,
            },
        )

    def file_relevance(self, document: ContextDocument, current_file: str) -> float:
        """Relevance of a document to the file currently being edited."""
        path = _normalize_path(current_file)
        if not path:
            return 0.0
        title = document.title.lower()
        content = self._scan(document)
        name = path.rsplit("/", 1)[-1]
        stem = _strip_extension(name)

        score = 0.0
        if stem and stem in title:
            score += 0.8
        if name.endswith(_SCRIPT_EXTENSIONS):
            if document.category is Category.API and "endpoint" in content:
                score += 0.6
            if "component" in content or "function" in content:
                score += 0.4
        elif name.endswith(_STYLE_EXTENSIONS):
            if document.category is Category.DESIGN:
                score += 0.7
            if "style" in content or "theme" in content:
                score += 0.5
        elif name.endswith(_TEXT_EXTENSIONS):
            if document.category in (Category.REQUIREMENTS, Category.RESEARCH):
                score += 0.6
        if stem and stem in content:
            score += 0.5
        return min(score, 1.0)

    def keyword_overlap(self, document: ContextDocument, work_context: str) -> float:
        """Keyword overlap between the work context and the document."""
        context = (work_context or "").lower()
        words = _ordered_unique_tokens(context)
        if not words:
            return 0.0
        title = document.title.lower()
        content = self._scan(document)
        tags = [tag.lower() for tag in document.tags]

        score = 0.0
        for word in words:
            if word in title:
                score += 0.4
            if word in content:
                score += 0.2
            if any(word in tag for tag in tags):
                score += 0.3
        for term in semantic_matches(context):
            if term in title or term in content:
                score += 0.3
        return min(score, 1.0)

    def tag_relevance(
        self, document: ContextDocument, current_file: str, work_context: str
    ) -> float:
        """Relevance contributed by document tags."""
        if not document.tags:
            return 0.0
        combined = f"{current_file or ''} {work_context or ''}".lower()
        score = 0.0
        for tag in document.tags:
            lowered = tag.lower()
            if combined.strip() and lowered in combined:
                score += 0.3
            if lowered in STACK_TAGS:
                score += 0.1
        return min(score, 1.0)

    def recency(self, document: ContextDocument, reference: datetime | None) -> float:
        """Exponential decay by age relative to the newest document."""
        if document.last_modified is None or reference is None:
            return 0.0
        age_days = max((reference - document.last_modified).total_seconds(), 0.0) / _SECONDS_PER_DAY
        if self.recency_half_life_days <= 0:
            return 1.0 if age_days == 0 else 0.0
        return math.pow(0.5, age_days / self.recency_half_life_days)

    def _scan(self, document: ContextDocument) -> str:
        """Lower-cased content prefix used for keyword checks."""
        if self.content_scan_chars <= 0:
            return document.content.lower()
        return document.content[: self.content_scan_chars].lower()


def semantic_matches(context: str) -> list[str]:
    """Expand a work context into related terms."""
    lowered = context.lower()
    seen: set[str] = set()
    matches: list[str] = []
    for key, values in SEMANTIC_EXPANSIONS.items():
        if key not in lowered:
            continue
        for value in values:
            if value in seen:
                continue
            seen.add(value)
            matches.append(value)
    return matches


def _preference_label(key: object) -> str:
    if isinstance(key, Category):
        return key.value
    label = str(key).strip().lower().replace("_", "-").replace(" ", "-")
    if label == "meeting-minutes":
        return Category.MEETING_NOTES.value
    return label


def _category_multiplier(
    category: Category, preferences: dict[str, float] | dict[Category, float] | None
) -> float:
    """Look up the caller's weight for a category, neutral when absent."""
    if not preferences:
        return 1.0
    for key, value in preferences.items():
        if _preference_label(key) != category.value:
            continue
        try:
            weight = float(value)
        except (TypeError, ValueError):
            return 1.0
        if not math.isfinite(weight):
            return 1.0
        return max(weight, 0.0)
    return 1.0


def _normalize_path(current_file: str | None) -> str:
    return (current_file or "").strip().replace("\\", "/").lower()


def _strip_extension(name: str) -> str:
    return _EXTENSION_RE.sub("", name)


def _ordered_unique_tokens(text: str) -> list[str]:
    """Return unique tokens in order of appearance."""
    seen: set[str] = set()
    tokens: list[str] = []
    for token in _TOKEN_RE.findall(text.lower()):
        if token in seen:
            continue
        seen.add(token)
        tokens.append(token)
    return tokens
