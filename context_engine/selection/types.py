from __future__ import annotations

"""Core data types for context documents and selection."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Category(str, Enum):
    """Closed set of document categories with an explicit fallback."""
    REQUIREMENTS = "requirements"
    API = "api"
    DESIGN = "design"
    RESEARCH = "research"
    REFERENCE = "reference"
    MEETING_NOTES = "meeting-notes"
    NEWS_ARTICLE = "news-article"
    SOCIAL_MEDIA_POST = "social-media-post"
    CONTRACT = "contract"
    INVOICE = "invoice"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "Category":
        """Map a raw label to a category, falling back to OTHER."""
        if isinstance(value, Category):
            return value
        if not isinstance(value, str):
            return cls.OTHER
        label = value.strip().lower().replace("_", "-").replace(" ", "-")
        if label == "meeting-minutes":
            return cls.MEETING_NOTES
        try:
            return cls(label)
        except ValueError:
            return cls.OTHER


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize datetimes to UTC; naive values are assumed to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class ContextDocument:
    """Stored piece of project knowledge eligible for prompt injection."""
    id: str
    title: str
    content: str = ""
    tags: tuple[str, ...] = ()
    category: Category = Category.OTHER
    last_modified: datetime | None = None
    url: str | None = None
    filename: str | None = None

    def __post_init__(self) -> None:
        if not self.id or not self.title:
            raise ValueError("context documents require an id and a title")
        seen: set[str] = set()
        tags: list[str] = []
        raw_tags = (self.tags,) if isinstance(self.tags, str) else self.tags or ()
        for tag in raw_tags:
            cleaned = str(tag).strip()
            if not cleaned or cleaned in seen:
                continue
            seen.add(cleaned)
            tags.append(cleaned)
        object.__setattr__(self, "tags", tuple(tags))
        object.__setattr__(self, "category", Category.parse(self.category))
        object.__setattr__(self, "content", self.content or "")
        if self.last_modified is not None and not isinstance(self.last_modified, datetime):
            object.__setattr__(self, "last_modified", None)
        object.__setattr__(self, "last_modified", as_utc(self.last_modified))


@dataclass(frozen=True)
class SelectionOptions:
    """Caller-supplied criteria for a single selection request."""
    current_file: str = ""
    work_context: str = ""
    max_tokens: int = 8000
    max_documents: int = 5
    category_preferences: dict[str, float] | dict[Category, float] | None = None
    recency_weight: float = 0.2


@dataclass(frozen=True)
class ScoredDocument:
    """Context document annotated with its relevance score."""
    document: ContextDocument
    relevance_score: float
    score_breakdown: dict[str, float] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.document.id

    @property
    def title(self) -> str:
        return self.document.title

    @property
    def content(self) -> str:
        return self.document.content


@dataclass(frozen=True)
class ProjectInfo:
    """Project metadata rendered ahead of selected context."""
    name: str
    description: str | None = None
