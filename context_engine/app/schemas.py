from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from context_engine.selection.types import ContextDocument, ScoredDocument


class ContextDocumentOut(BaseModel):
    id: str
    title: str
    content: str
    tags: list[str]
    category: str
    last_modified: datetime | None = None
    url: str | None = None
    filename: str | None = None

    @classmethod
    def from_document(cls, document: ContextDocument) -> "ContextDocumentOut":
        return cls(
            id=document.id,
            title=document.title,
            content=document.content,
            tags=list(document.tags),
            category=document.category.value,
            last_modified=document.last_modified,
            url=document.url,
            filename=document.filename,
        )


class ScoredDocumentOut(ContextDocumentOut):
    relevance_score: float
    score_breakdown: dict[str, float] = Field(default_factory=dict)
    estimated_tokens: int

    @classmethod
    def from_scored(cls, scored: ScoredDocument, estimated_tokens: int) -> "ScoredDocumentOut":
        base = ContextDocumentOut.from_document(scored.document)
        return cls(
            **base.model_dump(),
            relevance_score=scored.relevance_score,
            score_breakdown=dict(scored.score_breakdown),
            estimated_tokens=estimated_tokens,
        )


class ContextListResponse(BaseModel):
    documents: list[ContextDocumentOut]
    total: int


class CreateContextRequest(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    content: str = ""
    tags: list[str] = Field(default_factory=list)
    category: str = "other"
    url: str | None = None


class SelectContextRequest(BaseModel):
    current_file: str | None = None
    work_context: str | None = None
    max_tokens: int | None = None
    max_documents: int | None = None
    category_preferences: dict[str, float] | None = None


class SelectionCriteria(BaseModel):
    current_file: str | None
    work_context: str | None
    max_tokens: int
    max_documents: int


class SelectContextResponse(BaseModel):
    selected_documents: list[ScoredDocumentOut]
    formatted_context: str
    total_documents: int
    estimated_tokens: int
    selection_criteria: SelectionCriteria
    usage_tracking: str
    message: str | None = None


class DeleteContextResponse(BaseModel):
    deleted: str
