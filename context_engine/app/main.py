from __future__ import annotations

"""FastAPI application entrypoint for project context selection."""

import logging
import uuid

from fastapi import Depends, FastAPI, HTTPException, Request

from context_engine.app.dependencies import get_document_store, get_engine
from context_engine.app.metrics import metrics_middleware, metrics_response, observe_selection
from context_engine.app.schemas import (
    ContextDocumentOut,
    ContextListResponse,
    CreateContextRequest,
    DeleteContextResponse,
    ScoredDocumentOut,
    SelectContextRequest,
    SelectContextResponse,
    SelectionCriteria,
)
from context_engine.app.security import AuthContext, require_read, require_write
from context_engine.app.settings import settings
from context_engine.selection.tokens import estimate_tokens
from context_engine.selection.types import SelectionOptions
from context_engine.storage.documents import (
    DocumentNotFoundError,
    DocumentStoreError,
    ProjectNotFoundError,
)
from context_engine.storage.usage import TrackingStatus

logger = logging.getLogger(__name__)

app = FastAPI(title="Project Context Engine", version="0.1.0")


def _configure_logging() -> None:
    """Configure root logging using environment settings."""
    level_name = settings.log_level.strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logger.setLevel(level)


_configure_logging()


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", str(uuid.uuid4()))


def _require_project(project_id: str) -> None:
    if not get_document_store().project_exists(project_id):
        raise HTTPException(status_code=404, detail="Project not found")


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Attach or create a request ID for traceability."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    """Capture request metrics before returning the response."""
    return await metrics_middleware(request, call_next)


@app.get("/metrics")
async def metrics():
    """Expose Prometheus-style metrics."""
    return metrics_response()


@app.get("/health")
async def health() -> dict[str, str]:
    """Simple health probe for uptime checks."""
    return {"status": "ok"}


@app.get("/projects/{project_id}/context", response_model=ContextListResponse)
async def list_context(
    project_id: str,
    category: str | None = None,
    tags: str | None = None,
    search: str | None = None,
    auth: AuthContext = Depends(require_read),
) -> ContextListResponse:
    """List a project's context documents, newest first."""
    tag_list = [tag for tag in (tags or "").split(",") if tag.strip()]
    try:
        documents = get_document_store().list_documents(
            project_id, category=category, tags=tag_list, search=search
        )
    except ProjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Project not found") from exc
    items = [ContextDocumentOut.from_document(doc) for doc in documents]
    return ContextListResponse(documents=items, total=len(items))


@app.post("/projects/{project_id}/context", response_model=ContextDocumentOut)
async def create_context(
    project_id: str,
    request: CreateContextRequest,
    http_request: Request,
    auth: AuthContext = Depends(require_write),
) -> ContextDocumentOut:
    """Create a Markdown context document in the project."""
    if not request.title.strip():
        raise HTTPException(status_code=400, detail="Title is required")
    try:
        document = get_document_store().create_document(
            project_id,
            title=request.title,
            content=request.content,
            tags=request.tags,
            category=request.category,
            url=request.url,
        )
    except ProjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Project not found") from exc
    except DocumentStoreError as exc:
        logger.error(
            "context_create_failed",
            extra={"request_id": _request_id(http_request), "project_id": project_id},
        )
        raise HTTPException(status_code=500, detail="Failed to create context document") from exc
    return ContextDocumentOut.from_document(document)


@app.get("/projects/{project_id}/context/{document_id}", response_model=ContextDocumentOut)
async def get_context(
    project_id: str,
    document_id: str,
    auth: AuthContext = Depends(require_read),
) -> ContextDocumentOut:
    """Return one context document."""
    try:
        document = get_document_store().get_document(project_id, document_id)
    except ProjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Project not found") from exc
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Document not found") from exc
    return ContextDocumentOut.from_document(document)


@app.delete("/projects/{project_id}/context/{document_id}", response_model=DeleteContextResponse)
async def delete_context(
    project_id: str,
    document_id: str,
    http_request: Request,
    auth: AuthContext = Depends(require_write),
) -> DeleteContextResponse:
    """Delete a context document."""
    try:
        get_document_store().delete_document(project_id, document_id)
    except ProjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Project not found") from exc
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Document not found") from exc
    except DocumentStoreError as exc:
        logger.error(
            "context_delete_failed",
            extra={"request_id": _request_id(http_request), "document_id": document_id},
        )
        raise HTTPException(status_code=500, detail="Failed to delete context document") from exc
    return DeleteContextResponse(deleted=document_id)


@app.post("/projects/{project_id}/context/select", response_model=SelectContextResponse)
async def select_context(
    project_id: str,
    request: SelectContextRequest,
    http_request: Request,
    auth: AuthContext = Depends(require_read),
) -> SelectContextResponse:
    """Select the most relevant context documents for the current work."""
    _require_project(project_id)
    store = get_document_store()
    engine = get_engine()
    request_id = _request_id(http_request)

    options = SelectionOptions(
        current_file=request.current_file or "",
        work_context=request.work_context or "",
        max_tokens=settings.max_tokens if request.max_tokens is None else request.max_tokens,
        max_documents=(
            settings.max_documents if request.max_documents is None else request.max_documents
        ),
        category_preferences=(
            request.category_preferences
            if request.category_preferences is not None
            else settings.category_weights or None
        ),
        recency_weight=settings.recency_weight,
    )
    criteria = SelectionCriteria(
        current_file=request.current_file,
        work_context=request.work_context,
        max_tokens=options.max_tokens,
        max_documents=options.max_documents,
    )

    documents = store.load_documents(project_id)
    if not documents:
        observe_selection(0, TrackingStatus.SKIPPED.value)
        return SelectContextResponse(
            selected_documents=[],
            formatted_context="",
            total_documents=0,
            estimated_tokens=0,
            selection_criteria=criteria,
            usage_tracking=TrackingStatus.SKIPPED.value,
            message="No context documents found",
        )

    selected = engine.select_relevant_context(documents, options)
    project_info = store.load_project_info(project_id)
    formatted = engine.format_context_for_ai(selected, project_info)
    tracking = engine.update_usage_tracking(project_id, [item.id for item in selected])
    observe_selection(len(selected), tracking.value)

    token_counts = [estimate_tokens(item.content) for item in selected]
    logger.info(
        "context_select_complete",
        extra={
            "request_id": request_id,
            "project_id": project_id,
            "total_documents": len(documents),
            "selected": len(selected),
            "estimated_tokens": sum(token_counts),
            "usage_tracking": tracking.value,
        },
    )
    return SelectContextResponse(
        selected_documents=[
            ScoredDocumentOut.from_scored(item, tokens)
            for item, tokens in zip(selected, token_counts)
        ],
        formatted_context=formatted,
        total_documents=len(documents),
        estimated_tokens=sum(token_counts),
        selection_criteria=criteria,
        usage_tracking=tracking.value,
        message=None if selected else "No documents fit the selection budget",
    )
