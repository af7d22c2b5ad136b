from __future__ import annotations

"""File-backed project and context document storage."""

import json
import logging
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from context_engine.selection.types import Category, ContextDocument, ProjectInfo

logger = logging.getLogger(__name__)

_FRONT_MATTER_RE = re.compile(r"^---\n(.*?)\n---\n?(.*)$", re.DOTALL)
_PROJECT_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")
_DOC_SUFFIXES = {".md", ".json"}


class DocumentStoreError(RuntimeError):
    """Raised when project documents cannot be read or written."""
    pass


class ProjectNotFoundError(DocumentStoreError):
    """Raised when a project directory does not exist."""
    pass


class DocumentNotFoundError(DocumentStoreError):
    """Raised when a context document does not exist."""
    pass


def parse_front_matter(text: str) -> tuple[dict[str, str], str]:
    """Split simple `key: value` front matter from a Markdown body."""
    normalized = text.replace("\r\n", "\n")
    match = _FRONT_MATTER_RE.match(normalized)
    if not match:
        return {}, text
    metadata: dict[str, str] = {}
    for line in match.group(1).split("\n"):
        key, sep, value = line.partition(":")
        if not sep or not key.strip():
            continue
        metadata[key.strip().lower()] = value.strip()
    return metadata, match.group(2)


def render_front_matter(document: ContextDocument) -> str:
    """Serialize a document as Markdown with front matter."""
    lines = [
        "---",
        f"id: {document.id}",
        f"title: {_single_line(document.title)}",
        f"category: {document.category.value}",
        f"tags: {', '.join(document.tags)}",
    ]
    if document.url:
        lines.append(f"url: {_single_line(document.url)}")
    if document.last_modified:
        lines.append(f"last_modified: {document.last_modified.isoformat()}")
    lines.append("---")
    return "\n".join(lines) + "\n" + document.content


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp, returning None when malformed."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def split_tags(value: Any) -> list[str]:
    if isinstance(value, str):
        return [tag.strip() for tag in value.split(",") if tag.strip()]
    if isinstance(value, (list, tuple)):
        return [str(tag).strip() for tag in value if str(tag).strip()]
    return []


def document_from_file(path: Path) -> ContextDocument:
    """Load a Markdown or JSON context file into a ContextDocument."""
    text = path.read_text(encoding="utf-8")
    metadata: dict[str, Any] = {}
    content = text
    if path.suffix.lower() == ".json":
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            raw_meta = parsed.get("metadata")
            metadata = dict(raw_meta) if isinstance(raw_meta, dict) else {}
            content = str(parsed.get("content") or "")
    else:
        metadata, content = parse_front_matter(text)

    stem = path.stem
    last_modified = parse_timestamp(
        metadata.get("last_modified") or metadata.get("lastmodified") or metadata.get("lastModified")
    )
    if last_modified is None:
        last_modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    return ContextDocument(
        id=str(metadata.get("id") or stem).strip() or stem,
        title=str(metadata.get("title") or stem).strip() or stem,
        content=content,
        tags=tuple(split_tags(metadata.get("tags"))),
        category=Category.parse(metadata.get("category")),
        last_modified=last_modified,
        url=str(metadata["url"]).strip() if metadata.get("url") else None,
        filename=path.name,
    )


class ProjectDocumentStore:
    """Projects stored as `{root}/{project_id}/config.json` plus `context/`."""
    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def project_dir(self, project_id: str) -> Path:
        """Resolve a project directory, rejecting ids that escape the root."""
        if not project_id or not _PROJECT_ID_RE.match(project_id) or project_id in {".", ".."}:
            raise ProjectNotFoundError(f"Invalid project id: {project_id!r}")
        return self._root / project_id

    def context_dir(self, project_id: str) -> Path:
        return self.project_dir(project_id) / "context"

    def project_exists(self, project_id: str) -> bool:
        try:
            return self.project_dir(project_id).is_dir()
        except ProjectNotFoundError:
            return False

    def load_project_info(self, project_id: str) -> ProjectInfo:
        """Read project name and description from config.json."""
        project_dir = self.project_dir(project_id)
        config_path = project_dir / "config.json"
        try:
            config = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("project_config_unreadable", extra={"project_id": project_id})
            return ProjectInfo(name=project_dir.name)
        if not isinstance(config, dict):
            return ProjectInfo(name=project_dir.name)
        name = config.get("name")
        description = config.get("description")
        return ProjectInfo(
            name=name if isinstance(name, str) and name.strip() else project_dir.name,
            description=description if isinstance(description, str) and description else None,
        )

    def load_documents(self, project_id: str) -> list[ContextDocument]:
        """Load every context document; unreadable files are skipped."""
        try:
            context_dir = self.context_dir(project_id)
            paths = sorted(
                path
                for path in context_dir.iterdir()
                if path.is_file() and path.suffix.lower() in _DOC_SUFFIXES
            )
        except (OSError, DocumentStoreError):
            logger.warning("context_dir_unreadable", extra={"project_id": project_id})
            return []
        documents: list[ContextDocument] = []
        for path in paths:
            try:
                documents.append(document_from_file(path))
            except (OSError, UnicodeDecodeError, ValueError) as exc:
                logger.warning(
                    "context_document_skipped",
                    extra={
                        "project_id": project_id,
                        "file_name": path.name,
                        "detail": type(exc).__name__,
                    },
                )
        logger.info(
            "context_documents_loaded",
            extra={"project_id": project_id, "count": len(documents)},
        )
        return documents

    def list_documents(
        self,
        project_id: str,
        category: str | None = None,
        tags: list[str] | None = None,
        search: str | None = None,
    ) -> list[ContextDocument]:
        """List documents with optional filters, newest first."""
        self._require_project(project_id)
        documents = self.load_documents(project_id)
        if category:
            wanted = Category.parse(category)
            documents = [doc for doc in documents if doc.category is wanted]
        if tags:
            wanted_tags = {tag.strip() for tag in tags if tag.strip()}
            documents = [doc for doc in documents if wanted_tags.intersection(doc.tags)]
        if search and search.strip():
            needle = search.strip().lower()
            documents = [
                doc
                for doc in documents
                if needle in doc.title.lower() or needle in doc.content.lower()
            ]
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        documents.sort(key=lambda doc: doc.id)
        documents.sort(key=lambda doc: doc.last_modified or oldest, reverse=True)
        return documents

    def get_document(self, project_id: str, document_id: str) -> ContextDocument:
        self._require_project(project_id)
        for document in self.load_documents(project_id):
            if document.id == document_id:
                return document
        raise DocumentNotFoundError(f"Document not found: {document_id}")

    def create_document(
        self,
        project_id: str,
        title: str,
        content: str,
        tags: list[str] | None = None,
        category: str | None = None,
        url: str | None = None,
    ) -> ContextDocument:
        """Write a new Markdown context document with a fresh id."""
        self._require_project(project_id)
        document_id = str(uuid.uuid4())
        document = ContextDocument(
            id=document_id,
            title=title.strip(),
            content=content,
            tags=tuple(tags or ()),
            category=Category.parse(category),
            last_modified=datetime.now(timezone.utc),
            url=url,
            filename=f"{document_id}.md",
        )
        context_dir = self.context_dir(project_id)
        path = context_dir / document.filename
        try:
            context_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(render_front_matter(document), encoding="utf-8")
        except OSError as exc:
            raise DocumentStoreError(f"Failed to write document {document.id}") from exc
        logger.info(
            "context_document_created",
            extra={"project_id": project_id, "document_id": document.id},
        )
        return document

    def delete_document(self, project_id: str, document_id: str) -> None:
        document = self.get_document(project_id, document_id)
        if not document.filename:
            raise DocumentNotFoundError(f"Document not found: {document_id}")
        try:
            (self.context_dir(project_id) / document.filename).unlink()
        except FileNotFoundError as exc:
            raise DocumentNotFoundError(f"Document not found: {document_id}") from exc
        except OSError as exc:
            raise DocumentStoreError(f"Failed to delete document {document_id}") from exc
        logger.info(
            "context_document_deleted",
            extra={"project_id": project_id, "document_id": document_id},
        )

    def _require_project(self, project_id: str) -> None:
        if not self.project_exists(project_id):
            raise ProjectNotFoundError(f"Project not found: {project_id}")


def _single_line(value: str) -> str:
    return " ".join(value.split())
