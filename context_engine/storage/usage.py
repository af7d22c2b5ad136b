from __future__ import annotations

"""Usage history sinks recording which documents were selected."""

import json
import logging
import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

MAX_JSON_ENTRIES = 500


class UsageStoreError(RuntimeError):
    """Raised when usage history persistence fails."""
    pass


class TrackingStatus(str, Enum):
    """Outcome of a best-effort usage tracking write."""
    RECORDED = "recorded"
    SKIPPED = "skipped"
    FAILED = "failed"


class UsageSink(Protocol):
    def record(self, project_ref: str, document_ids: list[str], timestamp: datetime) -> None:
        ...


class JsonUsageLog:
    """Append selections to a per-project usage.json file."""
    def __init__(
        self,
        resolve_dir: Callable[[str], Path],
        max_entries: int = MAX_JSON_ENTRIES,
    ) -> None:
        self._resolve_dir = resolve_dir
        self._max_entries = max_entries

    def record(self, project_ref: str, document_ids: list[str], timestamp: datetime) -> None:
        """Append a usage entry, keeping only the most recent entries."""
        path = self._resolve_dir(project_ref) / "usage.json"
        entries = self._read(path)
        entries.append({"timestamp": timestamp.isoformat(), "document_ids": list(document_ids)})
        if self._max_entries > 0:
            entries = entries[-self._max_entries :]
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".json.tmp")
            tmp_path.write_text(json.dumps({"entries": entries}, indent=2), encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            raise UsageStoreError(f"Failed to write usage log for {project_ref}") from exc

    def read(self, project_ref: str) -> list[dict[str, Any]]:
        """Return recorded entries, oldest first."""
        return self._read(self._resolve_dir(project_ref) / "usage.json")

    @staticmethod
    def _read(path: Path) -> list[dict[str, Any]]:
        """Load entries; a corrupt log is moved aside and restarted."""
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            corrupt_path = path.with_name(f"{path.name}.corrupt")
            try:
                path.replace(corrupt_path)
            except OSError as exc:
                raise UsageStoreError(f"Unreadable usage log: {path.name}") from exc
            logger.warning("usage_log_corrupt", extra={"moved_to": corrupt_path.name})
            return []
        except OSError as exc:
            raise UsageStoreError(f"Unreadable usage log: {path.name}") from exc
        entries = data.get("entries") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            return []
        return [entry for entry in entries if isinstance(entry, dict)]


class SqlUsageStore:
    """Store usage history in a SQL database."""
    def __init__(self, connection_uri: str) -> None:
        """Initialize the usage store and ensure tables exist."""
        from sqlalchemy import Column, DateTime, MetaData, String, Table, Text, create_engine

        self._engine = create_engine(connection_uri)
        self._metadata = MetaData()
        self._table = Table(
            "context_usage",
            self._metadata,
            Column("id", String(36), primary_key=True),
            Column("project_ref", String(255), nullable=False, index=True),
            Column("document_ids", Text, nullable=False),
            Column("created_at", DateTime(timezone=True), nullable=False),
        )
        self._metadata.create_all(self._engine)

    def record(self, project_ref: str, document_ids: list[str], timestamp: datetime) -> None:
        """Insert a usage row for one selection."""
        payload = {
            "id": str(uuid.uuid4()),
            "project_ref": project_ref,
            "document_ids": json.dumps(list(document_ids), ensure_ascii=True),
            "created_at": timestamp,
        }
        with self._engine.begin() as conn:
            conn.execute(self._table.insert().values(**payload))
