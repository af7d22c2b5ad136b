from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone

from context_engine.selection.engine import ContextSelectionEngine
from context_engine.storage.usage import JsonUsageLog, SqlUsageStore, TrackingStatus

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def test_json_usage_log_appends_entries(tmp_path) -> None:
    log = JsonUsageLog(lambda project_ref: tmp_path / project_ref)

    log.record("shop", ["a", "b"], NOW)
    log.record("shop", ["c"], NOW)

    entries = log.read("shop")
    assert [entry["document_ids"] for entry in entries] == [["a", "b"], ["c"]]
    assert entries[0]["timestamp"] == NOW.isoformat()
    assert json.loads((tmp_path / "shop" / "usage.json").read_text(encoding="utf-8"))["entries"]


def test_json_usage_log_keeps_most_recent_entries(tmp_path) -> None:
    log = JsonUsageLog(lambda project_ref: tmp_path / project_ref, max_entries=2)

    for idx in range(4):
        log.record("shop", [f"doc-{idx}"], NOW)

    assert [entry["document_ids"] for entry in log.read("shop")] == [["doc-2"], ["doc-3"]]


def test_corrupt_usage_log_is_moved_aside_and_restarted(tmp_path) -> None:
    project_dir = tmp_path / "shop"
    project_dir.mkdir()
    (project_dir / "usage.json").write_text("{not json", encoding="utf-8")
    log = JsonUsageLog(lambda ref: tmp_path / ref)
    engine = ContextSelectionEngine(usage_sink=log)

    assert engine.update_usage_tracking("shop", ["a"]) is TrackingStatus.RECORDED
    assert engine.update_usage_tracking("shop", ["b"]) is TrackingStatus.RECORDED

    assert (project_dir / "usage.json.corrupt").read_text(encoding="utf-8") == "{not json"
    assert [entry["document_ids"] for entry in log.read("shop")] == [["a"], ["b"]]


def test_unwritable_usage_log_fails_tracking_without_raising(tmp_path) -> None:
    (tmp_path / "shop").write_text("not a directory", encoding="utf-8")
    engine = ContextSelectionEngine(usage_sink=JsonUsageLog(lambda ref: tmp_path / ref))

    assert engine.update_usage_tracking("shop", ["a"]) is TrackingStatus.FAILED


def test_sql_usage_store_records_rows(tmp_path) -> None:
    db_path = tmp_path / "usage.db"
    store = SqlUsageStore(f"sqlite:///{db_path}")

    store.record("shop", ["a", "b"], NOW)

    conn = sqlite3.connect(db_path)
    try:
        row = conn.execute(
            "SELECT project_ref, document_ids FROM context_usage"
        ).fetchone()
    finally:
        conn.close()
    assert row == ("shop", '["a", "b"]')
