from __future__ import annotations

from datetime import datetime, timedelta, timezone

from context_engine.selection.engine import ContextSelectionEngine
from context_engine.selection.types import Category, ContextDocument, SelectionOptions
from context_engine.storage.usage import TrackingStatus

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


class RecordingSink:
    def __init__(self) -> None:
        self.calls: list[tuple[str, list[str], datetime]] = []

    def record(self, project_ref: str, document_ids: list[str], timestamp: datetime) -> None:
        self.calls.append((project_ref, document_ids, timestamp))


class FailingSink:
    def record(self, project_ref: str, document_ids: list[str], timestamp: datetime) -> None:
        raise OSError("disk full")


def build_pool() -> list[ContextDocument]:
    documents = [
        ContextDocument(
            id=f"req-{idx}",
            title=f"Requirement {idx}",
            content=f"Requirement body {idx}",
            category=Category.REQUIREMENTS,
            last_modified=NOW - timedelta(days=idx),
        )
        for idx in range(3)
    ]
    documents += [
        ContextDocument(
            id=f"other-{idx}",
            title=f"Archive {idx}",
            content=f"Archived note {idx}",
            category=Category.OTHER,
            last_modified=NOW - timedelta(days=30 + idx),
        )
        for idx in range(7)
    ]
    return documents


def test_category_preference_selects_recent_requirements() -> None:
    engine = ContextSelectionEngine()
    options = SelectionOptions(
        max_documents=3,
        max_tokens=8000,
        category_preferences={"requirements": 2.0},
    )

    selected = engine.select_relevant_context(build_pool(), options)

    assert [item.id for item in selected] == ["req-0", "req-1", "req-2"]


def test_document_larger_than_budget_is_excluded() -> None:
    document = ContextDocument(id="huge", title="Huge Spec", content="a" * 40_000, last_modified=NOW)

    selected = ContextSelectionEngine().select_relevant_context(
        [document], SelectionOptions(max_tokens=8000)
    )

    assert selected == []


def test_payment_gateway_context_scores_matching_document_highest() -> None:
    pool = [
        ContextDocument(
            id="gateway",
            title="Payment Gateway Design",
            content="Card processing flow.",
            last_modified=NOW - timedelta(days=3),
        )
    ]
    pool += [
        ContextDocument(
            id=f"misc-{idx}",
            title=f"Meeting {idx}",
            content="Discussed hiring plans.",
            last_modified=NOW - timedelta(days=idx),
        )
        for idx in range(9)
    ]
    options = SelectionOptions(work_context="payment gateway integration", max_documents=1)
    engine = ContextSelectionEngine()

    scored = {item.id: item for item in engine.score_documents(pool, options)}
    selected = engine.select_relevant_context(pool, options)

    overlap = scored["gateway"].score_breakdown["keyword_overlap"]
    assert overlap > 0
    assert all(
        scored[f"misc-{idx}"].score_breakdown["keyword_overlap"] < overlap for idx in range(9)
    )
    assert [item.id for item in selected] == ["gateway"]


def test_current_file_penalty_compared_to_no_current_file() -> None:
    pool = build_pool()
    engine = ContextSelectionEngine()

    baseline = {item.id: item.relevance_score for item in engine.score_documents(pool, SelectionOptions())}
    penalized = {
        item.id: item.relevance_score
        for item in engine.score_documents(pool, SelectionOptions(current_file="req-0"))
    }

    assert penalized["req-0"] < baseline["req-0"]


def test_selection_is_deterministic() -> None:
    engine = ContextSelectionEngine()
    options = SelectionOptions(work_context="requirement body", max_documents=4, max_tokens=30)

    first = engine.select_relevant_context(build_pool(), options)
    second = engine.select_relevant_context(build_pool(), options)

    assert first == second


def test_empty_pool_and_empty_format() -> None:
    engine = ContextSelectionEngine()

    assert engine.select_relevant_context([], SelectionOptions()) == []
    assert engine.format_context_for_ai([]) == ""


def test_non_positive_options_select_nothing() -> None:
    engine = ContextSelectionEngine()

    assert engine.select_relevant_context(build_pool(), SelectionOptions(max_tokens=0)) == []
    assert engine.select_relevant_context(build_pool(), SelectionOptions(max_documents=-2)) == []


def test_selection_does_not_mutate_documents() -> None:
    pool = build_pool()
    snapshot = list(pool)

    ContextSelectionEngine().select_relevant_context(pool, SelectionOptions(current_file="req-1"))

    assert pool == snapshot


def test_usage_tracking_records_ids() -> None:
    sink = RecordingSink()
    engine = ContextSelectionEngine(usage_sink=sink)

    status = engine.update_usage_tracking("shop", ["req-0", "req-1"], timestamp=NOW)

    assert status is TrackingStatus.RECORDED
    assert sink.calls == [("shop", ["req-0", "req-1"], NOW)]


def test_usage_tracking_failure_is_swallowed() -> None:
    engine = ContextSelectionEngine(usage_sink=FailingSink())

    assert engine.update_usage_tracking("shop", ["req-0"]) is TrackingStatus.FAILED


def test_usage_tracking_skips_without_sink_or_ids() -> None:
    assert ContextSelectionEngine().update_usage_tracking("shop", ["a"]) is TrackingStatus.SKIPPED
    engine = ContextSelectionEngine(usage_sink=RecordingSink())
    assert engine.update_usage_tracking("shop", []) is TrackingStatus.SKIPPED
