from __future__ import annotations

"""CLI utility to print the selected context block for a project."""

import argparse

from context_engine.app.settings import settings
from context_engine.selection.engine import ContextSelectionEngine
from context_engine.selection.scoring import RelevanceScorer
from context_engine.selection.types import SelectionOptions
from context_engine.storage.documents import ProjectDocumentStore


def main() -> None:
    """Select and print context using app settings as defaults."""
    parser = argparse.ArgumentParser(description="Select relevant project context.")
    parser.add_argument("project_id", help="Project directory name under the projects root.")
    parser.add_argument("--root", default=settings.projects_root, help="Projects root.")
    parser.add_argument("--current-file", default="", help="File currently being edited.")
    parser.add_argument("--work-context", default="", help="Free-text description of the work.")
    parser.add_argument("--max-tokens", type=int, default=settings.max_tokens)
    parser.add_argument("--max-documents", type=int, default=settings.max_documents)
    parser.add_argument(
        "--explain",
        action="store_true",
        help="Print score breakdowns instead of the formatted context.",
    )
    args = parser.parse_args()

    store = ProjectDocumentStore(args.root)
    if not store.project_exists(args.project_id):
        raise SystemExit(f"Project not found: {args.project_id}")

    engine = ContextSelectionEngine(
        scorer=RelevanceScorer(
            content_scan_chars=settings.content_scan_chars,
            recency_half_life_days=settings.recency_half_life_days,
            self_penalty=settings.self_penalty,
        )
    )
    options = SelectionOptions(
        current_file=args.current_file,
        work_context=args.work_context,
        max_tokens=args.max_tokens,
        max_documents=args.max_documents,
        category_preferences=settings.category_weights or None,
        recency_weight=settings.recency_weight,
    )
    documents = store.load_documents(args.project_id)
    selected = engine.select_relevant_context(documents, options)

    if args.explain:
        for item in selected:
            signals = ", ".join(
                f"{name}={value:.2f}" for name, value in item.score_breakdown.items()
            )
            print(f"{item.relevance_score:.3f}  {item.id}  {item.title}  [{signals}]")
        print(f"Selected {len(selected)} of {len(documents)} documents")
        return

    print(engine.format_context_for_ai(selected, store.load_project_info(args.project_id)))


if __name__ == "__main__":
    main()
