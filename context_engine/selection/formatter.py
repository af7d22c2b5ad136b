from __future__ import annotations

"""Render selected context documents into a prompt-ready block."""

from context_engine.selection.types import ProjectInfo, ScoredDocument

CONTEXT_HEADING = "# Relevant Context Documents"
SEPARATOR = "---"


def format_project_header(project_info: ProjectInfo | None) -> list[str]:
    """Header lines naming the project and its description."""
    if project_info is None:
        return []
    lines = [f"# Project: {project_info.name}"]
    if project_info.description:
        lines.append(project_info.description)
    lines.append("")
    return lines


def format_context_for_ai(
    selected: list[ScoredDocument], project_info: ProjectInfo | None = None
) -> str:
    """Format selected documents, in order, for LLM prompt injection."""
    sections = format_project_header(project_info)
    if not selected:
        return "\n".join(sections)

    sections.append(CONTEXT_HEADING)
    sections.append("")
    for item in selected:
        document = item.document
        sections.append(f"## {document.title} ({document.category.value})")
        if document.tags:
            sections.append(f"Tags: {', '.join(document.tags)}")
        if document.url:
            sections.append(f"Source: {document.url}")
        sections.append(f"Relevance Score: {item.relevance_score:.2f}")
        sections.append("")
        sections.append(document.content)
        sections.append("")
        sections.append(SEPARATOR)
        sections.append("")
    return "\n".join(sections)
