"""Markdown export of generated scope content"""

import os
import re
from datetime import datetime
from typing import List, Optional

from ..models.scope_models import GeneratedContent


def format_markdown_section(title: str, content: List[str]) -> str:
    """Format a section in markdown"""
    return f"## {title}\n\n" + "\n".join([f"- {item}" for item in content]) + "\n\n"


def create_markdown_document(sections: List[dict]) -> str:
    """Create a markdown document from sections"""
    doc = []
    for section in sections:
        title = section.get("title", "")
        content = section.get("content", [])
        if isinstance(content, list):
            doc.append(format_markdown_section(title, content))
        else:
            doc.append(f"## {title}\n\n{content}\n\n")
    return "".join(doc)


def _format_hours(value) -> str:
    return f"{value:g}" if isinstance(value, (int, float)) else str(value)


def render_scope_markdown(content: GeneratedContent, generated_at: Optional[datetime] = None) -> str:
    """Render a scope of work document"""
    generated_at = generated_at or datetime.now()
    header = (
        f"# Scope of Work: {content.technology}\n\n"
        f"*Generated {generated_at.strftime('%Y-%m-%d %H:%M')}*\n\n"
        f"**Total Estimated Hours:** {_format_hours(content.total_hours)}\n\n"
    )

    services_md = []
    for service in content.services:
        lines = [
            f"### {service.name} ({service.phase}) - {_format_hours(service.hours)} hours",
            "",
            service.service_description or service.description,
            "",
        ]
        if service.subservices:
            lines.append("| Subservice | Quantity | Base Hours | Hours |")
            lines.append("|---|---|---|---|")
            for sub in service.subservices:
                lines.append(
                    f"| {sub.name} | {_format_hours(sub.quantity)} | "
                    f"{_format_hours(sub.base_hours)} | {_format_hours(sub.hours)} |"
                )
            lines.append("")
        for label, text in (
            ("Key Assumptions", service.key_assumptions),
            ("Client Responsibilities", service.client_responsibilities),
            ("Out of Scope", service.out_of_scope),
        ):
            if text:
                lines.append(f"**{label}:** {text}")
                lines.append("")
        services_md.append("\n".join(lines))

    questions = []
    for question in content.questions:
        default = f" (default: {question.default_value})" if question.default_value not in (None, "") else ""
        questions.append(f"{question.text}{default}")

    calculations = [
        f"{calc.name}: {calc.value} {calc.unit}" + (f" ({calc.formula})" if calc.formula else "")
        for calc in content.calculations
    ]

    sources = [f"[{source.title}]({source.url})" for source in content.sources] or ["No sources found"]

    sections = [
        {"title": "Services", "content": "\n\n".join(services_md) or "No services"},
        {"title": "Scoping Questions", "content": questions},
        {"title": "Calculations", "content": calculations},
        {"title": "Sources", "content": sources},
    ]
    return header + create_markdown_document(sections)


def save_scope(content: GeneratedContent, directory: str = "scopes") -> str:
    """Save the scope document; returns the file path"""
    os.makedirs(directory, exist_ok=True)
    stem = re.sub(r"[^a-z0-9]+", "_", content.technology.lower()).strip("_")[:30] or "scope"
    filename = os.path.join(directory, f"{stem}.md")
    with open(filename, "w", encoding="utf-8") as f:
        f.write(render_scope_markdown(content))
    return filename
