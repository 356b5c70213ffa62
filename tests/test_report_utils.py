from __future__ import annotations

from datetime import datetime

from content_engine.models.research_models import ResearchSource
from content_engine.models.scope_models import Calculation, GeneratedContent, Question
from content_engine.utils.report_utils import render_scope_markdown, save_scope


def _content(services) -> GeneratedContent:
    return GeneratedContent(
        technology="Exchange Online",
        services=services,
        questions=[Question(id="q_1", text="How many mailboxes need to be migrated?", slug="mailbox_qty",
                            default_value=100)],
        calculations=[Calculation(id="calc_1", name="Total Project Hours", value=120, unit="hours",
                                  source="Calculated", formula="Sum of all service hours × quantities")],
        sources=[ResearchSource(title="Migration guide", url="https://example.com/guide")],
        total_hours=120,
    )


def test_render_scope_markdown(services):
    markdown = render_scope_markdown(_content(services), generated_at=datetime(2024, 5, 1, 9, 30))

    assert markdown.startswith("# Scope of Work: Exchange Online")
    assert "*Generated 2024-05-01 09:30*" in markdown
    assert "**Total Estimated Hours:** 120" in markdown
    assert "### Implementation and Deployment (Execution)" in markdown
    assert "| Mailbox Migration | 1 | 0.5 |" in markdown
    assert "- How many mailboxes need to be migrated? (default: 100)" in markdown
    assert "- [Migration guide](https://example.com/guide)" in markdown


def test_save_scope_writes_markdown(tmp_path, services):
    path = save_scope(_content(services), directory=str(tmp_path / "scopes"))

    assert path.endswith("exchange_online.md")
    with open(path, encoding="utf-8") as f:
        assert f.read().startswith("# Scope of Work: Exchange Online")
