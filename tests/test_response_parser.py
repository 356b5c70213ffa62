from __future__ import annotations

import pytest

from content_engine.errors import ResponseParseError
from content_engine.utils.response_parser import ResponseParser


@pytest.fixture
def parser() -> ResponseParser:
    return ResponseParser()


def test_loads_plain_json(parser):
    assert parser.loads('{"a": 1}') == {"a": 1}


def test_loads_strips_markdown_fences(parser):
    text = '```json\n[{"name": "Design"}]\n```'
    assert parser.loads(text) == [{"name": "Design"}]


def test_loads_extracts_json_from_prose(parser):
    text = 'Here are the services you asked for:\n[{"name": "Design"}, {"name": "Build"}]\nLet me know!'
    assert parser.loads(text) == [{"name": "Design"}, {"name": "Build"}]


def test_kind_restricts_opening_bracket(parser):
    text = 'Result: {"sources": [1, 2]} done'
    assert parser.loads(text, kind="object") == {"sources": [1, 2]}
    assert parser.loads(text, kind="array") == [1, 2]


def test_repairs_truncated_array(parser):
    text = '[{"name": "Design", "hours": 8}, {"name": "Build", "hours": 16}, {"name": "Te'
    result = parser.loads(text)
    assert result[:2] == [{"name": "Design", "hours": 8}, {"name": "Build", "hours": 16}]


def test_repairs_truncated_nested_object(parser):
    text = '{"sources": [{"title": "A", "url": "https://a.example"}, {"title": "B", "url": "https://b'
    result = parser.loads(text, kind="object")
    assert result["sources"][0] == {"title": "A", "url": "https://a.example"}


def test_fixes_doubled_url_quotes_and_trailing_commas(parser):
    text = '{"url": ""https://example.com/guide"", "tags": ["a", "b",],}'
    assert parser.loads(text) == {"url": "https://example.com/guide", "tags": ["a", "b"]}


def test_braces_inside_strings_are_ignored(parser):
    text = 'noise {"text": "use {braces} and [brackets]"} trailing'
    assert parser.loads(text) == {"text": "use {braces} and [brackets]"}


def test_loads_raises_when_nothing_recoverable(parser):
    with pytest.raises(ResponseParseError):
        parser.loads("I could not find anything useful.")
    with pytest.raises(ResponseParseError):
        parser.loads("")


def test_parse_returns_default_instead_of_raising(parser):
    assert parser.parse("no json here", default=[]) == []
    assert parser.parse(None, default={"x": 1}) == {"x": 1}


def test_unwrap_finds_nested_payload(parser):
    wrapped = {"research": {"sources": [], "confidence": 0.5}}
    assert parser.unwrap(wrapped, "sources") == {"sources": [], "confidence": 0.5}
    assert parser.unwrap({"sources": []}, "sources") == {"sources": []}
