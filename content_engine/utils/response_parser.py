"""Utilities for recovering JSON from LLM responses"""

import json
import logging
import re
from typing import Any, List, Optional, Tuple

from ..errors import ResponseParseError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n?")
_DOUBLED_URL_OPEN_RE = re.compile(r'""\s*(https?://[^"\s]+)"')
_DOUBLED_URL_CLOSE_RE = re.compile(r'"(https?://[^"\s]+)""')
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_DANGLING_KEY_RE = re.compile(r',?\s*"(?:[^"\\]|\\.)*"\s*:\s*$')

_CLOSERS = {"{": "}", "[": "]"}


class ResponseParser:
    """Utility class for parsing LLM responses.

    LLM output is treated as untrusted text: it may be wrapped in markdown
    fences, surrounded by prose, truncated mid-structure, or contain
    malformed URL quoting. ``loads`` raises when nothing can be recovered,
    ``parse`` never raises.
    """

    def strip_fences(self, text: str) -> str:
        """Remove markdown code fences and surrounding whitespace"""
        if not text:
            return ""
        return _FENCE_RE.sub("", text).replace("```", "").strip()

    def loads(self, text: str, kind: Optional[str] = None) -> Any:
        """Parse JSON out of an LLM response, repairing it where possible.

        Raises:
            ResponseParseError: If no parseable JSON could be recovered
        """
        cleaned = self.strip_fences(text or "")
        if not cleaned:
            raise ResponseParseError("Empty response")

        if kind is None:
            try:
                return json.loads(cleaned)
            except json.JSONDecodeError:
                pass

        repair_attempted = False
        for start in self._start_positions(cleaned, kind):
            end, _, _ = self._scan(cleaned, start)
            if end is not None:
                candidate = cleaned[start:end + 1]
                value = self._try_loads(candidate)
                if value is not None:
                    return value
                continue
            if repair_attempted:
                continue

            # No balanced close: the response was cut off
            repair_attempted = True
            value = self._repair_truncated(cleaned[start:])
            if value is not None:
                logger.warning("Recovered truncated JSON response")
                return value

        raise ResponseParseError("No valid JSON found in response")

    def parse(self, text: str, default: Any = None, kind: Optional[str] = None) -> Any:
        """Best-effort variant of ``loads`` that returns ``default`` instead of raising"""
        try:
            return self.loads(text, kind=kind)
        except ResponseParseError as e:
            logger.warning(f"Could not parse JSON response: {e}")
            return default

    def unwrap(self, obj: Any, key: str) -> Any:
        """Return the nested object holding ``key`` when the payload is wrapped one level deep"""
        if not isinstance(obj, dict) or key in obj:
            return obj
        for value in obj.values():
            if isinstance(value, dict) and key in value:
                return value
        return obj

    def fix_common_issues(self, text: str) -> str:
        """Repair doubled URL quotes and trailing commas"""
        text = _DOUBLED_URL_OPEN_RE.sub(r'"\1"', text)
        text = _DOUBLED_URL_CLOSE_RE.sub(r'"\1"', text)
        return _TRAILING_COMMA_RE.sub(r"\1", text)

    def _try_loads(self, candidate: str) -> Any:
        for attempt in (candidate, self.fix_common_issues(candidate)):
            try:
                return json.loads(attempt)
            except json.JSONDecodeError:
                continue
        return None

    def _start_positions(self, text: str, kind: Optional[str]) -> List[int]:
        if kind == "object":
            openers = "{"
        elif kind == "array":
            openers = "["
        else:
            openers = "{["
        return [i for i, ch in enumerate(text) if ch in openers]

    def _scan(self, text: str, start: int) -> Tuple[Optional[int], List[str], List[int]]:
        """Walk from ``start`` tracking brackets outside of strings.

        Returns the index of the matching close (or None), the stack of
        still-open brackets, and the positions of commas at any depth.
        """
        stack: List[str] = []
        commas: List[int] = []
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch in _CLOSERS:
                stack.append(ch)
            elif ch in "}]":
                if not stack or _CLOSERS[stack[-1]] != ch:
                    return None, stack, commas
                stack.pop()
                if not stack:
                    return i, stack, commas
            elif ch == ",":
                commas.append(i)
        return None, stack, commas

    def _close_fragment(self, fragment: str) -> str:
        stack: List[str] = []
        in_string = False
        escaped = False
        for ch in fragment:
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch in _CLOSERS:
                stack.append(ch)
            elif ch in "}]" and stack:
                stack.pop()

        closed = fragment
        if in_string:
            closed += '"'
        closed = closed.rstrip()
        closed = _DANGLING_KEY_RE.sub("", closed).rstrip()
        if closed.endswith(","):
            closed = closed[:-1]
        return closed + "".join(_CLOSERS[ch] for ch in reversed(stack))

    def _repair_truncated(self, fragment: str, max_attempts: int = 50) -> Any:
        candidate = fragment
        for _ in range(max_attempts):
            value = self._try_loads(self._close_fragment(candidate))
            if value is not None:
                return value
            _, _, commas = self._scan(candidate, 0)
            if not commas:
                return None
            # Drop the last, incomplete element and try again
            candidate = candidate[:commas[-1]]
        return None
