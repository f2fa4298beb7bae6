"""
Parsing of untrusted ranking-provider output.

LLM responses arrive as free text: sometimes bare "0,3,5", sometimes JSON
wrapped in markdown fences, sometimes truncated. Every parser here returns
either Parsed(value) holding validated data, or ParseFailure(reason, raw).
Nothing here raises on bad input; `unwrap()` turns a failure into
RankerParseError for callers that handle it as an exception.

Validation happens before any index is trusted: out-of-range indices and
unknown ids are dropped, duplicates collapse to the first occurrence.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar, Union

from ..errors import RankerParseError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Parsed(Generic[T]):
    value: T

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class ParseFailure:
    reason: str
    raw: str = ""

    def unwrap(self):
        raise RankerParseError(self.reason, raw=self.raw)


ParseResult = Union[Parsed[T], ParseFailure]


@dataclass(frozen=True)
class Pick:
    """One item chosen by pick_with_reasoning."""
    id: str
    reasoning: Optional[str] = None


# ── JSON extraction ──

def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r'^```(?:json)?\n?', '', cleaned)
        cleaned = re.sub(r'\n?```$', '', cleaned)
    return cleaned.strip()


def extract_json_string(text: str) -> str:
    """Extract the outermost JSON object or array using bracket counting."""
    brace_pos = text.find('{')
    bracket_pos = text.find('[')
    if brace_pos == -1 and bracket_pos == -1:
        return text
    if bracket_pos != -1 and (brace_pos == -1 or bracket_pos < brace_pos):
        open_ch, close_ch, start = '[', ']', bracket_pos
    else:
        open_ch, close_ch, start = '{', '}', brace_pos

    depth = 0
    in_string = False
    escape_next = False
    for i in range(start, len(text)):
        ch = text[i]
        if escape_next:
            escape_next = False
            continue
        if ch == '\\' and in_string:
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    # Never balanced: truncated response
    return repair_truncated_json(text[start:])


def repair_truncated_json(text: str) -> str:
    """Close an open string and any unbalanced brackets, innermost first."""
    stack: List[str] = []
    in_string = False
    escape_next = False
    for ch in text:
        if escape_next:
            escape_next = False
            continue
        if ch == '\\' and in_string:
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch in ('{', '['):
            stack.append(ch)
        elif ch == '}' and stack and stack[-1] == '{':
            stack.pop()
        elif ch == ']' and stack and stack[-1] == '[':
            stack.pop()

    if in_string:
        text += '"'
    text = text.rstrip().rstrip(',')
    close_map = {'{': '}', '[': ']'}
    for bracket in reversed(stack):
        text += close_map[bracket]
    return text


def parse_json_response(response: str) -> ParseResult[Any]:
    """Parse JSON from an LLM response, tolerating fences and control chars."""
    if not response or not response.strip():
        return ParseFailure("empty response")
    json_str = extract_json_string(strip_code_fences(response))

    for attempt in (
        lambda s: json.loads(s),
        # Ollama-style literal newlines/tabs inside string values
        lambda s: json.loads(s, strict=False),
        lambda s: json.loads(re.sub(r'[\x00-\x1f\x7f]', ' ', s)),
    ):
        try:
            return Parsed(attempt(json_str))
        except json.JSONDecodeError:
            continue
    logger.debug(f"Failed to parse JSON: {json_str[:200]}")
    return ParseFailure("invalid JSON", raw=json_str[:500])


def _list_from(data: Any, *keys: str) -> Optional[List[Any]]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in keys:
            if isinstance(data.get(key), list):
                return data[key]
    return None


# ── Typed parsers ──

def parse_index_list(response: str, candidate_count: int, top_n: int) -> ParseResult[List[int]]:
    """Indices into a candidate list, most relevant first.

    Accepts "0,3,5", a JSON array, or {"indices": [...]}.
    """
    if not response or not response.strip():
        return ParseFailure("empty response")

    raw_values: Optional[List[Any]] = None
    cleaned = strip_code_fences(response)
    if '[' in cleaned or '{' in cleaned:
        parsed = parse_json_response(cleaned)
        if isinstance(parsed, Parsed):
            raw_values = _list_from(parsed.value, "indices", "results", "items")
    if raw_values is None:
        raw_values = re.findall(r'-?\d+', cleaned)
    if not raw_values:
        return ParseFailure("no indices found", raw=response[:500])

    indices: List[int] = []
    seen = set()
    for value in raw_values:
        try:
            idx = int(value)
        except (TypeError, ValueError):
            continue
        if 0 <= idx < candidate_count and idx not in seen:
            seen.add(idx)
            indices.append(idx)
    if not indices:
        return ParseFailure("all indices out of range", raw=response[:500])
    return Parsed(indices[:top_n])


def parse_picks(response: str, pool_ids: Sequence[str], count: int) -> ParseResult[List[Pick]]:
    """[{"id": ..., "reasoning": ...}] restricted to ids present in the pool."""
    parsed = parse_json_response(response)
    if isinstance(parsed, ParseFailure):
        return parsed
    rows = _list_from(parsed.value, "picks", "events", "results", "items")
    if rows is None:
        return ParseFailure("expected a list of picks", raw=response[:500])

    allowed = {str(i) for i in pool_ids}
    picks: List[Pick] = []
    seen = set()
    for row in rows:
        if isinstance(row, dict):
            pick_id = row.get("id")
            reasoning = row.get("reasoning") or row.get("reason")
        else:
            pick_id, reasoning = row, None
        if pick_id is None:
            continue
        pick_id = str(pick_id)
        if pick_id in allowed and pick_id not in seen:
            seen.add(pick_id)
            picks.append(Pick(id=pick_id, reasoning=str(reasoning) if reasoning else None))
    if not picks:
        return ParseFailure("no known ids in response", raw=response[:500])
    return Parsed(picks[:count])


def parse_assignments(
    response: str, title_count: int, categories: Sequence[str],
) -> ParseResult[Dict[int, str]]:
    """{"assignments": [{"index": i, "category": c}]} → {index: category}.

    Category names are matched case-insensitively against the allowed set.
    """
    parsed = parse_json_response(response)
    if isinstance(parsed, ParseFailure):
        return parsed
    rows = _list_from(parsed.value, "assignments", "results")
    if rows is None:
        return ParseFailure("expected an assignments list", raw=response[:500])

    canonical = {c.lower(): c for c in categories}
    result: Dict[int, str] = {}
    for row in rows:
        if not isinstance(row, dict):
            continue
        try:
            idx = int(row.get("index"))
        except (TypeError, ValueError):
            continue
        category = canonical.get(str(row.get("category", "")).strip().lower())
        if category and 0 <= idx < title_count and idx not in result:
            result[idx] = category
    if not result:
        return ParseFailure("no valid assignments", raw=response[:500])
    return Parsed(result)
