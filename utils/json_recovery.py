"""
Structured recovery of recommendation records from raw generation text.

Generation backends frequently return JSON that is fenced in markdown,
wrapped in prose, double-closed or truncated mid-string. Recovery runs an
ordered list of strategies, each a pure ``text -> list[dict]`` function that
raises ``ValueError`` on failure, and accepts the first one that yields at
least one record-shaped object.
"""

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from models.schemas import Candidate, RecoveryResult
from utils.helpers import truncate_text

logger = logging.getLogger(__name__)

ACTION_KEYS = ("action", "title", "recommendation")
SOURCE_KEYS = ("citationSource", "citation_source", "source", "focusSources", "focus_sources", "domain")
WRAPPER_KEYS = ("recommendations", "items", "results", "data")

OPENERS = {"{": "}", "[": "]"}
CLOSERS = {"}": "{", "]": "["}

FENCE_RE = re.compile(r"```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```", re.DOTALL)
LEADING_FENCE_RE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?")
TRAILING_FENCE_RE = re.compile(r"\n?\s*```\s*$")
TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
DOUBLE_CLOSE_RE = re.compile(r"\}\s*\}\s*\]")
ELEMENT_START_RE = re.compile(r"\{\s*\"(?:%s)\"\s*:" % "|".join(ACTION_KEYS))

MAX_TRUNCATION_ATTEMPTS = 50


# ============================================================================
# Record shape helpers
# ============================================================================

def is_record(obj: Any) -> bool:
    """A record needs an action-like field and a source-like field."""
    if not isinstance(obj, dict):
        return False
    has_action = any(isinstance(obj.get(k), str) and obj.get(k).strip() for k in ACTION_KEYS)
    has_source = any(obj.get(k) not in (None, "", []) for k in SOURCE_KEYS)
    return has_action and has_source


def extract_records(data: Any) -> List[Dict[str, Any]]:
    """
    Pull record-shaped objects out of parsed JSON.

    Objects wrapping an array are unwrapped through a known key or the first
    list value; a single bare record is accepted as a one-element array.

    Raises:
        ValueError: If no record-shaped objects are present
    """
    if isinstance(data, dict):
        wrapped = None
        for key in WRAPPER_KEYS:
            if isinstance(data.get(key), list):
                wrapped = data[key]
                break
        if wrapped is None:
            for value in data.values():
                if isinstance(value, list):
                    wrapped = value
                    break
        if wrapped is None:
            if is_record(data):
                return [data]
            raise ValueError("Object does not wrap a record array")
        data = wrapped

    if not isinstance(data, list):
        raise ValueError(f"Expected array, got {type(data).__name__}")

    records = [item for item in data if is_record(item)]
    if not records:
        raise ValueError("No record-shaped elements in array")
    return records


def _loads(text: str) -> List[Dict[str, Any]]:
    return extract_records(json.loads(text, strict=False))


def unfence(text: str) -> str:
    """Remove markdown code fences, tolerating a missing closing fence."""
    match = FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    stripped = LEADING_FENCE_RE.sub("", text)
    stripped = TRAILING_FENCE_RE.sub("", stripped)
    return stripped.strip()


def _first_opener(text: str) -> int:
    positions = [p for p in (text.find("["), text.find("{")) if p != -1]
    if not positions:
        raise ValueError("No opening bracket found")
    return min(positions)


# ============================================================================
# Strategies
# ============================================================================

def parse_direct(text: str) -> List[Dict[str, Any]]:
    """Strategy 1: parse the trimmed text as-is."""
    return _loads(text.strip())


def parse_unfenced(text: str) -> List[Dict[str, Any]]:
    """Strategy 2: strip leading/trailing code fences, then parse."""
    if "```" not in text:
        raise ValueError("No code fence present")
    return _loads(unfence(text))


def parse_bracket_slice(text: str) -> List[Dict[str, Any]]:
    """Strategy 3: parse from the first bracket to the matching last bracket."""
    body = unfence(text)
    for opener, closer in (("[", "]"), ("{", "}")):
        start, end = body.find(opener), body.rfind(closer)
        if start != -1 and end > start:
            try:
                return _loads(body[start:end + 1])
            except ValueError:
                continue
    raise ValueError("No parseable bracketed region")


def parse_structural_repair(text: str) -> List[Dict[str, Any]]:
    """
    Strategy 4: drop trailing commas and collapse double-closed last objects.
    """
    body = unfence(text)
    start = _first_opener(body)
    end = max(body.rfind("]"), body.rfind("}"))
    if end <= start:
        raise ValueError("No closing bracket found")
    region = body[start:end + 1]

    without_commas = TRAILING_COMMA_RE.sub(r"\1", region)
    try:
        return _loads(without_commas)
    except ValueError:
        pass

    collapsed = DOUBLE_CLOSE_RE.sub("}]", without_commas)
    if collapsed == without_commas:
        raise ValueError("Structural repair made no further changes")
    return _loads(collapsed)


def _scan(text: str) -> Tuple[str, List[str], bool, List[Tuple[int, List[str]]]]:
    """
    Walk text tracking string/escape state and the bracket stack.

    Unmatched closing characters are dropped. Returns the cleaned text, the
    open stack at the end, whether a string is still open, and the
    positions (in cleaned text) of commas outside strings with the stack at
    that point.
    """
    out = []
    stack: List[str] = []
    commas: List[Tuple[int, List[str]]] = []
    in_string = False
    escape_next = False

    for char in text:
        if in_string:
            if escape_next:
                escape_next = False
            elif char == "\\":
                escape_next = True
            elif char == '"':
                in_string = False
            out.append(char)
            continue

        if char == '"':
            in_string = True
        elif char in OPENERS:
            stack.append(char)
        elif char in CLOSERS:
            if not stack or stack[-1] != CLOSERS[char]:
                continue
            stack.pop()
            if not stack:
                out.append(char)
                break
        elif char == ",":
            commas.append((len(out), list(stack)))
        out.append(char)

    return "".join(out), stack, in_string, commas


def _close(text: str, stack: List[str]) -> str:
    text = text.rstrip()
    while text.endswith(","):
        text = text[:-1].rstrip()
    if text.endswith(":"):
        text += " null"
    return text + "".join(OPENERS[opener] for opener in reversed(stack))


def parse_balanced(text: str) -> List[Dict[str, Any]]:
    """
    Strategy 5: close an open string and append missing closers.

    If the naive closure does not parse, cut back to each earlier
    top-level comma in turn and close from there.
    """
    body = unfence(text)
    body = body[_first_opener(body):]
    cleaned, stack, in_string, commas = _scan(body)

    if in_string:
        if cleaned.endswith("\\"):
            cleaned = cleaned[:-1]
        cleaned += '"'

    candidates = [_close(cleaned, stack)]
    for position, comma_stack in reversed(commas[-MAX_TRUNCATION_ATTEMPTS:]):
        candidates.append(_close(cleaned[:position], comma_stack))

    last_error: Optional[Exception] = None
    for attempt in candidates:
        try:
            return _loads(TRAILING_COMMA_RE.sub(r"\1", attempt))
        except ValueError as e:
            last_error = e
    raise ValueError(f"Bracket balancing failed: {last_error}")


def _escape_remainder(fragment: str) -> str:
    return fragment.replace("\r", "\\r").replace("\n", "\\n").replace("\t", "\\t")


def _salvage_truncated(element: str) -> Optional[Dict[str, Any]]:
    """Close an unterminated element: escape the tail, close the string, close the object."""
    cleaned, stack, in_string, commas = _scan(element)

    if in_string:
        quote_at = cleaned.rfind('"')
        tail = cleaned[quote_at + 1:]
        if tail.endswith("\\"):
            tail = tail[:-1]
        cleaned = cleaned[:quote_at + 1] + _escape_remainder(tail) + '"'

    attempts = [_close(cleaned, stack)]
    for position, comma_stack in reversed(commas[-MAX_TRUNCATION_ATTEMPTS:]):
        attempts.append(_close(cleaned[:position], comma_stack))

    for attempt in attempts:
        try:
            parsed = json.loads(TRAILING_COMMA_RE.sub(r"\1", attempt), strict=False)
        except ValueError:
            continue
        if is_record(parsed):
            return parsed
    return None


def parse_salvage(text: str) -> List[Dict[str, Any]]:
    """
    Strategy 6: recover array elements one by one.

    Each element starts at an object whose first key is action-like; its
    closing brace is found by scanning char-by-char with string and escape
    tracking. Truncated elements are closed; elements that still fail to
    parse are dropped.
    """
    body = unfence(text)
    records = []
    position = 0

    while True:
        match = ELEMENT_START_RE.search(body, position)
        if not match:
            break

        start = match.start()
        depth = 0
        in_string = False
        escape_next = False
        end = None

        for index in range(start, len(body)):
            char = body[index]
            if in_string:
                if escape_next:
                    escape_next = False
                elif char == "\\":
                    escape_next = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char in "{[":
                depth += 1
            elif char in "}]":
                depth -= 1
                if depth == 0:
                    end = index
                    break

        if end is not None:
            element = body[start:end + 1]
            try:
                parsed = json.loads(TRAILING_COMMA_RE.sub(r"\1", element), strict=False)
                if is_record(parsed):
                    records.append(parsed)
                else:
                    logger.debug(f"Salvaged element is not record-shaped: {truncate_text(element, 80)}")
            except ValueError as e:
                logger.debug(f"Dropping unparseable element: {e}")
            position = end + 1
        else:
            salvaged = _salvage_truncated(body[start:])
            if salvaged is not None:
                records.append(salvaged)
                logger.info("🩹 Salvaged truncated trailing element")
            else:
                logger.debug("Dropping truncated trailing element")
            break

    if not records:
        raise ValueError("No elements could be salvaged")
    return records


STRATEGIES: List[Tuple[str, Callable[[str], List[Dict[str, Any]]]]] = [
    ("direct", parse_direct),
    ("strip_fences", parse_unfenced),
    ("bracket_slice", parse_bracket_slice),
    ("structural_repair", parse_structural_repair),
    ("balance_brackets", parse_balanced),
    ("salvage_elements", parse_salvage),
]


def recover_records(text: Optional[str]) -> RecoveryResult:
    """
    Recover record-shaped objects from raw generation text.

    Returns:
        RecoveryResult with the records and the name of the strategy that
        produced them; empty records if every strategy failed
    """
    if not text or not text.strip():
        return RecoveryResult()

    for name, strategy in STRATEGIES:
        try:
            records = strategy(text)
        except ValueError as e:
            logger.debug(f"Recovery strategy '{name}' failed: {e}")
            continue
        if records:
            if name != "direct":
                logger.info(f"🔧 Recovered {len(records)} records using '{name}'")
            return RecoveryResult(records=records, strategy=name)

    logger.warning(f"⚠️  No recoverable records in output: {truncate_text(text.strip(), 200)}")
    return RecoveryResult()


# ============================================================================
# Record -> Candidate coercion
# ============================================================================

CANDIDATE_SOURCES = ("llm", "cold_start_template", "domain_audit")

FOCUS_ALIASES = {
    "visibility": "visibility",
    "visibility index": "visibility",
    "soa": "share_of_voice",
    "sov": "share_of_voice",
    "share of voice": "share_of_voice",
    "share-of-voice": "share_of_voice",
    "share_of_voice": "share_of_voice",
    "share of answers": "share_of_voice",
    "sentiment": "sentiment",
}


def _first(record: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(str(v).strip() for v in value if str(v).strip())
    return str(value).strip()


def _level(value: Any, allowed: Tuple[str, ...], default: str = "Medium") -> str:
    text = _text(value).capitalize()
    return text if text in allowed else default


def _confidence(value: Any, default: int = 70) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = re.search(r"-?\d+(?:\.\d+)?", _text(value))
        if not match:
            return default
        number = float(match.group())
    if 0 < number < 1:
        number *= 100
    return int(max(0, min(100, round(number))))


def coerce_focus_area(value: Any) -> str:
    return FOCUS_ALIASES.get(_text(value).lower(), "visibility")


def coerce_candidate(record: Dict[str, Any], source: str = "llm", default_confidence: int = 70) -> Candidate:
    """Map one recovered record (camelCase or snake_case) onto a Candidate."""
    raw_source = _text(record.get("source"))
    citation = _first(record, "citationSource", "citation_source", "domain")
    if citation is None and raw_source and raw_source not in CANDIDATE_SOURCES:
        citation = raw_source
    if citation is None:
        citation = _first(record, "focusSources", "focus_sources")
        if isinstance(citation, list):
            citation = citation[0] if citation else None
        elif isinstance(citation, str):
            citation = citation.split(",")[0]

    how_to_fix = _first(record, "howToFix", "how_to_fix") or []
    if isinstance(how_to_fix, str):
        how_to_fix = [how_to_fix]

    return Candidate(
        action=_text(_first(record, *ACTION_KEYS)),
        citation_source=_text(citation),
        focus_area=coerce_focus_area(_first(record, "focusArea", "focus_area", "focus")),
        priority=_level(record.get("priority"), ("High", "Medium", "Low")),
        effort=_level(record.get("effort"), ("Low", "Medium", "High")),
        kpi=_text(_first(record, "kpi", "kpiName", "kpi_name")) or "Visibility Index",
        reason=_text(_first(record, "reason", "rationale")),
        explanation=_text(record.get("explanation")),
        expected_boost=_text(_first(record, "expectedBoost", "expected_boost", "expectedImpact")),
        timeline=_text(record.get("timeline")) or "2-4 weeks",
        confidence=_confidence(record.get("confidence"), default_confidence),
        focus_sources=_text(_first(record, "focusSources", "focus_sources")) or None,
        content_focus=_text(_first(record, "contentFocus", "content_focus")) or None,
        content=_text(_first(record, "content", "body")) or None,
        how_to_fix=[_text(step) for step in how_to_fix if _text(step)],
        source=raw_source if raw_source in CANDIDATE_SOURCES else source,
    )


def coerce_candidates(
    records: List[Dict[str, Any]],
    source: str = "llm",
    default_confidence: int = 70
) -> List[Candidate]:
    """Coerce recovered records into Candidates, preserving order."""
    candidates = []
    for record in records:
        try:
            candidates.append(coerce_candidate(record, source, default_confidence))
        except ValueError as e:
            logger.warning(f"Skipping record that could not be coerced: {e}")
    return candidates
