"""
routegraph.parsing
==================
Pull a structured decision out of free-form model text.

Models wrap JSON in markdown fences, stop mid-object, or answer in prose.
`DecisionParser.parse` tries four layers in order and stops at the first hit:

    1 FENCED     strip one ``` fence (or bare backticks), strict json
    2 BALANCED   first balanced {...} inside surrounding prose
    3 REPAIRED   close an unterminated string / open brackets and braces
    4 EXTRACTED  per-field regex search, caller defaults for what is missing

Layers 1-3 need a JSON object that carries the primary field (value may be
null).  Layer 4 needs the primary field with a non-null value.  Anything
else is `ok=False` and the caller falls back (see routegraph.fallback).
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# field kinds understood by the extraction layer
TOKEN, NUMBER, TEXT, OBJECT = "token", "number", "text", "object"


class ParseLayer(IntEnum):
    FENCED = 1
    BALANCED = 2
    REPAIRED = 3
    EXTRACTED = 4


@dataclass(frozen=True)
class ParseResult:
    decision: Optional[Dict[str, Any]]
    ok: bool
    layer: Optional[ParseLayer] = None


_FAILED = ParseResult(decision=None, ok=False)

# ```json / ```python / bare ``` – the tag only counts when followed by
# whitespace or the start of the payload, so "```nextNode: x" keeps its text
_FENCE_OPEN = re.compile(r"^```(?:[\w+-]+(?=[\s{\[]))?")


# ─────────────────────────── layer helpers ─────────────────────────────
def strip_fences(raw: str | None) -> str:
    text = (raw or "").strip()
    if text.startswith("```"):
        text = _FENCE_OPEN.sub("", text, count=1)
    elif text.startswith("`"):
        text = text[1:]
    text = text.rstrip()
    if text.endswith("```"):
        text = text[:-3]
    elif text.endswith("`"):
        text = text[:-1]
    return text.strip()


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        obj = json.loads(text)
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def first_balanced_object(text: str) -> Optional[str]:
    """Return the first `{...}` whose braces balance, ignoring string contents."""
    start = text.find("{")
    if start == -1:
        return None
    depth, in_str, escaped = 0, False, False
    for i in range(start, len(text)):
        ch = text[i]
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


_CLOSER = {"{": "}", "[": "]"}


def repair_json(text: str) -> Optional[str]:
    """
    Append the minimum closing characters needed to balance a truncated
    object.  Text after the point where the outer object closes is dropped.
    """
    start = text.find("{")
    if start == -1:
        return None
    stack: list[str] = []
    in_str, escaped = False, False
    end = len(text)
    for i in range(start, len(text)):
        ch = text[i]
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch in _CLOSER:
            stack.append(ch)
        elif ch in ("}", "]"):
            if stack and _CLOSER[stack[-1]] == ch:
                stack.pop()
            if not stack:
                end = i + 1
                break

    fixed = text[start:end]
    if in_str:
        if escaped:
            fixed = fixed[:-1]
        fixed += '"'
    if stack:
        fixed = fixed.rstrip()
        if fixed.endswith(","):
            fixed = fixed[:-1]
        elif fixed.endswith(":"):
            fixed += " null"
        fixed += "".join(_CLOSER[opener] for opener in reversed(stack))
    return fixed


# ─────────────────────────── extraction patterns ───────────────────────
_NUM = r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?"


def _patterns(field: str, kind: str) -> Tuple[re.Pattern, ...]:
    name = re.escape(field)
    quoted = re.compile(rf'"{name}"\s*:\s*"((?:[^"\\]|\\.)*)"', re.I)
    scalar = re.compile(rf'"{name}"\s*:\s*({_NUM}|null|true|false)\b', re.I)
    lead = rf"\b{name}\b[\"']?\s*(?:[:=]|->|\bis\b|\bshould be\b)?\s*[\"'`]?"
    if kind == TEXT:
        return (quoted,)
    if kind == NUMBER:
        return (scalar, quoted, re.compile(lead + rf"({_NUM}|null)\b", re.I))
    return (quoted, scalar, re.compile(lead + r"([A-Za-z_][\w\-]*)", re.I))


def _convert(value: str, kind: str) -> Any:
    if value.lower() == "null":
        return None
    if kind == NUMBER:
        try:
            return float(value)
        except ValueError:
            return None
    try:
        return json.loads(f'"{value}"')
    except ValueError:
        return value


# ─────────────────────────── parser ────────────────────────────────────
class DecisionParser:
    """
    `fields` maps each expected key to its kind (token/number/text/object);
    `primary` names the key without which no decision is usable.
    """

    def __init__(
        self,
        fields: Mapping[str, str],
        primary: str,
        defaults: Mapping[str, Any] | None = None,
    ):
        if primary not in fields:
            raise ValueError(f"primary field '{primary}' missing from fields")
        self.fields = dict(fields)
        self.primary = primary
        self.defaults = dict(defaults or {})

    # -- public -----------------------------------------------------------
    def parse(self, raw: str | None) -> ParseResult:
        text = strip_fences(raw)

        obj = _loads_object(text)
        if self._usable(obj):
            return self._hit(obj, ParseLayer.FENCED)

        if not text.startswith("{"):
            candidate = first_balanced_object(text)
            obj = _loads_object(candidate) if candidate else None
            if self._usable(obj):
                return self._hit(obj, ParseLayer.BALANCED)

        repaired = repair_json(text)
        obj = _loads_object(repaired) if repaired else None
        if self._usable(obj):
            return self._hit(obj, ParseLayer.REPAIRED)

        found = self.extract_fields(raw or "")
        if found.get(self.primary) is not None:
            return self._hit(found, ParseLayer.EXTRACTED)

        log.debug("No usable '%s' in model output: %.200r", self.primary, raw)
        return _FAILED

    def parse_model(self, raw: str | None, model: Type[M]) -> Tuple[Optional[M], ParseResult]:
        """`parse`, then validate into `model`; a validation error counts as a miss."""
        result = self.parse(raw)
        if not result.ok:
            return None, result
        try:
            return model.model_validate(result.decision), result
        except ValidationError as exc:
            log.debug("Decision failed validation (%s): %s", model.__name__, exc)
            return None, _FAILED

    def extract_fields(self, raw: str) -> Dict[str, Any]:
        found: Dict[str, Any] = {}
        for field, kind in self.fields.items():
            if kind == OBJECT:
                value = self._extract_object(raw, field)
                if value is not None:
                    found[field] = value
                continue
            for pattern in _patterns(field, kind):
                match = pattern.search(raw)
                if match:
                    found[field] = _convert(match.group(1), kind)
                    break
        return {**self.defaults, **found}

    # -- internals --------------------------------------------------------
    def _usable(self, obj: Optional[Dict[str, Any]]) -> bool:
        return obj is not None and self.primary in obj

    def _hit(self, obj: Dict[str, Any], layer: ParseLayer) -> ParseResult:
        log.debug("Parsed '%s' decision at layer %s", self.primary, layer.name)
        return ParseResult(decision={**self.defaults, **obj}, ok=True, layer=layer)

    @staticmethod
    def _extract_object(raw: str, field: str) -> Optional[Dict[str, Any]]:
        match = re.search(rf'"{re.escape(field)}"\s*:\s*', raw, re.I)
        if not match:
            return None
        candidate = first_balanced_object(raw[match.end():])
        return _loads_object(candidate) if candidate else None


# ─────────────────────────── shared parsers ────────────────────────────
ROUTE_PARSER = DecisionParser(
    {"nextNode": TOKEN, "reasoning": TEXT},
    primary="nextNode",
    defaults={"reasoning": "No reasoning provided"},
)
MATH_PARSER = DecisionParser({"sum": NUMBER, "average": NUMBER}, primary="sum")
CONVERSION_PARSER = DecisionParser({"fahrenheit": NUMBER}, primary="fahrenheit")
AIT_PARSER = DecisionParser(
    {"method": TOKEN, "parameter": TEXT, "reasoning": TEXT},
    primary="method",
    defaults={"parameter": "", "reasoning": "No reasoning provided"},
)
CVE_PARSER = DecisionParser(
    {"method": TOKEN, "parameters": OBJECT, "reasoning": TEXT},
    primary="method",
    defaults={"parameters": {}, "reasoning": "No reasoning provided"},
)
