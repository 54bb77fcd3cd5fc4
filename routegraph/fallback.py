"""
routegraph.fallback
===================
What a node does after its first reply could not be parsed.

    layer 1  (node)   parse the original reply
    layer 2  CLARIFIED  re-ask with the required JSON format, full parse again
    layer 3  EXTRACTED  ask for the bare value(s) only, use the trimmed reply
    default  DEFAULTED  fixed node-specific decision

The chain is fixed at three layers.  Malformed output never raises; a
collaborator error from the model call propagates to the executor.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, ValidationError

from routegraph.llm import LanguageModel, call_model
from routegraph.parsing import DecisionParser
from routegraph.prompts import get_prompt
from routegraph.state import WorkflowState, describe_state

log = logging.getLogger(__name__)


class FallbackKind(str, Enum):
    CHOICE = "choice"      # one value out of an allow-list
    NUMERIC = "numeric"    # every parser field as a float


class FallbackLayer(str, Enum):
    CLARIFIED = "clarified"
    EXTRACTED = "extracted"
    DEFAULTED = "defaulted"


@dataclass(frozen=True)
class FallbackOutcome:
    decision: Optional[Dict[str, Any]]
    layer: FallbackLayer
    failures: Tuple[str, ...] = field(default_factory=tuple)

    def describe_failures(self) -> str:
        return "; ".join(self.failures)


_STRIP_CHARS = " \t\r\n`'\".,;:"


def _clean(reply: str) -> str:
    return (reply or "").strip().strip(_STRIP_CHARS)


class FallbackPolicy:
    """
    `allowed` is required for CHOICE policies: canonical values, matched
    case-insensitively.  `model`, when given, must validate a layer-2 parse
    for it to count.
    """

    def __init__(
        self,
        llm: LanguageModel,
        parser: DecisionParser,
        kind: FallbackKind,
        default: Optional[Dict[str, Any]],
        allowed: Sequence[str] | None = None,
        model: Type[BaseModel] | None = None,
    ):
        if kind is FallbackKind.CHOICE and not allowed:
            raise ValueError("CHOICE fallback needs an allow-list")
        self.llm = llm
        self.parser = parser
        self.kind = kind
        self.default = default
        self.allowed = tuple(allowed or ())
        self.model = model
        self._canonical = {value.lower(): value for value in self.allowed}

    # ------------------------------------------------------------------
    def resolve(
        self,
        original_response: str,
        state: WorkflowState,
        format_hint: str,
    ) -> FallbackOutcome:
        failures = [f"original reply unparseable: {original_response[:120]!r}"]
        state_text = describe_state(state)

        # layer 2 · clarification
        log.warning("No usable '%s' decision; asking for clarification", self.parser.primary)
        clarified = call_model(self.llm, get_prompt("clarify", {
            "RESPONSE": original_response,
            "FORMAT": format_hint,
            "STATE": state_text,
        }))
        decision = self._parse(clarified)
        if decision is not None:
            return FallbackOutcome(decision, FallbackLayer.CLARIFIED, tuple(failures))
        failures.append(f"clarification unparseable: {clarified[:120]!r}")

        # layer 3 · bare value(s)
        log.warning("Clarification failed; asking for the bare '%s' value", self.parser.primary)
        if self.kind is FallbackKind.CHOICE:
            prompt = get_prompt("extract_choice", {
                "RESPONSE": clarified,
                "STATE": state_text,
                "OPTIONS": ", ".join(self.allowed),
            })
        else:
            prompt = get_prompt("extract_numbers", {
                "RESPONSE": clarified,
                "STATE": state_text,
                "FIELDS": ", ".join(self.parser.fields),
            })
        extracted = call_model(self.llm, prompt)
        decision = self._extract(extracted, original_response)
        if decision is not None:
            return FallbackOutcome(decision, FallbackLayer.EXTRACTED, tuple(failures))
        failures.append(f"extraction rejected: {_clean(extracted)[:60]!r}")

        log.warning("All fallback layers failed for '%s'; using default %s",
                    self.parser.primary, self.default)
        default = dict(self.default) if self.default is not None else None
        return FallbackOutcome(default, FallbackLayer.DEFAULTED, tuple(failures))

    # ------------------------------------------------------------------
    def _parse(self, reply: str) -> Optional[Dict[str, Any]]:
        if self.model is not None:
            validated, result = self.parser.parse_model(reply, self.model)
            return result.decision if validated is not None else None
        result = self.parser.parse(reply)
        return result.decision if result.ok else None

    def _extract(self, reply: str, original_response: str) -> Optional[Dict[str, Any]]:
        cleaned = _clean(reply)
        if not cleaned:
            return None

        if self.kind is FallbackKind.CHOICE:
            value = self._canonical.get(cleaned.lower())
            if value is None:
                value = self._canonical.get(_clean(cleaned.split()[0]).lower())
            if value is None:
                return None
            # salvage secondary fields (parameters etc.) from the first reply
            recovered = {**self.parser.extract_fields(original_response), self.parser.primary: value}
            if self.model is not None:
                try:
                    self.model.model_validate(recovered)
                except ValidationError:
                    recovered = {**self.parser.defaults, self.parser.primary: value}
            return recovered

        parts = [_clean(part) for part in cleaned.split(",")]
        names = list(self.parser.fields)
        if len(parts) != len(names):
            return None
        values: Dict[str, Any] = {}
        for name, part in zip(names, parts):
            try:
                values[name] = float(part)
            except ValueError:
                return None
        return values
