"""
routegraph.nodes.base
=====================
Common plumbing for graph nodes.

A node receives the current (frozen) state and returns a partial update.
It holds references to shared collaborators only, never per-run data.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Type

from pydantic import BaseModel

from routegraph.fallback import FallbackPolicy
from routegraph.llm import LanguageModel, call_model
from routegraph.parsing import DecisionParser
from routegraph.state import WorkflowState

log = logging.getLogger(__name__)

DECIDED = "decided"


@dataclass(frozen=True)
class Resolution:
    """A decision plus where it came from (`decided` or a fallback layer)."""

    decision: Optional[Dict[str, Any]]
    source: str = DECIDED
    failures: Tuple[str, ...] = ()

    @property
    def recovered(self) -> bool:
        return self.source != DECIDED


class Node:
    name: str = ""

    def apply(self, state: WorkflowState) -> Dict[str, Any]:
        raise NotImplementedError

    def __call__(self, state: WorkflowState) -> Dict[str, Any]:
        return self.apply(state)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class LLMNode(Node):
    """Node that asks the language model and parses a structured reply."""

    def __init__(self, llm: LanguageModel):
        self.llm = llm

    def ask(self, prompt: str) -> str:
        log.debug("[%s] prompt:\n%s", self.name, prompt)
        reply = call_model(self.llm, prompt)
        log.debug("[%s] raw reply: %r", self.name, reply)
        return reply

    def decide(
        self,
        reply: str,
        state: WorkflowState,
        parser: DecisionParser,
        policy: FallbackPolicy,
        format_hint: str,
        model: Type[BaseModel] | None = None,
    ) -> Resolution:
        if model is not None:
            validated, result = parser.parse_model(reply, model)
            ok = validated is not None
        else:
            result = parser.parse(reply)
            ok = result.ok
        if ok:
            return Resolution(result.decision)

        log.warning("[%s] reply not parseable, entering fallback", self.name)
        outcome = policy.resolve(reply, state, format_hint)
        return Resolution(outcome.decision, outcome.layer.value, outcome.failures)
