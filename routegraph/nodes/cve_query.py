from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from routegraph.fallback import FallbackKind, FallbackPolicy
from routegraph.llm import LanguageModel
from routegraph.nodes.base import LLMNode
from routegraph.parsing import CVE_PARSER
from routegraph.prompts import CVE_FORMAT, get_prompt
from routegraph.schema import CVEDecision, CVEParameters, NodeName
from routegraph.state import WorkflowState
from routegraph.tools.cve_tools import CVETools

log = logging.getLogger(__name__)

BY_YEAR_AND_SCORE = "queryCVEsByYearAndScore"
BY_YEAR = "queryCVEsByYear"
BY_SCORE = "queryCVEsByScore"
BY_ID = "getCVEById"
STATISTICS = "getCVEStatistics"
CVE_METHODS = (BY_YEAR_AND_SCORE, BY_YEAR, BY_SCORE, BY_ID, STATISTICS)
_CANONICAL = {m.lower(): m for m in CVE_METHODS}


class CVEQueryNode(LLMNode):
    """Picks one CVE query with the model and stores its formatted result."""

    name = NodeName.CVE_QUERY.value

    def __init__(self, llm: LanguageModel, tools: CVETools):
        super().__init__(llm)
        self.tools = tools
        self.policy = FallbackPolicy(llm, CVE_PARSER, FallbackKind.CHOICE, default=None,
                                     allowed=CVE_METHODS, model=CVEDecision)

    def apply(self, state: WorkflowState) -> Dict[str, Any]:
        log.info("[cve_query] query: %s", state.query)
        reply = self.ask(get_prompt("cve_query", {"QUERY": state.query}))
        resolution = self.decide(reply, state, CVE_PARSER, self.policy, CVE_FORMAT, CVEDecision)

        update: Dict[str, Any] = {"current_step": self.name}
        if resolution.decision is None:
            update["error"] = "cve_query found no usable query decision: " + "; ".join(resolution.failures)
            return update

        decision = CVEDecision.model_validate(resolution.decision)
        method = _CANONICAL.get(decision.method.strip().lower())
        if method is None:
            log.warning("[cve_query] unknown method %r", decision.method)
            update["error"] = f"cve_query: unknown method '{decision.method}'"
            return update

        log.info("[cve_query] %s %s – %s", method,
                 decision.parameters.model_dump(exclude_none=True), decision.reasoning)
        result = self._run(method, decision.parameters)
        if result is None:
            update["error"] = f"cve_query: {method} is missing required parameters"
        else:
            update["cve_query_results"] = result
        return update

    def _run(self, method: str, p: CVEParameters) -> Optional[str]:
        if method == STATISTICS:
            return self.tools.statistics()
        if method == BY_ID:
            return self.tools.by_id(p.cve_id) if p.cve_id else None
        if method == BY_YEAR:
            return self.tools.by_year(p.year) if p.year is not None else None
        if method == BY_SCORE:
            return self.tools.by_score(p.min_base_score) if p.min_base_score is not None else None
        if p.year is None or p.min_base_score is None:
            return None
        return self.tools.by_year_and_score(p.year, p.min_base_score)
