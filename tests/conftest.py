"""
Shared fixtures
───────────────
• FakeLLM          – scripted stand-in for the language model (no network).
• In-memory repos  – AIT documents and CVE rows behind the lookup interface.
• `wired`          – injects all three into routegraph.workflow and resets
                     the cached graphs afterwards.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import pytest

import routegraph.workflow as wf
from routegraph.config import Settings

Reply = Union[str, Exception]


# ─────────────────────────────────────────────────────────────────────────────
# 1. Fake language model
# ─────────────────────────────────────────────────────────────────────────────
class FakeLLM:
    """
    Either a queue of replies (an Exception in the queue is raised) or a
    callable `prompt -> reply`.  Every prompt is recorded.
    """

    def __init__(self, replies: Union[Sequence[Reply], Callable[[str], Reply]] = ()):
        self._fn = replies if callable(replies) else None
        self._queue: List[Reply] = [] if callable(replies) else list(replies)
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        reply = self._fn(prompt) if self._fn else self._next()
        if isinstance(reply, Exception):
            raise reply
        return reply

    def _next(self) -> Reply:
        if not self._queue:
            raise AssertionError("FakeLLM ran out of scripted replies")
        return self._queue.pop(0)


def calculation_llm(prompt: str) -> str:
    """Well-behaved model for 'average of 10, 20, 30 in Fahrenheit'."""
    if "planning assistant" in prompt:
        return "1. Calculate sum and average\n2. Convert average to Fahrenheit\n3. Summarize"
    if "workflow router" in prompt:
        if "sum: null" in prompt:
            return '```json\n{"nextNode": "math_executor", "reasoning": "sum is null"}\n```'
        if "fahrenheit: null" in prompt:
            return '{"nextNode": "temperature_converter", "reasoning": "average known, fahrenheit null"}'
        return '{"nextNode": "summarizer", "reasoning": "all done"}'
    if "mathematical calculation" in prompt:
        return '{"sum": 60, "average": 20}'
    if "temperature conversion" in prompt:
        return '{"fahrenheit": 68.0}'
    if "summarization assistant" in prompt:
        return "The average is 20°C, which is 68°F."
    raise AssertionError(f"unexpected prompt: {prompt[:80]}")


# ─────────────────────────────────────────────────────────────────────────────
# 2. In-memory repositories
# ─────────────────────────────────────────────────────────────────────────────
def ait_doc(ait: str, languages=(), frameworks=(), databases=()) -> Dict[str, Any]:
    return {
        "ait": ait,
        "languagesFrameworks": {
            "languages": [{"name": n, "version": v} for n, v in languages],
            "frameworks": [{"name": n, "version": v} for n, v in frameworks],
        },
        "infrastructure": {
            "databases": [{"name": n, "version": v} for n, v in databases],
            "middlewares": [],
            "operatingSystems": [],
        },
        "libraries": [],
    }


AIT_DOCS = [
    ait_doc("74563", languages=[("Java", "17")], frameworks=[("Spring Boot", "3.1")],
            databases=[("MongoDB", "6.0")]),
    ait_doc("74564", languages=[("Python", "3.11")], databases=[("PostgreSQL", "15")]),
    ait_doc("74565", languages=[("Java", "11")], databases=[("Oracle", "19c")]),
]


def _names(doc: Dict[str, Any], field: str) -> List[str]:
    lf, infra = doc.get("languagesFrameworks", {}), doc.get("infrastructure", {})
    source = {
        "languages": lf.get("languages"), "frameworks": lf.get("frameworks"),
        "databases": infra.get("databases"), "middlewares": infra.get("middlewares"),
        "operating_systems": infra.get("operatingSystems"), "libraries": doc.get("libraries"),
    }[field]
    return [item["name"].lower() for item in source or []]


class InMemoryAITRepo:
    FIELDS = ("languages", "frameworks", "databases", "middlewares", "operating_systems", "libraries")

    def __init__(self, docs: Sequence[Dict[str, Any]] = AIT_DOCS):
        self.docs = list(docs)

    def find_by_id(self, ait_id: str) -> Optional[Dict[str, Any]]:
        return next((d for d in self.docs if d["ait"] == ait_id), None)

    def find_by_ids(self, ait_ids: Sequence[str]) -> List[Dict[str, Any]]:
        return [d for i in ait_ids for d in self.docs if d["ait"] == i]

    def find_by_field(self, field: str, value: str) -> List[Dict[str, Any]]:
        return [d for d in self.docs if any(value.lower() in n for n in _names(d, field))]

    def find_by_component(self, component: str) -> List[Dict[str, Any]]:
        return [d for d in self.docs
                if any(component.lower() in n for f in self.FIELDS for n in _names(d, f))]

    def find_by_criteria(self, criteria):
        ids = {d["ait"] for f, v in criteria.items() for d in self.find_by_field(f, v)}
        return [d for d in self.docs if d["ait"] in ids]


CVE_ROWS = [
    {"cve_id": "CVE-2021-44228", "year": 2021, "published": "2021-12-10", "base_score": 10.0,
     "description": "Apache Log4j2 JNDI features do not protect against attacker controlled LDAP endpoints"},
    {"cve_id": "CVE-2021-0001", "year": 2021, "published": "2021-01-05", "base_score": 5.5,
     "description": "Medium issue"},
    {"cve_id": "CVE-2022-0002", "year": 2022, "published": "2022-03-01", "base_score": 7.5,
     "description": "High issue"},
    {"cve_id": "CVE-2022-0003", "year": 2022, "published": "2022-04-01", "base_score": None,
     "description": "Unscored"},
]


class InMemoryCVERepo:
    def __init__(self, rows: Sequence[Dict[str, Any]] = CVE_ROWS):
        self.rows = list(rows)

    def _sorted(self, rows):
        return sorted(rows, key=lambda r: r["base_score"] or 0.0, reverse=True)

    def by_year(self, year):
        return self._sorted(r for r in self.rows if r["year"] == year)

    def by_score(self, min_score):
        return self._sorted(r for r in self.rows if (r["base_score"] or 0) >= min_score)

    def by_year_and_score(self, year, min_score):
        return [r for r in self.by_score(min_score) if r["year"] == year]

    def by_id(self, cve_id):
        return next((r for r in self.rows if r["cve_id"] == cve_id.upper()), None)

    def scores(self):
        return [r["base_score"] for r in self.rows]


# ─────────────────────────────────────────────────────────────────────────────
# 3. Fixtures
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture
def settings():
    return Settings(max_steps=25, run_timeout_s=30.0)


@pytest.fixture
def ait_repo():
    return InMemoryAITRepo()


@pytest.fixture
def cve_repo():
    return InMemoryCVERepo()


@pytest.fixture
def wired(settings, ait_repo, cve_repo):
    """Call with a FakeLLM (or reply script) to wire routegraph.workflow."""
    def _wire(llm, **overrides):
        if not isinstance(llm, FakeLLM):
            llm = FakeLLM(llm)
        wf.configure(
            llm=llm,
            ait_repo=overrides.get("ait_repo", ait_repo),
            cve_repo=overrides.get("cve_repo", cve_repo),
            settings=overrides.get("settings", settings),
        )
        return llm
    yield _wire
    wf.configure()
