"""
routegraph.tools.ait_tools
Turn AIT repository results into the strings the AIT nodes store.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Protocol, Sequence

from routegraph.errors import LookupFailure, collaborator_errors
from routegraph.templates import SEARCHABLE_FIELDS, MarkdownRenderer, ait_id

log = logging.getLogger(__name__)


class AITLookup(Protocol):
    def find_by_id(self, ait_id: str) -> Dict[str, Any] | None: ...
    def find_by_ids(self, ait_ids: Sequence[str]) -> List[Dict[str, Any]]: ...
    def find_by_component(self, component: str) -> List[Dict[str, Any]]: ...
    def find_by_field(self, field: str, value: str) -> List[Dict[str, Any]]: ...
    def find_by_criteria(self, criteria: Mapping[str, str]) -> List[Dict[str, Any]]: ...


def split_ids(ait_ids: str | Sequence[str]) -> List[str]:
    if isinstance(ait_ids, str):
        ait_ids = ait_ids.split(",")
    return [i.strip() for i in ait_ids if i and i.strip()]


def parse_criteria(criteria: str | Mapping[str, Any]) -> Dict[str, str] | None:
    """`{"field": "value", ...}` as a mapping or a JSON string; None if malformed."""
    if isinstance(criteria, str):
        try:
            criteria = json.loads(criteria)
        except ValueError:
            return None
    if not isinstance(criteria, Mapping):
        return None
    return {str(k).strip(): str(v).strip() for k, v in criteria.items() if str(v).strip()}


class AITTools:
    def __init__(self, repo: AITLookup, renderer: MarkdownRenderer | None = None):
        self.repo = repo
        self.renderer = renderer or MarkdownRenderer()

    def get_tech_stack(self, ait: str) -> str:
        """Pretty JSON of one AIT document."""
        log.info("getAITTechStack: %s", ait)
        with collaborator_errors(LookupFailure, f"AIT lookup for {ait!r}"):
            doc = self.repo.find_by_id(ait.strip())
        if doc is None:
            return f"No tech stack found for AIT: {ait}"
        return json.dumps(doc, indent=2, ensure_ascii=False, default=str)

    def find_ids_by_component(self, component: str) -> List[str]:
        with collaborator_errors(LookupFailure, f"AIT component search for {component!r}"):
            docs = self.repo.find_by_component(component)
        log.info("Found %d AITs using %s", len(docs), component)
        return [ait_id(doc) for doc in docs]

    def find_by_component(self, component: str) -> str:
        ids = self.find_ids_by_component(component)
        if not ids:
            return f"No AITs found using '{component}'"
        return ",".join(ids)

    def find_by_field(self, field: str, value: str) -> str:
        log.info("findAITsByField: %s=%s", field, value)
        if field not in SEARCHABLE_FIELDS:
            return f"Error: '{field}' is not searchable; use one of {', '.join(SEARCHABLE_FIELDS)}"
        with collaborator_errors(LookupFailure, f"AIT search {field}={value!r}"):
            docs = self.repo.find_by_field(field, value)
        if not docs:
            return f"No AITs found with {field}='{value}'"
        return ",".join(ait_id(doc) for doc in docs)

    def find_by_criteria(self, criteria: str | Mapping[str, Any]) -> str:
        """OR across `field -> value` criteria, given as a mapping or JSON."""
        log.info("findAITsByMultipleCriteria: %s", criteria)
        parsed = parse_criteria(criteria)
        if not parsed:
            return "Error: Invalid JSON format"
        unknown = [f for f in parsed if f not in SEARCHABLE_FIELDS]
        if unknown:
            return f"Error: not searchable: {', '.join(unknown)}"
        with collaborator_errors(LookupFailure, f"AIT criteria search {parsed}"):
            docs = self.repo.find_by_criteria(parsed)
        if not docs:
            return "No AITs found matching criteria"
        return ",".join(ait_id(doc) for doc in docs)

    def render_by_ids(self, ait_ids: str | Sequence[str], title: str = "Requested AITs") -> str:
        """Markdown document for the given ids, in the order given."""
        ids = split_ids(ait_ids)
        with collaborator_errors(LookupFailure, f"AIT lookup for {len(ids)} ids"):
            docs = self.repo.find_by_ids(ids) if ids else []
        log.info("Rendering %d of %d requested AITs", len(docs), len(ids))
        return self.renderer.render(docs, title)
