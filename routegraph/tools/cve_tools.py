"""
routegraph.tools.cve_tools
Turn CVE repository results into the strings the CVE node stores.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from routegraph.errors import LookupFailure, collaborator_errors

log = logging.getLogger(__name__)

MAX_LISTED = 10
DESCRIPTION_LIMIT = 80

# lower bound → label, checked top-down
SEVERITY_BUCKETS = (
    (9.0, "Critical"),
    (7.0, "High"),
    (4.0, "Medium"),
    (0.0, "Low"),
)


class CVELookup(Protocol):
    def by_year(self, year: int) -> List[Dict[str, Any]]: ...
    def by_score(self, min_score: float) -> List[Dict[str, Any]]: ...
    def by_year_and_score(self, year: int, min_score: float) -> List[Dict[str, Any]]: ...
    def by_id(self, cve_id: str) -> Optional[Dict[str, Any]]: ...
    def scores(self) -> List[Optional[float]]: ...


def severity(score: Optional[float]) -> Optional[str]:
    if score is None or score <= 0:
        return None
    for floor, label in SEVERITY_BUCKETS:
        if score >= floor:
            return label
    return None


def _score(row: Dict[str, Any]) -> float:
    return float(row.get("base_score") or 0.0)


def _short(description: Optional[str]) -> str:
    text = description or ""
    return text[:DESCRIPTION_LIMIT] + "..." if len(text) > DESCRIPTION_LIMIT else text


def format_results(rows: Sequence[Dict[str, Any]], query_desc: str) -> str:
    if not rows:
        return f"No CVEs found for: {query_desc}"
    lines = [f"Found {len(rows)} CVEs for {query_desc}:", ""]
    for i, row in enumerate(rows[:MAX_LISTED], start=1):
        lines.append(f"{i}. {row.get('cve_id')} (Score: {_score(row):.1f}) - {_short(row.get('description'))}")
    if len(rows) > MAX_LISTED:
        lines += ["", f"... and {len(rows) - MAX_LISTED} more CVEs (showing first {MAX_LISTED})"]
    return "\n".join(lines)


class CVETools:
    def __init__(self, repo: CVELookup):
        self.repo = repo

    def by_year_and_score(self, year: int, min_score: float) -> str:
        log.info("queryCVEsByYearAndScore: year=%s minBaseScore=%s", year, min_score)
        with collaborator_errors(LookupFailure, "CVE query"):
            rows = self.repo.by_year_and_score(year, min_score)
        return format_results(rows, f"CVEs from {year} with score >= {min_score:.1f}")

    def by_year(self, year: int) -> str:
        log.info("queryCVEsByYear: year=%s", year)
        with collaborator_errors(LookupFailure, "CVE query"):
            rows = self.repo.by_year(year)
        return format_results(rows, f"CVEs from {year}")

    def by_score(self, min_score: float) -> str:
        log.info("queryCVEsByScore: minBaseScore=%s", min_score)
        with collaborator_errors(LookupFailure, "CVE query"):
            rows = self.repo.by_score(min_score)
        return format_results(rows, f"CVEs with score >= {min_score:.1f}")

    def by_id(self, cve_id: str) -> str:
        log.info("getCVEById: %s", cve_id)
        with collaborator_errors(LookupFailure, f"CVE lookup {cve_id}"):
            row = self.repo.by_id(cve_id)
        if row is None:
            return f"CVE {cve_id} not found in database"
        return (
            f"Found CVE: {row.get('cve_id')}\n"
            f"Score: {_score(row):.1f}\n"
            f"Published: {row.get('published')}\n"
            f"Description: {row.get('description')}"
        )

    def statistics(self) -> str:
        with collaborator_errors(LookupFailure, "CVE score scan"):
            scores = self.repo.scores()
        counts = {label: 0 for _, label in SEVERITY_BUCKETS}
        scored = 0
        for score in scores:
            if score is None:
                continue
            scored += 1
            label = severity(score)
            if label:
                counts[label] += 1
        distribution = ", ".join(f"{label}: {n}" for label, n in counts.items())
        return (
            f"Total CVEs: {len(scores)}, With Scores: {scored}\n"
            f"Severity distribution: {distribution}"
        )
