"""
routegraph.tools.supabase_lookup
Pure data-access helpers for the AIT tech-stack inventory and the CVE table.
Contains **no business logic**; formatting lives in ait_tools / cve_tools.

Tables
------
ait_tech_stack   ait_id, data (jsonb document), and one text column per
                 searchable category holding comma-joined component names:
                 languages, frameworks, databases, middlewares,
                 operating_systems, libraries
cves             cve_id, published, year, base_score, description, vuln_status

Environment
-----------
SUPABASE_URL
SUPABASE_KEY   (or SUPABASE_SERVICE_ROLE_KEY / SUPABASE_ANON_KEY)
"""
from __future__ import annotations

import logging
import re
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from routegraph.config import Settings
from routegraph.errors import LookupFailure
from routegraph.templates import SEARCHABLE_FIELDS

log = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# 1.  Supabase client (singleton)
# ────────────────────────────────────────────────────────────────────────────
def _make_client(settings: Settings) -> Client:
    if not settings.supabase_url or not settings.supabase_key:
        raise LookupFailure("SUPABASE_URL / KEY env vars must be set")
    return create_client(settings.supabase_url, settings.supabase_key)


_sb: Client | None = None
_sb_lock = threading.Lock()


def sb(settings: Settings | None = None) -> Client:
    global _sb                           # pylint: disable=global-statement
    with _sb_lock:
        if _sb is None:
            _sb = _make_client(settings or Settings.from_env())
        return _sb


@contextmanager
def _lookup_errors(what: str) -> Iterator[None]:
    try:
        yield
    except (APIError, httpx.HTTPError) as exc:
        log.exception("Lookup failed: %s", what)
        raise LookupFailure(f"{what} failed: {exc}") from exc


# PostgREST filter strings use , ( ) as syntax
_UNSAFE = re.compile(r"[,()]")


def _pattern_value(value: str) -> str:
    return _UNSAFE.sub(" ", value).strip()


# ────────────────────────────────────────────────────────────────────────────
# 2.  AIT tech stacks
# ────────────────────────────────────────────────────────────────────────────
class AITRepository:
    """Returns AIT documents (`data` column, falling back to the raw row)."""

    def __init__(self, client: Client | None = None, table: str = "ait_tech_stack"):
        self._client = client
        self.table = table

    @property
    def client(self) -> Client:
        return self._client if self._client is not None else sb()

    def _select(self):
        return self.client.table(self.table).select("*")

    @staticmethod
    def _docs(rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [row.get("data") or row for row in rows]

    def find_by_id(self, ait_id: str) -> Optional[Dict[str, Any]]:
        with _lookup_errors(f"AIT lookup for {ait_id!r}"):
            rows = self._select().eq("ait_id", str(ait_id)).limit(1).execute().data or []
        docs = self._docs(rows)
        return docs[0] if docs else None

    def find_by_ids(self, ait_ids: Sequence[str]) -> List[Dict[str, Any]]:
        ids = [str(i).strip() for i in ait_ids if str(i).strip()]
        if not ids:
            return []
        with _lookup_errors(f"AIT lookup for {len(ids)} ids"):
            rows = self._select().in_("ait_id", ids).execute().data or []
        by_id = {str(row.get("ait_id")): row for row in rows}
        # keep the caller's order
        return self._docs([by_id[i] for i in ids if i in by_id])

    def find_by_component(self, component: str) -> List[Dict[str, Any]]:
        """Case-insensitive match against every searchable category."""
        value = _pattern_value(component)
        if not value:
            return []
        clause = ",".join(f"{col}.ilike.*{value}*" for col in SEARCHABLE_FIELDS)
        with _lookup_errors(f"AIT component search for {component!r}"):
            rows = self._select().or_(clause).execute().data or []
        return self._docs(rows)

    def find_by_field(self, field: str, value: str) -> List[Dict[str, Any]]:
        if field not in SEARCHABLE_FIELDS:
            raise ValueError(f"'{field}' is not searchable; use one of {SEARCHABLE_FIELDS}")
        with _lookup_errors(f"AIT search {field}={value!r}"):
            rows = self._select().ilike(field, f"%{_pattern_value(value)}%").execute().data or []
        return self._docs(rows)

    def find_by_criteria(self, criteria: Mapping[str, str]) -> List[Dict[str, Any]]:
        """AITs matching any of the `field -> value` criteria."""
        unknown = [f for f in criteria if f not in SEARCHABLE_FIELDS]
        if unknown:
            raise ValueError(f"not searchable: {unknown}")
        if not criteria:
            return []
        clause = ",".join(
            f"{field}.ilike.*{_pattern_value(value)}*" for field, value in criteria.items()
        )
        with _lookup_errors(f"AIT criteria search {dict(criteria)}"):
            rows = self._select().or_(clause).execute().data or []
        return self._docs(rows)


# ────────────────────────────────────────────────────────────────────────────
# 3.  CVEs
# ────────────────────────────────────────────────────────────────────────────
class CVERepository:
    def __init__(self, client: Client | None = None, table: str = "cves"):
        self._client = client
        self.table = table

    @property
    def client(self) -> Client:
        return self._client if self._client is not None else sb()

    def _rows(self, what: str, **filters: Any) -> List[Dict[str, Any]]:
        with _lookup_errors(what):
            query = self.client.table(self.table).select("*")
            for col, val in filters.items():
                if col == "min_score":
                    query = query.gte("base_score", val)
                else:
                    query = query.eq(col, val)
            return query.order("base_score", desc=True).execute().data or []

    def by_year(self, year: int) -> List[Dict[str, Any]]:
        return self._rows(f"CVE query year={year}", year=year)

    def by_score(self, min_score: float) -> List[Dict[str, Any]]:
        return self._rows(f"CVE query score>={min_score}", min_score=min_score)

    def by_year_and_score(self, year: int, min_score: float) -> List[Dict[str, Any]]:
        return self._rows(f"CVE query year={year} score>={min_score}", year=year, min_score=min_score)

    def by_id(self, cve_id: str) -> Optional[Dict[str, Any]]:
        rows = self._rows(f"CVE lookup {cve_id}", cve_id=cve_id.strip().upper())
        return rows[0] if rows else None

    def scores(self) -> List[Optional[float]]:
        """Base score of every CVE (None where unscored)."""
        with _lookup_errors("CVE score scan"):
            rows = self.client.table(self.table).select("base_score").execute().data or []
        return [row.get("base_score") for row in rows]
