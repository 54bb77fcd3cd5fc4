"""
routegraph.config
-----------------
Environment-driven settings.

Values come from the process environment (a local `.env` is loaded first).
Nothing here talks to the network; credentials are only checked when the
collaborator that needs them is built.

Environment variables
---------------------
OPENAI_API_KEY, OPENAI_BASE_URL
LLM_MODEL=gpt-4o-mini   LLM_TEMPERATURE=0.0   LLM_MAX_TOKENS=1024
LLM_TIMEOUT_S=60        # per-call budget
LLM_MAX_RETRIES=2       # client-side retries before a call counts as failed
MAX_STEPS=25            # node executions per run
RUN_TIMEOUT_S=300       # whole-run budget
SUPABASE_URL, SUPABASE_KEY (or SUPABASE_SERVICE_ROLE_KEY / SUPABASE_ANON_KEY)
AIT_TABLE=ait_tech_stack   CVE_TABLE=cves
LOG_LEVEL=INFO
"""
from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


class Settings(BaseModel):
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.0
    llm_max_tokens: int = 1024
    llm_timeout_s: float = 60.0
    llm_max_retries: int = 2

    max_steps: int = 25
    run_timeout_s: float = 300.0

    supabase_url: str | None = None
    supabase_key: str | None = None
    ait_table: str = "ait_tech_stack"
    cve_table: str = "cves"

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
            llm_model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
            llm_temperature=_env_float("LLM_TEMPERATURE", 0.0),
            llm_max_tokens=_env_int("LLM_MAX_TOKENS", 1024),
            llm_timeout_s=_env_float("LLM_TIMEOUT_S", 60.0),
            llm_max_retries=_env_int("LLM_MAX_RETRIES", 2),
            max_steps=_env_int("MAX_STEPS", 25),
            run_timeout_s=_env_float("RUN_TIMEOUT_S", 300.0),
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=(
                os.getenv("SUPABASE_KEY")
                or os.getenv("SUPABASE_SERVICE_ROLE_KEY")
                or os.getenv("SUPABASE_ANON_KEY")
            ),
            ait_table=os.getenv("AIT_TABLE", "ait_tech_stack"),
            cve_table=os.getenv("CVE_TABLE", "cves"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
