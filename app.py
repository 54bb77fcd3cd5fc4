#!/usr/bin/env python3
from __future__ import annotations
import os, logging
import streamlit as st

from routegraph.workflow import (run_workflow, reload_graph, stream_workflow,
                                 WORKFLOW_KINDS)
from routegraph.schema   import EventType
from routegraph.errors   import RoutegraphError

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"),
                    format="%(asctime)s %(levelname)-8s %(message)s")
log = logging.getLogger("routegraph.app")

st.set_page_config(page_title="🔀 routegraph", layout="centered")

# ── session defaults ────────────────────────────────────────────────────
st.session_state.setdefault("query", "")
st.session_state.setdefault("numbers", "")
st.session_state.setdefault("kind", "calculation")

_LABELS = {"calculation": "Calculation", "ait": "AIT tech stack", "cve": "CVE lookup"}

# ── helpers ─────────────────────────────────────────────────────────────
def parse_numbers(raw: str) -> list[float]:
    """'10, 20,30' → [10.0, 20.0, 30.0]; blanks are skipped."""
    out = []
    for part in raw.split(","):
        part = part.strip()
        if part:
            out.append(float(part))
    return out

def render_output(out: dict) -> None:
    if out.get("final_answer"):
        st.markdown(out["final_answer"])
    if out["status"] != "completed":
        st.error(f"{out['status']}: {out.get('error')}")
    elif out.get("error"):
        st.warning(out["error"])
    st.caption(" → ".join(out.get("path", [])) + f" · {out.get('execution_time_ms', 0)} ms")
    with st.expander("Execution trace"):
        st.code(out.get("trace", ""), language=None)
        st.code(out.get("summary", ""), language=None)

def render_stream(query: str, numbers: list[float]) -> None:
    box = st.container()
    events = []
    for evt in stream_workflow(query, numbers):
        events.append(evt.model_dump(mode="json"))
        if evt.type is EventType.CHUNK:
            box.markdown(evt.message)
        elif evt.type is EventType.ERROR:
            box.error(evt.message)
        elif evt.type is not EventType.COMPLETE:
            box.write(f"`{evt.node_name}` · {evt.message}")
    st.session_state["events"] = events

# ── sidebar ─────────────────────────────────────────────────────────────
with st.sidebar:
    if st.button("Reload graph"):
        try:
            reload_graph(); st.success("Graphs rebuilt")
        except (RoutegraphError, RuntimeError) as e:
            log.exception("Reload failed")
            st.error(f"Reload failed: {e}")

# ── dashboard view ──────────────────────────────────────────────────────
st.title("🔀  routegraph")
with st.form("query_form"):
    kind = st.selectbox("Workflow", WORKFLOW_KINDS,
                        index=WORKFLOW_KINDS.index(st.session_state["kind"]),
                        format_func=_LABELS.get)
    query = st.text_input("Request", st.session_state["query"])
    numbers_raw = st.text_input("Numbers (comma separated, calculation only)",
                                st.session_state["numbers"])
    stream = st.checkbox("Stream events", value=False)
    submitted = st.form_submit_button("Run")

if submitted and query.strip():
    st.session_state.update(query=query.strip(), numbers=numbers_raw, kind=kind)
    try:
        numbers = parse_numbers(numbers_raw) if kind == "calculation" else []
    except ValueError:
        st.error("Numbers must be a comma-separated list, e.g. 10, 20, 30")
        st.stop()

    try:
        if stream and kind == "calculation":
            st.session_state.pop("event", None)
            render_stream(query.strip(), numbers)
        else:
            st.session_state.pop("events", None)
            st.session_state["event"] = run_workflow(query.strip(), numbers, kind=kind)
    except RuntimeError as e:
        log.exception("Workflow could not start")
        st.error(f"Workflow could not start: {e}")

evt = st.session_state.get("event")
if evt:
    render_output(evt.get("output", evt))

if st.session_state.get("events"):
    with st.expander("Events"):
        st.json(st.session_state["events"])

st.caption(f"v0.1 · model: {os.getenv('LLM_MODEL', 'gpt-4o-mini')}")
