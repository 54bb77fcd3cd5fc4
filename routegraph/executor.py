"""
routegraph.executor
===================
Walks a compiled `Graph` one node at a time.

    state ─▶ node.apply ─▶ partial update ─▶ apply_update ─▶ next state
                                               │
                       static edge / conditional edge ◀┘

This is the only place sequencing decisions are made.  Every step checks the
caller's cancel event, the run deadline, and the step ceiling before the
node runs.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from routegraph.errors import CollaboratorError, RunCancelled, StepLimitExceeded
from routegraph.graph import END, Graph
from routegraph.schema import RunResult, RunStatus
from routegraph.state import WorkflowState, apply_update, initial_state

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepRecord:
    node: str
    state: WorkflowState


class WorkflowExecutor:
    def __init__(self, graph: Graph, max_steps: int = 25):
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.graph = graph
        self.max_steps = max_steps

    # ------------------------------------------------------------------
    def steps(
        self,
        state: WorkflowState,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> Iterator[StepRecord]:
        """
        Yield one `StepRecord` per executed node.  Stops after a node whose
        successor is END, or as soon as the state is marked complete.
        `deadline` is a `time.monotonic()` value.
        """
        current = self.graph.entry
        executed = 0
        while True:
            if cancel is not None and cancel.is_set():
                raise RunCancelled(f"run cancelled before '{current}'", state)
            if deadline is not None and time.monotonic() >= deadline:
                raise RunCancelled(f"run deadline passed before '{current}'", state)
            if executed >= self.max_steps:
                raise StepLimitExceeded(
                    f"{self.max_steps} steps executed without reaching the end "
                    f"(next node '{current}')", state)

            log.info("▶ %s (step %d)", current, executed + 1)
            update = self.graph.node(current).apply(state)
            # `error` only ever describes the node that just ran
            state = apply_update(state, {"error": None, **update}, current)
            executed += 1
            yield StepRecord(current, state)

            if state.complete:
                return
            nxt = self.graph.next_node(current, state)
            if nxt == END:
                return
            current = nxt

    # ------------------------------------------------------------------
    def run(
        self,
        query: str,
        numbers: Iterable[float] = (),
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> RunResult:
        started = time.monotonic()
        deadline = started + timeout if timeout else None
        last = initial_state(query, numbers)

        def _elapsed() -> int:
            return int((time.monotonic() - started) * 1000)

        def _stopped(status: RunStatus, message: str) -> RunResult:
            return RunResult(
                status=status,
                execution_trace=list(last.execution_trace),
                error=message,
                execution_time_ms=_elapsed(),
            )

        try:
            for record in self.steps(last, cancel=cancel, deadline=deadline):
                last = record.state
        except CollaboratorError as exc:
            log.exception("Run aborted by %s failure", exc.source)
            return _stopped(RunStatus.FAILED, f"{exc.source}: {exc}")
        except StepLimitExceeded as exc:
            log.warning("Run stopped: %s", exc)
            return _stopped(RunStatus.STEP_LIMIT_EXCEEDED, str(exc))
        except RunCancelled as exc:
            log.info("Run stopped: %s", exc)
            return _stopped(RunStatus.CANCELLED, str(exc))

        log.info("Run completed: %s", " → ".join(last.visited))
        return RunResult(
            status=RunStatus.COMPLETED,
            final_state=last,
            execution_trace=list(last.execution_trace),
            execution_time_ms=_elapsed(),
        )
