"""
routegraph.errors
=================
Exception hierarchy.

Only two kinds of problem ever escape a run:

• CollaboratorError – the model or the document store could not complete a call
• WorkflowError     – the run was stopped by the step ceiling or by the caller

A malformed or unroutable model decision is *not* an exception; nodes absorb it.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Type


class RoutegraphError(Exception):
    """Base class for everything raised by this package."""


# ─────────────────────────── infrastructure ────────────────────────────
class CollaboratorError(RoutegraphError):
    """An external collaborator failed after its own retry budget."""

    source = "collaborator"


class LanguageModelError(CollaboratorError):
    source = "language_model"


class LookupFailure(CollaboratorError):
    source = "lookup"


@contextmanager
def collaborator_errors(error: Type[CollaboratorError], what: str) -> Iterator[None]:
    """Anything a collaborator raises, other than our own errors, becomes `error`."""
    try:
        yield
    except RoutegraphError:
        raise
    except Exception as exc:
        raise error(f"{what} failed: {type(exc).__name__}: {exc}") from exc


# ─────────────────────────── graph definition ──────────────────────────
class GraphError(RoutegraphError):
    """Raised by GraphBuilder.compile() for an invalid node/edge table."""


# ─────────────────────────── run control ───────────────────────────────
class WorkflowError(RoutegraphError):
    def __init__(self, message: str, state: Any = None):
        super().__init__(message)
        self.state = state          # last merged WorkflowState, if any


class StepLimitExceeded(WorkflowError):
    pass


class RunCancelled(WorkflowError):
    pass
