"""Exception hierarchy for the reasoning-trace memory engine."""

from __future__ import annotations


class HippoError(Exception):
    """Base class for all hippo errors."""


class NotFoundError(HippoError, KeyError):
    """A trace or regression test id did not resolve to a stored entity."""

    kind = "entity"

    def __init__(self, entity_id: str) -> None:
        self.entity_id = entity_id
        super().__init__(f"{self.kind} '{entity_id}' not found")

    def __str__(self) -> str:
        return self.args[0]


class TraceNotFoundError(NotFoundError):
    kind = "Trace"


class RegressionTestNotFoundError(NotFoundError):
    kind = "Regression test"


class TraceCompletedError(HippoError):
    """Raised when an already completed trace is mutated."""

    def __init__(self, trace_id: str) -> None:
        self.trace_id = trace_id
        super().__init__(f"Trace '{trace_id}' is already completed")


class NoRegressionTestsError(HippoError):
    """No regression tests are configured, so there is no gate to run.

    Callers treat this as a skip: neither PASS nor FAIL.
    """

    def __init__(self) -> None:
        super().__init__("No regression tests configured")


class AdapterError(HippoError):
    """An external memory adapter call failed."""

    def __init__(self, adapter_id: str, message: str) -> None:
        self.adapter_id = adapter_id
        super().__init__(f"{adapter_id}: {message}")
