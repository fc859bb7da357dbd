"""Orchestrators: the query session pipeline and its backend-health policy."""

from nextrial.orchestrators.circuit_breaker import CircuitBreaker, CircuitState
from nextrial.orchestrators.outcomes import (
    QueryOutcome,
    SearchFailed,
    SearchSucceeded,
    SearchSucceededPersistenceFailed,
    SessionState,
)
from nextrial.orchestrators.session import SessionOrchestrator

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "QueryOutcome",
    "SearchFailed",
    "SearchSucceeded",
    "SearchSucceededPersistenceFailed",
    "SessionOrchestrator",
    "SessionState",
]
