"""Results of submitting a query, discriminated by `kind`."""

from dataclasses import dataclass
from enum import Enum
from typing import Literal

from nextrial.contracts.search_api_v1 import SearchResult
from nextrial.conversations.models import Message
from nextrial.core.errors import PersistenceError, TransportError


class SessionState(str, Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    DEGRADED = "degraded"
    CIRCUIT_OPEN = "circuit_open"


@dataclass(frozen=True)
class SearchSucceeded:
    result: SearchResult
    user_message: Message
    assistant_message: Message
    kind: Literal["succeeded"] = "succeeded"

    @property
    def answer(self) -> str:
        return self.result.answer


@dataclass(frozen=True)
class SearchSucceededPersistenceFailed:
    """The answer was obtained but the assistant message could not be saved."""

    result: SearchResult
    user_message: Message
    error: PersistenceError
    persisted: bool = False
    kind: Literal["succeeded_persistence_failed"] = "succeeded_persistence_failed"

    @property
    def answer(self) -> str:
        return self.result.answer


@dataclass(frozen=True)
class SearchFailed:
    """Backend unreachable. The user message is kept; retrying is allowed."""

    user_message: Message
    error: TransportError
    retryable: bool = True
    kind: Literal["failed"] = "failed"


QueryOutcome = SearchSucceeded | SearchSucceededPersistenceFailed | SearchFailed
