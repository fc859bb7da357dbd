"""Session orchestrator: turns a query into a persisted, ordered exchange.

Pipeline per query:
1. Reject blank text, or a second query for a conversation already in flight.
2. Refuse without I/O while the circuit breaker is open.
3. Save the user message before searching, so the query survives failures.
4. Search, scoped to the enabled external sources.
5. Save the assistant reply with the search metadata.

Transport failures feed the circuit breaker and return SearchFailed; backend
error statuses propagate unchanged and leave the breaker alone. A reply that
cannot be saved still reaches the caller as SearchSucceededPersistenceFailed.
"""

from nextrial.clients.search_client import SearchBackendClient
from nextrial.contracts.search_api_v1 import ClearStateResponse, HealthStatus
from nextrial.conversations.models import Conversation, MessageRole, SearchMetadata
from nextrial.conversations.store import ConversationStore, derive_title
from nextrial.core.errors import (
    PersistenceError,
    QueryInProgressError,
    TransportError,
    ValidationError,
)
from nextrial.core.logger import logger
from nextrial.orchestrators.circuit_breaker import CircuitBreaker, CircuitState
from nextrial.orchestrators.outcomes import (
    QueryOutcome,
    SearchFailed,
    SearchSucceeded,
    SearchSucceededPersistenceFailed,
    SessionState,
)
from nextrial.sources.registry import SourceToggleRegistry

SCOPED_SIMILARITY_THRESHOLD = 0.3
UNSCOPED_SIMILARITY_THRESHOLD = 0.2


class SessionOrchestrator:
    def __init__(
        self,
        client: SearchBackendClient,
        store: ConversationStore,
        registry: SourceToggleRegistry,
        breaker: CircuitBreaker | None = None,
        n_results: int = 10,
    ):
        self.client = client
        self.store = store
        self.registry = registry
        self.breaker = breaker or CircuitBreaker()
        self.n_results = n_results
        self._in_flight: set[str] = set()
        self._degraded = False
        self._last_health: HealthStatus | None = None

    def state(self, conversation_id: str) -> SessionState:
        if conversation_id in self._in_flight:
            return SessionState.IN_FLIGHT
        if self.breaker.state == CircuitState.OPEN:
            return SessionState.CIRCUIT_OPEN
        if self._degraded:
            return SessionState.DEGRADED
        return SessionState.IDLE

    @property
    def last_health(self) -> HealthStatus | None:
        return self._last_health

    async def refresh_health(self) -> HealthStatus:
        try:
            health = await self.client.check_health()
        except TransportError:
            self._degraded = True
            raise
        self._last_health = health
        if health.is_degraded and not self._degraded:
            logger.warning(
                f"Search backend degraded (status={health.status.value}, "
                f"pipeline_ready={health.pipeline_ready})"
            )
        self._degraded = health.is_degraded
        return health

    async def start_conversation(
        self, owner_id: str, text: str
    ) -> tuple[Conversation, QueryOutcome]:
        """Create a conversation titled after the first query, then submit it."""
        if not text or not text.strip():
            raise ValidationError("Query must not be empty")
        conversation = await self.store.create_conversation(owner_id, derive_title(text))
        outcome = await self.submit_query(conversation.id, text)
        return conversation, outcome

    async def submit_query(self, conversation_id: str, text: str) -> QueryOutcome:
        if not text or not text.strip():
            raise ValidationError("Query must not be empty")
        if conversation_id in self._in_flight:
            raise QueryInProgressError(conversation_id)
        self.breaker.before_call()
        self._in_flight.add(conversation_id)
        try:
            return await self._run_query(conversation_id, text)
        finally:
            self._in_flight.discard(conversation_id)

    async def _run_query(self, conversation_id: str, text: str) -> QueryOutcome:
        scope = self.registry.enabled_ids()
        logger.query_submitted(conversation_id, text, scope)
        if self._degraded:
            logger.warning("Backend reported degraded; attempting search anyway")

        try:
            user_message = await self.store.save_message(
                conversation_id, MessageRole.USER, text
            )
        except BaseException as e:
            self.breaker.release_probe()
            if isinstance(e, PersistenceError):
                logger.persistence_failed(conversation_id, MessageRole.USER.value, e)
            raise

        try:
            result = await self.client.search(
                text,
                n_results=self.n_results,
                similarity_threshold=(
                    SCOPED_SIMILARITY_THRESHOLD if scope else UNSCOPED_SIMILARITY_THRESHOLD
                ),
                source_scope=scope,
            )
        except TransportError as e:
            self.breaker.record_failure()
            logger.warning(f"Search failed for {conversation_id}: {e}")
            return SearchFailed(user_message=user_message, error=e)
        except BaseException:
            self.breaker.release_probe()
            raise

        self.breaker.record_success()
        try:
            assistant_message = await self.store.save_message(
                conversation_id,
                MessageRole.ASSISTANT,
                result.answer,
                SearchMetadata.from_result(result),
            )
        except PersistenceError as e:
            logger.persistence_failed(conversation_id, MessageRole.ASSISTANT.value, e)
            return SearchSucceededPersistenceFailed(
                result=result, user_message=user_message, error=e
            )
        return SearchSucceeded(
            result=result,
            user_message=user_message,
            assistant_message=assistant_message,
        )

    async def clear_conversation(self, conversation_id: str) -> ClearStateResponse:
        """Clear local messages and the backend's pipeline memory."""
        if conversation_id in self._in_flight:
            raise QueryInProgressError(conversation_id)
        self._in_flight.add(conversation_id)
        try:
            await self.store.clear_messages(conversation_id)
            return await self.client.clear_remote_conversation_state()
        finally:
            self._in_flight.discard(conversation_id)

    def circuit_snapshot(self) -> dict:
        return self.breaker.get_state()

    async def close(self) -> None:
        await self.client.close()
        await self.store.close()
