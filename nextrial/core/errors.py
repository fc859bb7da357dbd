"""Error taxonomy shared by the client, the store and the orchestrator."""


class NexTrialError(Exception):
    """Base class for every error raised by the session layer."""


class ValidationError(NexTrialError):
    """Bad local input. Raised before any I/O is attempted."""


class QueryInProgressError(ValidationError):
    def __init__(self, conversation_id: str):
        super().__init__(f"A query is already in progress for conversation {conversation_id}")
        self.conversation_id = conversation_id


class TransportError(NexTrialError):
    """Backend unreachable or timed out. Retryable; drives the circuit breaker."""


class UpstreamError(NexTrialError):
    """Backend reachable but answered with an error status or a malformed body."""

    def __init__(self, status: int, message: str):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


class PersistenceError(NexTrialError):
    """Conversation store read or write failed."""


class ConversationNotFoundError(PersistenceError):
    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class CircuitOpenError(NexTrialError):
    """Backend presumed down; the call was refused without network I/O."""

    def __init__(self, retry_after: float):
        super().__init__(f"Search backend unavailable, retry in {retry_after:.0f}s")
        self.retry_after = retry_after
