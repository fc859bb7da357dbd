"""Session wiring: storage, source toggles, conversation backend, client, orchestrator."""

from nextrial.clients.search_client import SearchBackendClient
from nextrial.conversations.backends import (
    InMemoryConversationBackend,
    SupabaseConversationBackend,
)
from nextrial.conversations.interface import ConversationBackend
from nextrial.conversations.store import ConversationStore
from nextrial.core.config import Config, config
from nextrial.core.logger import logger
from nextrial.core.storage import LocalStorage
from nextrial.orchestrators.circuit_breaker import CircuitBreaker
from nextrial.orchestrators.session import SessionOrchestrator
from nextrial.sources.registry import SourceToggleRegistry


def build_backend(cfg: Config = config) -> ConversationBackend:
    if cfg.supabase_enabled:
        logger.info("Conversations: Supabase  " + cfg.supabase_url)
        return SupabaseConversationBackend(cfg.supabase_url, cfg.supabase_anon_key)
    logger.info("Conversations: in-memory (set SUPABASE_URL to persist)")
    return InMemoryConversationBackend()


def build_session(cfg: Config = config) -> SessionOrchestrator:
    for problem in cfg.validate():
        logger.warning(f"Config: {problem}")

    registry = SourceToggleRegistry(LocalStorage(cfg.data_dir / "storage"))
    registry.load()
    enabled = registry.enabled_ids()
    logger.info(f"Sources enabled: {', '.join(enabled) if enabled else 'none'}")

    return SessionOrchestrator(
        client=SearchBackendClient(cfg.api_url, cfg.api_timeout),
        store=ConversationStore(build_backend(cfg)),
        registry=registry,
        breaker=CircuitBreaker(
            failure_threshold=cfg.circuit_failure_threshold,
            window_seconds=cfg.circuit_window_seconds,
            cooldown_seconds=cfg.circuit_cooldown_seconds,
        ),
    )
