"""Observability: LangSmith tracing (optional, env-controlled)."""

from nextrial.observability.langsmith import TRACING_ENABLED, flush, trace

__all__ = ["TRACING_ENABLED", "trace", "flush"]
