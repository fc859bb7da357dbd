"""LangSmith runs around search backend calls.

Off unless LANGSMITH_TRACING=true. When off, `trace` yields a run whose
`end()` does nothing, so callers never branch on whether tracing is enabled.
"""

from __future__ import annotations

import atexit
import os
from typing import Any

TRACING_ENABLED = os.getenv("LANGSMITH_TRACING", "").strip().lower() == "true"
PROJECT_NAME = os.getenv("LANGSMITH_PROJECT", "nextrial")


class _DisabledRun:
    def end(self, outputs: dict[str, Any] | None = None) -> None:
        pass

    async def __aenter__(self) -> _DisabledRun:
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass


if TRACING_ENABLED:
    from langsmith import Client
    from langsmith.run_helpers import trace as _ls_trace

    _client = Client()

    def trace(
        name: str,
        run_type: str = "retriever",
        *,
        inputs: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ):
        return _ls_trace(
            name,
            run_type=run_type,
            inputs=inputs or {},
            metadata=metadata or {},
            project_name=PROJECT_NAME,
            client=_client,
        )

    def flush() -> None:
        _client.flush()

    atexit.register(flush)

else:

    def trace(
        name: str,
        run_type: str = "retriever",
        *,
        inputs: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> _DisabledRun:
        return _DisabledRun()

    def flush() -> None:
        pass
