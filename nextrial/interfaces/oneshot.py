"""One-shot interface: run a single query or health check, print, exit."""

from __future__ import annotations

import asyncio

from nextrial.core.bootstrap import build_session
from nextrial.core.config import config
from nextrial.core.errors import NexTrialError
from nextrial.orchestrators.outcomes import SearchFailed


async def run_oneshot(query: str) -> int:
    text = (query or "").strip()
    if not text:
        print("Error: query must not be empty")
        return 2

    session = build_session()
    try:
        try:
            _, outcome = await session.start_conversation(config.owner_id, text)
        except NexTrialError as e:
            print(f"Error: {e}")
            return 1
        if isinstance(outcome, SearchFailed):
            print(f"Error: search backend unreachable ({outcome.error})")
            return 1
        print(outcome.answer)
        return 0
    finally:
        await session.close()


async def run_health() -> int:
    session = build_session()
    try:
        try:
            health = await session.refresh_health()
        except NexTrialError as e:
            print(f"unreachable: {e}")
            return 1
        print(f"{health.status.value} (pipeline ready: {health.pipeline_ready})")
        return 1 if health.is_degraded else 0
    finally:
        await session.close()


def main(query: str) -> int:
    return asyncio.run(run_oneshot(query=query))


def health_main() -> int:
    return asyncio.run(run_health())
