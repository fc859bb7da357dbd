import json
import os
import tempfile
from collections.abc import AsyncIterator, Sequence
from datetime import UTC, datetime, timedelta

# Keep test runs from writing into the project's logs/ and data/ folders.
os.environ.setdefault("NEXTRIAL_LOGS_DIR", tempfile.mkdtemp(prefix="nextrial-logs-"))
os.environ.setdefault("NEXTRIAL_DATA_DIR", tempfile.mkdtemp(prefix="nextrial-data-"))
os.environ.setdefault("NO_COLOR", "1")

import httpx
import pytest
import pytest_asyncio

from nextrial.clients.search_client import SearchBackendClient
from nextrial.conversations.backends.memory import InMemoryConversationBackend
from nextrial.conversations.store import ConversationStore
from nextrial.core.storage import LocalStorage
from nextrial.sources.registry import SourceToggleRegistry


class FakeClock:
    """Wall clock for the store and monotonic clock for the breaker, in one."""

    def __init__(self, start: datetime = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)):
        self.now = start
        self.seconds = 1000.0

    def __call__(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.seconds

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
        self.seconds += seconds


SEARCH_RESPONSE = {
    "answer": "Three recruiting trials match stage 2 breast cancer near Boston.",
    "sources": {
        "vector_db": [
            {"trial_id": "NCT01234567", "type": "Trial", "relevance": "0.91"},
            {"trial_id": "NCT07654321", "type": "Trial", "relevance": "0.84"},
        ],
        "mcp": [{"tool": "pubmed", "results": 4}],
    },
    "confidence": "high",
    "total_results": 3,
    "trial_locations": [
        {
            "nct_id": "NCT01234567",
            "title": "Neoadjuvant therapy in HER2+ breast cancer",
            "distance_km": 2.5,
            "city": "Boston",
            "state": "MA",
            "similarity_score": 0.91,
        }
    ],
    "processing_time": 1.25,
}


class FakeSearchAPI:
    """Routes requests to canned handlers and records every request it sees."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], object] = {
            ("GET", "/health"): httpx.Response(
                200, json={"status": "healthy", "pipeline_ready": True}
            ),
            ("POST", "/api/search/query"): httpx.Response(200, json=SEARCH_RESPONSE),
        }

    def route(self, method: str, path: str, response) -> None:
        """`response` is an httpx.Response, an exception to raise, or a callable."""
        self.routes[(method, path)] = response

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            result = handler(request)
            if hasattr(result, "__await__"):
                result = await result
            return result
        return httpx.Response(
            handler.status_code, headers=handler.headers, content=handler.content
        )

    def bodies(self, path: str) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.url.path == path]

    def count(self, path: str) -> int:
        return sum(1 for r in self.requests if r.url.path == path)


@pytest.fixture
def search_api() -> FakeSearchAPI:
    return FakeSearchAPI()


@pytest_asyncio.fixture
async def client(search_api) -> AsyncIterator[SearchBackendClient]:
    instance = SearchBackendClient(
        "http://backend.test", timeout=5.0, transport=httpx.MockTransport(search_api)
    )
    try:
        yield instance
    finally:
        await instance.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_backend() -> InMemoryConversationBackend:
    return InMemoryConversationBackend()


@pytest.fixture
def store(memory_backend, clock) -> ConversationStore:
    return ConversationStore(memory_backend, clock=clock)


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "storage")


@pytest.fixture
def registry(storage) -> SourceToggleRegistry:
    instance = SourceToggleRegistry(storage)
    instance.load()
    return instance


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration/e2e tests that require a live search backend.",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers", "integration: requires runtime services or user configuration"
    )
    config.addinivalue_line("markers", "e2e: end-to-end runtime tests")
    config.addinivalue_line("markers", "property: property-based deterministic tests")


def pytest_collection_modifyitems(
    config: pytest.Config,
    items: Sequence[pytest.Item],
) -> None:
    run_integration = config.getoption("--run-integration")
    skip_integration = pytest.mark.skip(
        reason="integration/e2e is opt-in; rerun with --run-integration"
    )

    for item in items:
        if "tests/e2e/" in item.nodeid:
            item.add_marker("integration")
            item.add_marker("e2e")
        if (
            item.get_closest_marker("integration") or item.get_closest_marker("e2e")
        ) and not run_integration:
            item.add_marker(skip_integration)
