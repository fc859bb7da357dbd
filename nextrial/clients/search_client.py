"""Search backend client: typed async HTTP access to the trial-matching service.

Every call goes through `_request`, which maps failures onto the shared
taxonomy: connection problems and timeouts become TransportError, error
statuses and unparseable bodies become UpstreamError. The client never
retries and keeps no state between calls; retry policy belongs to the caller.
"""

import time
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from nextrial.contracts.search_api_v1 import (
    BatchMatchResponse,
    ClearStateResponse,
    EmbedResponse,
    HealthStatus,
    SearchRequest,
    SearchResult,
)
from nextrial.core.config import config
from nextrial.core.errors import TransportError, UpstreamError, ValidationError
from nextrial.core.logger import logger
from nextrial.observability import trace


def _error_message(response: httpx.Response) -> str:
    """Prefer the structured error body; fall back to the status text."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("detail", "message", "error"):
            value = body.get(key)
            if value:
                return value if isinstance(value, str) else str(value)
    return response.reason_phrase or response.text[:200] or f"HTTP {response.status_code}"


class SearchBackendClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or config.api_url).rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else config.api_timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "SearchBackendClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        logger.search_request(path, payload)
        start = time.monotonic()
        try:
            response = await self.client.request(method, path, json=payload)
        except httpx.TimeoutException as e:
            logger.search_response(path, None, time.monotonic() - start, error="timeout")
            raise TransportError(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            logger.search_response(path, None, time.monotonic() - start, error=str(e))
            raise TransportError(f"{method} {path} failed: {e}") from e

        elapsed = time.monotonic() - start
        if not response.is_success:
            message = _error_message(response)
            logger.search_response(path, response.status_code, elapsed, error=message)
            raise UpstreamError(response.status_code, message)
        try:
            data = response.json()
        except ValueError as e:
            logger.search_response(path, response.status_code, elapsed, error="invalid JSON")
            raise UpstreamError(response.status_code, "Response body is not valid JSON") from e
        logger.search_response(path, response.status_code, elapsed)
        return data

    @staticmethod
    def _parse(model: type[BaseModel], data: Any, status: int = 200) -> Any:
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise UpstreamError(
                status, f"Malformed {model.__name__}: {e.error_count()} invalid field(s)"
            ) from e

    async def check_health(self) -> HealthStatus:
        data = await self._request("GET", "/health")
        return self._parse(HealthStatus, data)

    async def search(
        self,
        query: str,
        n_results: int = 10,
        similarity_threshold: float = 0.3,
        source_scope: Sequence[str] = (),
        patient_id: str | None = None,
    ) -> SearchResult:
        if not query or not query.strip():
            raise ValidationError("Search query must not be empty")
        if n_results < 1:
            raise ValidationError(f"n_results must be at least 1, got {n_results}")
        if not 0.0 <= similarity_threshold <= 1.0:
            raise ValidationError(
                f"similarity_threshold must be within [0, 1], got {similarity_threshold}"
            )
        request = SearchRequest(
            query=query,
            n_results=n_results,
            similarity_threshold=similarity_threshold,
            patient_id=patient_id,
            sources=list(source_scope) or None,
        )
        async with trace(
            "trial_search",
            "retriever",
            inputs={"query": query, "n_results": n_results, "sources": list(source_scope)},
            metadata={"base_url": self.base_url},
        ) as run:
            data = await self._request("POST", "/api/search/query", request.to_payload())
            result = self._parse(SearchResult, data)
            run.end(
                outputs={
                    "confidence": result.confidence.value,
                    "total_results": result.total_results,
                    "citations": len(result.sources),
                }
            )
            return result

    async def embed(self, texts: Sequence[str]) -> EmbedResponse:
        if not texts:
            raise ValidationError("embed requires at least one text")
        if any(not t or not t.strip() for t in texts):
            raise ValidationError("embed texts must not be empty")
        data = await self._request("POST", "/api/embed", {"texts": list(texts)})
        return self._parse(EmbedResponse, data)

    async def batch_match(self, patient_ids: Sequence[str]) -> BatchMatchResponse:
        if not patient_ids:
            raise ValidationError("batch_match requires at least one patient id")
        if any(not p or not p.strip() for p in patient_ids):
            raise ValidationError("patient ids must not be empty")
        data = await self._request(
            "POST", "/api/batch/match-patients", {"patient_ids": list(patient_ids)}
        )
        return self._parse(BatchMatchResponse, data)

    async def get_stats(self) -> dict[str, Any]:
        data = await self._request("GET", "/api/stats")
        if not isinstance(data, dict):
            raise UpstreamError(200, "Stats response is not an object")
        return data

    async def clear_remote_conversation_state(self) -> ClearStateResponse:
        data = await self._request("POST", "/api/conversation/clear")
        return self._parse(ClearStateResponse, data)

    async def get_trial_details(self, trial_id: str) -> dict[str, Any]:
        trial_id = (trial_id or "").strip()
        if not trial_id:
            raise ValidationError("Trial id must not be empty")
        if "/" in trial_id:
            raise ValidationError(f"Invalid trial id: {trial_id}")
        data = await self._request("GET", f"/api/trials/{trial_id}")
        if not isinstance(data, dict):
            raise UpstreamError(200, "Trial details response is not an object")
        return data

    async def close(self):
        await self.client.aclose()


def create_client() -> SearchBackendClient:
    return SearchBackendClient()
