import httpx
import pytest

from nextrial.contracts.search_api_v1 import Confidence, HealthState
from nextrial.core.errors import TransportError, UpstreamError, ValidationError

QUERY = "trials for stage 2 breast cancer near Boston"


@pytest.mark.asyncio
async def test_search_parses_backend_payload(client, search_api):
    result = await client.search(QUERY)

    assert result.answer.startswith("Three recruiting trials")
    assert result.confidence == Confidence.HIGH
    assert [s.id for s in result.sources] == ["NCT01234567", "NCT07654321", "pubmed"]
    assert result.sources[2].type == "MCP"
    assert result.sources[2].relevance == "4 results"
    assert result.processing_time_ms == pytest.approx(1250.0)
    assert result.trial_locations[0].id == "NCT01234567"
    assert result.trial_locations[0].city == "Boston"


@pytest.mark.asyncio
async def test_search_request_shape_without_scope(client, search_api):
    await client.search(QUERY)

    body = search_api.bodies("/api/search/query")[0]
    assert body == {
        "query": QUERY,
        "n_results": 10,
        "similarity_threshold": 0.3,
        "patient_id": None,
    }


@pytest.mark.asyncio
async def test_search_request_carries_scope_and_patient(client, search_api):
    await client.search(
        QUERY,
        n_results=5,
        similarity_threshold=0.5,
        source_scope=["pubmed", "rxnorm"],
        patient_id="p-42",
    )

    body = search_api.bodies("/api/search/query")[0]
    assert body["sources"] == ["pubmed", "rxnorm"]
    assert body["patient_id"] == "p-42"
    assert body["n_results"] == 5
    assert body["similarity_threshold"] == 0.5


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"query": QUERY, "n_results": 0},
        {"query": "   "},
        {"query": ""},
        {"query": QUERY, "similarity_threshold": 1.5},
        {"query": QUERY, "similarity_threshold": -0.1},
    ],
)
async def test_search_rejects_bad_input_before_any_request(client, search_api, kwargs):
    with pytest.raises(ValidationError):
        await client.search(**kwargs)
    assert search_api.requests == []


@pytest.mark.asyncio
async def test_upstream_error_uses_structured_detail(client, search_api):
    search_api.route(
        "POST",
        "/api/search/query",
        httpx.Response(503, json={"detail": "Pipeline not initialized"}),
    )

    with pytest.raises(UpstreamError) as exc_info:
        await client.search(QUERY)

    assert exc_info.value.status == 503
    assert exc_info.value.message == "Pipeline not initialized"


@pytest.mark.asyncio
async def test_upstream_error_falls_back_to_status_text(client, search_api):
    search_api.route("POST", "/api/search/query", httpx.Response(500, text="<html>oops</html>"))

    with pytest.raises(UpstreamError) as exc_info:
        await client.search(QUERY)

    assert exc_info.value.status == 500
    assert exc_info.value.message == "Internal Server Error"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"answer": "x"},
        {"answer": "x", "confidence": "high", "sources": {"vector_db": ["NCT01"]}},
        {"answer": "x", "confidence": "high", "sources": {"mcp": [4]}},
        {"answer": "x", "confidence": "high", "sources": {"vector_db": 5}},
        {"answer": "x", "confidence": "high", "processing_time": [1]},
        {"answer": "x", "confidence": "high", "processing_time": "slow"},
    ],
)
async def test_malformed_success_body_is_upstream_error(client, search_api, body):
    search_api.route("POST", "/api/search/query", httpx.Response(200, json=body))

    with pytest.raises(UpstreamError) as exc_info:
        await client.search(QUERY)
    assert exc_info.value.status == 200


@pytest.mark.asyncio
async def test_non_json_success_body_is_upstream_error(client, search_api):
    search_api.route("GET", "/api/stats", httpx.Response(200, text="not json"))

    with pytest.raises(UpstreamError):
        await client.get_stats()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "exc",
    [httpx.ConnectError("connection refused"), httpx.ReadTimeout("timed out")],
)
async def test_network_failures_are_transport_errors(client, search_api, exc):
    search_api.route("POST", "/api/search/query", exc)

    with pytest.raises(TransportError):
        await client.search(QUERY)


@pytest.mark.asyncio
async def test_check_health_degraded(client, search_api):
    search_api.route(
        "GET",
        "/health",
        httpx.Response(
            200,
            json={
                "status": "degraded",
                "pipeline_ready": False,
                "stats": {"vector_db": {"total_count": 0}},
            },
        ),
    )

    health = await client.check_health()

    assert health.status == HealthState.DEGRADED
    assert health.is_degraded
    assert health.stats == {"vector_db": {"total_count": 0}}


@pytest.mark.asyncio
async def test_check_health_error_status_carries_status(client, search_api):
    search_api.route("GET", "/health", httpx.Response(502, text="Bad Gateway"))

    with pytest.raises(UpstreamError) as exc_info:
        await client.check_health()
    assert exc_info.value.status == 502


@pytest.mark.asyncio
async def test_embed_and_batch_match(client, search_api):
    search_api.route(
        "POST",
        "/api/embed",
        httpx.Response(200, json={"embeddings": [[0.1, 0.2], [0.3, 0.4]], "count": 2}),
    )
    search_api.route(
        "POST",
        "/api/batch/match-patients",
        httpx.Response(
            200,
            json={
                "status": "started",
                "job_id": "job-1",
                "patient_count": 2,
                "message": "Batch matching started",
            },
        ),
    )

    embedded = await client.embed(["breast cancer", "HER2"])
    job = await client.batch_match(["p-1", "p-2"])

    assert embedded.count == 2
    assert embedded.embeddings[1] == [0.3, 0.4]
    assert job.job_id == "job-1"
    assert search_api.bodies("/api/embed") == [{"texts": ["breast cancer", "HER2"]}]
    assert search_api.bodies("/api/batch/match-patients") == [{"patient_ids": ["p-1", "p-2"]}]


@pytest.mark.asyncio
async def test_empty_batch_inputs_rejected_locally(client, search_api):
    with pytest.raises(ValidationError):
        await client.embed([])
    with pytest.raises(ValidationError):
        await client.batch_match([])
    with pytest.raises(ValidationError):
        await client.get_trial_details(" ")
    assert search_api.requests == []


@pytest.mark.asyncio
async def test_trial_details_stats_and_remote_clear(client, search_api):
    search_api.route(
        "GET", "/api/trials/NCT01234567", httpx.Response(200, json={"nct_id": "NCT01234567"})
    )
    search_api.route("GET", "/api/stats", httpx.Response(200, json={"trials": 1200}))
    search_api.route("POST", "/api/conversation/clear", httpx.Response(200, json={"status": "cleared"}))

    assert (await client.get_trial_details("NCT01234567"))["nct_id"] == "NCT01234567"
    assert (await client.get_stats())["trials"] == 1200
    assert (await client.clear_remote_conversation_state()).status == "cleared"


@pytest.mark.asyncio
async def test_missing_trial_is_upstream_404(client, search_api):
    with pytest.raises(UpstreamError) as exc_info:
        await client.get_trial_details("NCT00000000")
    assert exc_info.value.status == 404
    assert exc_info.value.message == "Not Found"
