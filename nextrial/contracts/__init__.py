"""Search API contract v1: typed payloads exchanged with the search backend."""

from nextrial.contracts.search_api_v1 import (
    BatchMatchResponse,
    ClearStateResponse,
    Confidence,
    EmbedResponse,
    HealthState,
    HealthStatus,
    SearchRequest,
    SearchResult,
    SourceCitation,
    TrialLocation,
)

__all__ = [
    "BatchMatchResponse",
    "ClearStateResponse",
    "Confidence",
    "EmbedResponse",
    "HealthState",
    "HealthStatus",
    "SearchRequest",
    "SearchResult",
    "SourceCitation",
    "TrialLocation",
]
