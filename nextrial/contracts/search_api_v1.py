"""Search API Contract v1.

Typed request and response payloads for the clinical-trial search backend:
  - Health (HealthStatus)
  - RAG search (SearchRequest, SearchResult, SourceCitation, TrialLocation)
  - Embeddings and batch matching (EmbedResponse, BatchMatchResponse)
  - Remote pipeline memory (ClearStateResponse)

The backend speaks snake_case JSON. `sources` arrives grouped by origin
(`vector_db`, `mcp`) and is flattened here into one ordered citation list;
`processing_time` arrives in seconds and is kept as milliseconds.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthState(StrEnum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"


class HealthStatus(BaseModel):
    """Returned by GET /health."""

    status: HealthState
    pipeline_ready: bool = Field(default=False)
    stats: dict[str, Any] | None = Field(default=None)

    @property
    def is_degraded(self) -> bool:
        return self.status == HealthState.DEGRADED or not self.pipeline_ready


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class Confidence(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SearchRequest(BaseModel):
    """Body of POST /api/search/query."""

    query: str = Field(min_length=1)
    n_results: int = Field(default=10, ge=1)
    similarity_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    patient_id: str | None = Field(default=None)
    sources: list[str] | None = Field(
        default=None,
        description="Enabled external data sources; omitted when none are enabled.",
    )

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(exclude_none=True)
        payload.setdefault("patient_id", None)
        return payload


class SourceCitation(BaseModel):
    """One cited source backing an answer."""

    type: str = Field(default="Trial")
    id: str = Field(default="Unknown")
    relevance: str = Field(default="N/A")

    @field_validator("relevance", mode="before")
    @classmethod
    def _relevance_as_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class TrialLocation(BaseModel):
    """A trial site surfaced by the search, used for map rendering."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="nct_id")
    title: str = Field(default="")
    distance_km: float | None = Field(default=None)
    city: str = Field(default="")
    state: str = Field(default="")
    similarity_score: float | None = Field(default=None)


def _flatten_sources(raw: Any) -> list[dict[str, Any]]:
    if raw is None:
        return []
    if isinstance(raw, list):
        return raw
    if not isinstance(raw, dict):
        raise ValueError("sources must be an object or a list")
    citations: list[dict[str, Any]] = []
    vector_db = raw.get("vector_db") or []
    mcp = raw.get("mcp") or []
    if not isinstance(vector_db, list) or not isinstance(mcp, list):
        raise ValueError("grouped sources must be lists")
    for item in vector_db:
        if not isinstance(item, dict):
            raise ValueError("vector_db sources must be objects")
        citations.append(
            {
                "type": item.get("type") or "Trial",
                "id": item.get("trial_id") or item.get("id") or "Unknown",
                "relevance": item.get("relevance") or "N/A",
            }
        )
    for item in mcp:
        if not isinstance(item, dict):
            raise ValueError("mcp sources must be objects")
        citations.append(
            {
                "type": "MCP",
                "id": item.get("tool") or "Unknown",
                "relevance": f"{item.get('results', 0)} results",
            }
        )
    return citations


class SearchResult(BaseModel):
    """Returned by POST /api/search/query."""

    model_config = ConfigDict(populate_by_name=True)

    answer: str
    sources: list[SourceCitation] = Field(default_factory=list)
    confidence: Confidence
    total_results: int = Field(default=0, ge=0)
    trial_locations: list[TrialLocation] = Field(default_factory=list)
    processing_time_ms: float = Field(default=0.0, ge=0.0)

    @model_validator(mode="before")
    @classmethod
    def _from_wire(cls, data: Any) -> Any:
        if isinstance(data, dict) and "processing_time" in data:
            data = dict(data)
            seconds = data.pop("processing_time")
            try:
                data.setdefault("processing_time_ms", float(seconds or 0) * 1000.0)
            except (TypeError, ValueError) as e:
                raise ValueError(f"processing_time must be a number: {seconds!r}") from e
        return data

    @field_validator("sources", mode="before")
    @classmethod
    def _validate_sources(cls, value: Any) -> list[dict[str, Any]]:
        return _flatten_sources(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _normalize_confidence(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Embeddings, batch matching, remote state
# ---------------------------------------------------------------------------


class EmbedResponse(BaseModel):
    """Returned by POST /api/embed."""

    embeddings: list[list[float]] = Field(default_factory=list)
    count: int = Field(default=0, ge=0)


class BatchMatchResponse(BaseModel):
    """Returned by POST /api/batch/match-patients. Only kicks off the job."""

    status: str
    job_id: str
    patient_count: int = Field(ge=0)
    message: str = Field(default="")


class ClearStateResponse(BaseModel):
    """Returned by POST /api/conversation/clear."""

    status: str
