"""Conversation and message records, with the closed metadata variant."""

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from nextrial.contracts.search_api_v1 import (
    Confidence,
    SearchResult,
    SourceCitation,
    TrialLocation,
)

DEFAULT_TITLE = "New Conversation"
TITLE_MAX_LENGTH = 50


class MessageRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class EmptyMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["empty"] = "empty"


class SearchMetadata(BaseModel):
    """Search outcome attached to an assistant message."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["search"] = "search"
    sources: list[SourceCitation] = Field(default_factory=list)
    confidence: Confidence
    total_results: int = Field(default=0, ge=0)
    processing_time_ms: float = Field(default=0.0, ge=0.0)
    trial_locations: list[TrialLocation] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchMetadata":
        return cls(
            sources=result.sources,
            confidence=result.confidence,
            total_results=result.total_results,
            processing_time_ms=result.processing_time_ms,
            trial_locations=result.trial_locations,
        )


MessageMetadata = Annotated[EmptyMetadata | SearchMetadata, Field(discriminator="kind")]

_metadata_adapter: TypeAdapter[EmptyMetadata | SearchMetadata] = TypeAdapter(MessageMetadata)


def parse_metadata(raw: Any) -> EmptyMetadata | SearchMetadata:
    """Validate a stored metadata payload.

    Rows written before metadata was tagged carry either `{}` or the bare
    search fields (`processing_time` in seconds); both are accepted. Any other
    shape raises pydantic's ValidationError.
    """
    if raw is None or raw == {}:
        return EmptyMetadata()
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    if isinstance(raw, dict) and "kind" not in raw and "confidence" in raw:
        raw = dict(raw, kind="search")
        if "processing_time" in raw:
            seconds = raw.pop("processing_time") or 0
            try:
                raw["processing_time_ms"] = float(seconds) * 1000.0
            except (TypeError, ValueError):
                # Left for the model to reject.
                raw["processing_time_ms"] = seconds
    return _metadata_adapter.validate_python(raw)


class Conversation(BaseModel):
    id: str
    owner_id: str
    title: str = DEFAULT_TITLE
    created_at: datetime
    updated_at: datetime
    last_message_at: datetime


class Message(BaseModel):
    id: str
    conversation_id: str
    role: MessageRole
    content: str
    metadata: MessageMetadata = Field(default_factory=EmptyMetadata)
    created_at: datetime

    @model_validator(mode="before")
    @classmethod
    def _coerce_metadata(cls, data: Any) -> Any:
        if isinstance(data, dict) and "metadata" in data:
            data = dict(data, metadata=parse_metadata(data["metadata"]))
        return data
