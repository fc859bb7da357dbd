"""External data-source toggles that scope searches."""

from nextrial.sources.registry import (
    DEFAULT_SOURCES,
    STORAGE_KEY,
    SourceToggle,
    SourceToggleRegistry,
)

__all__ = ["DEFAULT_SOURCES", "STORAGE_KEY", "SourceToggle", "SourceToggleRegistry"]
