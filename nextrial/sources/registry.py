"""Source toggles: which external data sources may scope a search.

The registry is write-through: every toggle rewrites the whole JSON array under
one storage key before returning. Registration order is fixed by
DEFAULT_SOURCES and survives reloads regardless of how the stored array is
ordered.
"""

import json
import logging
import threading

from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from nextrial.core.errors import ValidationError
from nextrial.core.storage import LocalStorage

logger = logging.getLogger(__name__)

STORAGE_KEY = "mcp-servers"


class SourceToggle(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    enabled: bool = False

    @property
    def display_name(self) -> str:
        return self.name


DEFAULT_SOURCES: tuple[SourceToggle, ...] = (
    SourceToggle(id="clinicaltrials", name="ClinicalTrials.gov"),
    SourceToggle(id="pubmed", name="PubMed"),
    SourceToggle(id="rxnorm", name="RxNorm"),
)

_stored_adapter = TypeAdapter(list[SourceToggle])


class SourceToggleRegistry:
    def __init__(
        self,
        storage: LocalStorage,
        defaults: tuple[SourceToggle, ...] = DEFAULT_SOURCES,
    ):
        self._storage = storage
        self._defaults = defaults
        self._toggles: list[SourceToggle] = list(defaults)
        self._lock = threading.Lock()

    def load(self) -> None:
        """Restore persisted flags; fall back to defaults on absence or corruption."""
        try:
            raw = self._storage.get_item(STORAGE_KEY)
            if raw is None:
                self._toggles = list(self._defaults)
                return
            stored = _stored_adapter.validate_python(json.loads(raw))
        except (OSError, UnicodeDecodeError, ValueError, PydanticValidationError) as e:
            logger.warning("Stored source toggles are corrupt, using defaults: %s", e)
            self._toggles = list(self._defaults)
            return
        flags = {t.id: t.enabled for t in stored}
        dropped = [i for i in flags if i not in {d.id for d in self._defaults}]
        if dropped:
            logger.info("Ignoring unknown stored sources: %s", ", ".join(dropped))
        self._toggles = [
            d.model_copy(update={"enabled": flags.get(d.id, d.enabled)})
            for d in self._defaults
        ]

    def toggles(self) -> tuple[SourceToggle, ...]:
        return tuple(self._toggles)

    def get(self, toggle_id: str) -> SourceToggle | None:
        return next((t for t in self._toggles if t.id == toggle_id), None)

    def enabled_ids(self) -> list[str]:
        return [t.id for t in self._toggles if t.enabled]

    def toggle(self, toggle_id: str) -> SourceToggle:
        with self._lock:
            index = next(
                (i for i, t in enumerate(self._toggles) if t.id == toggle_id), None
            )
            if index is None:
                known = ", ".join(t.id for t in self._toggles)
                raise ValidationError(f"Unknown source '{toggle_id}' (known: {known})")
            current = self._toggles[index]
            updated = current.model_copy(update={"enabled": not current.enabled})
            toggles = list(self._toggles)
            toggles[index] = updated
            self._flush(toggles)
            self._toggles = toggles
            return updated

    def _flush(self, toggles: list[SourceToggle]) -> None:
        payload = json.dumps([t.model_dump() for t in toggles])
        self._storage.set_item(STORAGE_KEY, payload)
