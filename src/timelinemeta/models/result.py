"""Batch result and progress models."""

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional

from timelinemeta.models.media import MediaRecord
from timelinemeta.models.update import ChangeSet


class ResultStatus(str, Enum):
    """Outcome of one reconciliation pass."""

    CHANGED = "changed"
    UNCHANGED = "unchanged"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"


@dataclass
class PreviewResult:
    """Result of reconciling a single record."""

    media_item: MediaRecord
    change_set: Optional[ChangeSet] = None
    error: Optional[str] = None
    has_changes: bool = False
    status: ResultStatus = ResultStatus.UNCHANGED

    def __str__(self) -> str:
        """Human-readable representation."""
        label = self.media_item.label
        if self.status == ResultStatus.CHANGED and self.change_set:
            fields = ", ".join(self.change_set.changed_fields())
            return f"{label}: {fields} ({self.change_set.source})"
        if self.status == ResultStatus.ERROR:
            return f"{label}: failed ({self.error})"
        if self.status == ResultStatus.RATE_LIMITED:
            return f"{label}: skipped (rate limited)"
        if self.status == ResultStatus.NOT_FOUND:
            return f"{label}: no data found"
        return f"{label}: no changes"


@dataclass(frozen=True)
class ApiStatus:
    """Provider status annotation attached to progress updates."""

    state: Literal["active", "rate_limited"]
    source: Optional[str] = None
    retry_after: Optional[float] = None


@dataclass(frozen=True)
class BatchProgress:
    """Progress snapshot for observers."""

    current: int
    total: int
    current_item_label: str
    api_status: Optional[ApiStatus] = None
