"""Human-in-the-loop approval: preview a batch, review, then commit approved items."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol, Sequence

import structlog

from timelinemeta.core.runner import ProgressCallback
from timelinemeta.errors import WorkflowStateError
from timelinemeta.metadata.matching import title_similarity
from timelinemeta.models.media import MediaRecord
from timelinemeta.models.result import BatchProgress, PreviewResult, ResultStatus
from timelinemeta.models.update import ReconciliationOptions

logger = structlog.get_logger(__name__)

APPROVE_THRESHOLD = 0.8
VERIFY_THRESHOLD = 0.6
PLEASE_VERIFY = "Title differs moderately, please verify"
LOW_SIMILARITY = "Low similarity between current and proposed title"

# Commit outcomes that write nothing but are not failures
SKIP_REASONS = {
    ResultStatus.RATE_LIMITED: "rate limited, not updated",
    ResultStatus.NOT_FOUND: "no longer found, not updated",
    ResultStatus.UNCHANGED: "nothing left to change",
}


class BulkUpdater(Protocol):
    async def process_bulk_update(
        self,
        records: Sequence[MediaRecord],
        options: ReconciliationOptions,
        on_progress: Optional[ProgressCallback] = None,
        is_preview: bool = True,
    ) -> list[PreviewResult]:
        ...


class WorkflowStep(str, Enum):
    """Approval workflow states."""

    OPTIONS = "options"
    PREVIEW = "preview"
    PROCESSING = "processing"
    RESULTS = "results"


@dataclass
class ReviewItem:
    """A preview result with its approval decision."""

    result: PreviewResult
    approved: bool = False
    similarity_score: Optional[float] = None
    warning_reason: Optional[str] = None

    @property
    def media_item(self) -> MediaRecord:
        return self.result.media_item

    @property
    def has_changes(self) -> bool:
        return self.result.has_changes


@dataclass
class WorkflowSummary:
    """Aggregate outcome of the commit pass."""

    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


def review(result: PreviewResult) -> ReviewItem:
    """Score a preview result and pick its default approval.

    Only proposed title changes are scored, against the record's current
    display name: >= 0.8 approved, 0.6-0.8 approved with a warning,
    below 0.6 rejected.
    """
    if not result.has_changes or result.change_set is None:
        return ReviewItem(result=result, approved=False)

    proposed = result.change_set.title
    current = result.media_item.display_name
    if proposed is None or not current:
        return ReviewItem(result=result, approved=True)

    score = title_similarity(current, proposed)
    if score >= APPROVE_THRESHOLD:
        return ReviewItem(result=result, approved=True, similarity_score=score)
    if score >= VERIFY_THRESHOLD:
        return ReviewItem(
            result=result,
            approved=True,
            similarity_score=score,
            warning_reason=PLEASE_VERIFY,
        )
    return ReviewItem(
        result=result,
        approved=False,
        similarity_score=score,
        warning_reason=LOW_SIMILARITY,
    )


class ApprovalWorkflow:
    """State machine: options -> preview -> processing -> results.

    ``back()`` returns from preview to options; ``reset()`` leaves results
    (or abandons a preview) and clears all transient state.
    """

    def __init__(self, updater: BulkUpdater, records: Sequence[MediaRecord]):
        """Initialize workflow.

        Args:
            updater: Object exposing process_bulk_update (usually MediaUpdateService)
            records: Records selected for reconciliation
        """
        self.updater = updater
        self.records = list(records)
        self.step = WorkflowStep.OPTIONS
        self.options: Optional[ReconciliationOptions] = None
        self.items: list[ReviewItem] = []
        self.summary = WorkflowSummary()

    def _require(self, *steps: WorkflowStep) -> None:
        if self.step not in steps:
            allowed = ", ".join(s.value for s in steps)
            raise WorkflowStateError(f"Not allowed in step '{self.step.value}' (needs {allowed})")

    @property
    def changed_items(self) -> list[ReviewItem]:
        return [item for item in self.items if item.has_changes]

    @property
    def error_items(self) -> list[ReviewItem]:
        return [item for item in self.items if item.result.error]

    @property
    def approved_items(self) -> list[ReviewItem]:
        return [item for item in self.items if item.approved and item.has_changes]

    async def preview(
        self,
        options: ReconciliationOptions,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[ReviewItem]:
        """Enter preview: run a non-persisting pass and score every item."""
        self._require(WorkflowStep.OPTIONS)
        if not options.any_field_selected:
            raise WorkflowStateError("Select at least one field to update")

        self.options = options
        self.step = WorkflowStep.PREVIEW
        try:
            results = await self.updater.process_bulk_update(
                self.records, options, on_progress, is_preview=True
            )
        except Exception:
            self.step = WorkflowStep.OPTIONS
            raise

        self.items = [review(result) for result in results]
        logger.info(
            "Preview ready",
            total=len(self.items),
            changed=len(self.changed_items),
            approved=len(self.approved_items),
            errors=len(self.error_items),
        )
        return self.items

    def set_approval(self, index: int, approved: bool) -> None:
        """Override the default approval of one item."""
        self._require(WorkflowStep.PREVIEW)
        self.items[index].approved = approved

    def toggle(self, index: int) -> bool:
        """Flip one item's approval and return the new value."""
        self._require(WorkflowStep.PREVIEW)
        item = self.items[index]
        item.approved = not item.approved
        return item.approved

    def back(self) -> None:
        """Return from preview to options."""
        self._require(WorkflowStep.PREVIEW)
        self.items = []
        self.step = WorkflowStep.OPTIONS

    async def confirm(self, on_progress: Optional[ProgressCallback] = None) -> WorkflowSummary:
        """Commit approved items with changes, one at a time.

        Only items whose commit pass wrote changes count as updated; rate
        limited or vanished matches are skipped, not failed. The pass always
        reaches the results step.
        """
        self._require(WorkflowStep.PREVIEW)
        self.step = WorkflowStep.PROCESSING
        approved = self.approved_items
        total = len(approved)
        summary = WorkflowSummary()

        for index, item in enumerate(approved, 1):
            label = item.media_item.label

            def relay(progress: BatchProgress, index=index, label=label) -> None:
                if on_progress is not None:
                    on_progress(BatchProgress(index, total, label, progress.api_status))

            status = None
            try:
                results = await self.updater.process_bulk_update(
                    [item.media_item], self.options, relay, is_preview=False
                )
                if results:
                    error, status = results[0].error, results[0].status
                else:
                    error = "No result returned"
            except Exception as e:
                logger.exception("Commit failed", record_id=item.media_item.id)
                error = str(e) or "Unknown error"

            if error:
                summary.failed += 1
                summary.errors.append(f"{label}: {error}")
            elif status == ResultStatus.CHANGED:
                summary.success += 1
            else:
                reason = SKIP_REASONS.get(status, f"not updated ({status.value})")
                logger.info("Commit skipped", record_id=item.media_item.id, status=status.value)
                summary.skipped += 1
                summary.notes.append(f"{label}: {reason}")

        self.summary = summary
        self.step = WorkflowStep.RESULTS
        logger.info(
            "Updates applied",
            success=summary.success,
            failed=summary.failed,
            skipped=summary.skipped,
        )
        return summary

    def reset(self) -> None:
        """Leave results (or abandon a preview) and clear transient state."""
        self._require(WorkflowStep.RESULTS, WorkflowStep.PREVIEW, WorkflowStep.OPTIONS)
        self.step = WorkflowStep.OPTIONS
        self.options = None
        self.items = []
        self.summary = WorkflowSummary()
