"""Batch reconciliation runner shared by preview and commit passes."""

import asyncio
from typing import Awaitable, Callable, Optional, Sequence

import structlog

from timelinemeta.config import ReconciliationConfig
from timelinemeta.core.changes import analyze_changes
from timelinemeta.core.cover import CoverImageIngestor
from timelinemeta.errors import ContentStoreError
from timelinemeta.metadata.base import Found, RateLimited
from timelinemeta.metadata.resolver import SourceFallbackResolver
from timelinemeta.models.media import MediaRecord
from timelinemeta.models.result import ApiStatus, BatchProgress, PreviewResult, ResultStatus
from timelinemeta.models.update import ChangeSet, ReconciliationOptions
from timelinemeta.store.base import ContentStore

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[BatchProgress], None]

UNEXPECTED_ERROR = "Unexpected error while reconciling item"


class BatchReconciliationRunner:
    """Reconciles records one after another in preview or commit mode.

    Preview and commit share the same path; only commit reaches the
    persistence branch. Every failure ends up in that record's result.
    """

    def __init__(
        self,
        resolver: SourceFallbackResolver,
        store: ContentStore,
        config: Optional[ReconciliationConfig] = None,
        cover_ingestor: Optional[CoverImageIngestor] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize runner.

        Args:
            resolver: Candidate resolver (owns the rate limit governor)
            store: Content store written to in commit mode
            config: Inter-item delay and cover settings
            cover_ingestor: Binary cover uploader, required for binary mode commits
            sleep: Async sleep used for the inter-item delay
        """
        self.resolver = resolver
        self.store = store
        self.config = config or ReconciliationConfig()
        self.cover_ingestor = cover_ingestor
        self._sleep = sleep

    async def run(
        self,
        records: Sequence[MediaRecord],
        options: ReconciliationOptions,
        on_progress: Optional[ProgressCallback] = None,
        is_preview: bool = True,
    ) -> list[PreviewResult]:
        """Reconcile a batch.

        Args:
            records: Records in processing order
            options: Update policy for the run
            on_progress: Observer called with progress snapshots
            is_preview: Compute changes without persisting them

        Returns:
            One result per record, in order
        """
        total = len(records)
        results = []
        logger.info(
            "Starting batch",
            total=total,
            mode="preview" if is_preview else "commit",
            sources=[p.value for p in options.preferred_sources],
        )

        for index, record in enumerate(records, 1):
            self._emit(on_progress, BatchProgress(index, total, record.label))
            result = await self._process(record, index, total, options, on_progress, is_preview)
            results.append(result)

            if index < total and self.config.inter_item_delay_seconds:
                await self._sleep(self.config.inter_item_delay_seconds)

        logger.info(
            "Batch finished",
            total=total,
            changed=sum(1 for r in results if r.has_changes),
            errors=sum(1 for r in results if r.error),
            rate_limited=sum(1 for r in results if r.status == ResultStatus.RATE_LIMITED),
        )
        return results

    async def _process(
        self,
        record: MediaRecord,
        index: int,
        total: int,
        options: ReconciliationOptions,
        on_progress: Optional[ProgressCallback],
        is_preview: bool,
    ) -> PreviewResult:
        try:
            resolution = await self.resolver.resolve(record, options)

            if isinstance(resolution, RateLimited):
                self._emit(
                    on_progress,
                    BatchProgress(
                        index,
                        total,
                        record.label,
                        ApiStatus(
                            state="rate_limited",
                            source=", ".join(p.label for p in resolution.providers),
                            retry_after=resolution.retry_after,
                        ),
                    ),
                )
                return PreviewResult(record, status=ResultStatus.RATE_LIMITED)

            if not isinstance(resolution, Found):
                logger.info("No data found", record_id=record.id, title=record.display_name)
                return PreviewResult(record, status=ResultStatus.NOT_FOUND)

            candidate = resolution.candidate
            self._emit(
                on_progress,
                BatchProgress(index, total, record.label, ApiStatus(state="active", source=candidate.source)),
            )

            changes = analyze_changes(record, candidate, options)
            if changes is None:
                return PreviewResult(record, status=ResultStatus.UNCHANGED)

            if not is_preview:
                await self._commit(record, changes)

            return PreviewResult(
                record,
                change_set=changes,
                has_changes=True,
                status=ResultStatus.CHANGED,
            )

        except ContentStoreError as e:
            logger.error("Failed to persist changes", record_id=record.id, error=str(e))
            return PreviewResult(record, error=str(e), status=ResultStatus.ERROR)
        except Exception as e:
            logger.exception("Reconciliation error", record_id=record.id, error=str(e))
            return PreviewResult(record, error=UNEXPECTED_ERROR, status=ResultStatus.ERROR)

    async def _commit(self, record: MediaRecord, changes: ChangeSet) -> None:
        """Persist a change set, ingesting a binary cover first when asked to."""
        include_cover_url = True

        if changes.binary_cover and changes.cover_image_url:
            if self.cover_ingestor is None:
                logger.warning("No cover ingestor configured, storing URL", record_id=record.id)
            else:
                try:
                    await self.cover_ingestor.ingest(record, changes.cover_image_url)
                    changes.cover_uploaded = True
                    include_cover_url = False
                except Exception as e:
                    logger.warning(
                        "Binary cover upload failed, storing URL instead",
                        record_id=record.id,
                        url=changes.cover_image_url,
                        error=str(e),
                    )
                    changes.notes.append(f"binary cover upload failed: {e}")

        fields = changes.to_store_fields(include_cover_url=include_cover_url)
        if fields:
            await self.store.update(record.id, fields)

        logger.info(
            "Applied changes",
            record_id=record.id,
            fields=sorted(fields),
            cover_uploaded=changes.cover_uploaded,
            source=changes.source,
        )

    @staticmethod
    def _emit(on_progress: Optional[ProgressCallback], progress: BatchProgress) -> None:
        if on_progress is None:
            return
        try:
            on_progress(progress)
        except Exception as e:
            logger.warning("Progress callback failed", error=str(e))
