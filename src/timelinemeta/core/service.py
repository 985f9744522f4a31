"""Caller-facing facade: fetch, analyze and bulk-process media records."""

from typing import Optional, Sequence

import httpx
import structlog

from timelinemeta.config import Config
from timelinemeta.core.changes import analyze_changes
from timelinemeta.core.cover import CoverImageIngestor
from timelinemeta.core.runner import BatchReconciliationRunner, ProgressCallback
from timelinemeta.metadata.base import ApiKeyResolver, Found
from timelinemeta.metadata.omdb import OMDbAdapter
from timelinemeta.metadata.ratelimit import RateLimitGovernor
from timelinemeta.metadata.resolver import SourceFallbackResolver
from timelinemeta.metadata.tmdb import TMDBAdapter
from timelinemeta.metadata.trakt import TraktAdapter
from timelinemeta.models.media import MediaRecord
from timelinemeta.models.result import PreviewResult
from timelinemeta.models.update import ChangeSet, ReconciliationOptions, UpdateCandidate
from timelinemeta.store.base import ContentStore

logger = structlog.get_logger(__name__)


class MediaUpdateService:
    """The three calls a caller needs to reconcile media records."""

    def __init__(
        self,
        resolver: SourceFallbackResolver,
        runner: BatchReconciliationRunner,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.resolver = resolver
        self.runner = runner
        self._client = client

    @classmethod
    def from_config(
        cls,
        config: Config,
        store: ContentStore,
        client: Optional[httpx.AsyncClient] = None,
        governor: Optional[RateLimitGovernor] = None,
    ) -> "MediaUpdateService":
        """Wire adapters, governor, resolver and runner from configuration.

        Args:
            config: Application configuration
            store: Content store for records, binaries and API keys
            client: HTTP client shared by adapters and the cover ingestor
            governor: Governor to share between services (a new one if omitted)
        """
        owned_client = None
        if client is None:
            client = owned_client = httpx.AsyncClient(timeout=30.0, follow_redirects=True)

        keys = ApiKeyResolver(config.providers, store)
        adapters = []
        for adapter_class, settings in (
            (OMDbAdapter, config.providers.omdb),
            (TMDBAdapter, config.providers.tmdb),
        ):
            if settings.enabled:
                adapters.append(
                    adapter_class(settings.base_url, keys, client, timeout=settings.timeout_seconds)
                )
        if config.providers.trakt.enabled:
            adapters.append(TraktAdapter())

        governor = governor or RateLimitGovernor(config.rate_limit)
        resolver = SourceFallbackResolver(adapters, governor)
        runner = BatchReconciliationRunner(
            resolver,
            store,
            config.reconciliation,
            cover_ingestor=CoverImageIngestor(store, config.reconciliation, client),
        )
        logger.info(
            "Initialized media update service",
            providers=[a.provider.value for a in adapters],
        )
        return cls(resolver, runner, client=owned_client)

    async def close(self):
        """Close the HTTP client if this service created it."""
        if self._client is not None:
            await self._client.aclose()

    async def fetch_update_data(
        self,
        record: MediaRecord,
        options: Optional[ReconciliationOptions] = None,
    ) -> Optional[UpdateCandidate]:
        """Resolve a validated candidate for one record, or None."""
        resolution = await self.resolver.resolve(record, options or ReconciliationOptions())
        if isinstance(resolution, Found):
            return resolution.candidate
        return None

    def analyze_changes(
        self,
        record: MediaRecord,
        candidate: UpdateCandidate,
        options: ReconciliationOptions,
    ) -> Optional[ChangeSet]:
        """Compute the change set for a record and candidate."""
        return analyze_changes(record, candidate, options)

    async def process_bulk_update(
        self,
        records: Sequence[MediaRecord],
        options: ReconciliationOptions,
        on_progress: Optional[ProgressCallback] = None,
        is_preview: bool = True,
    ) -> list[PreviewResult]:
        """Run a preview or commit pass over records; never raises per item."""
        return await self.runner.run(records, options, on_progress, is_preview)
