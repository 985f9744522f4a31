"""Resolve an update candidate for a record across providers in preference order."""

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Optional

import structlog

from timelinemeta.errors import ProviderNotImplemented, RateLimitError
from timelinemeta.metadata.base import Found, LookupResult, NotFound, ProviderAdapter, RateLimited
from timelinemeta.metadata.heuristic import base_title, resolve_episode_hint
from timelinemeta.metadata.identifiers import extract_identifiers
from timelinemeta.metadata.matching import validate_content_match
from timelinemeta.metadata.ratelimit import RateLimitGovernor
from timelinemeta.models.media import MediaRecord
from timelinemeta.models.update import Provider, ReconciliationOptions, UpdateCandidate

logger = structlog.get_logger(__name__)

SERIES_MATCH_SUFFIX = " (Series Match)"


@dataclass
class _Pass:
    """Bookkeeping for one record's resolution."""

    record: MediaRecord
    expected_title: str
    throttled: list[Provider] = field(default_factory=list)
    retry_after: Optional[float] = None

    def note_throttled(self, error: RateLimitError) -> None:
        if error.provider not in self.throttled:
            self.throttled.append(error.provider)
        if error.retry_after is not None:
            self.retry_after = max(self.retry_after or 0.0, error.retry_after)


class SourceFallbackResolver:
    """Orchestrates provider adapters with cascading fallbacks."""

    def __init__(self, adapters: Iterable[ProviderAdapter], governor: RateLimitGovernor):
        """Initialize resolver.

        Args:
            adapters: One adapter per provider
            governor: Rate limit governor wrapping every provider call
        """
        self.adapters = {adapter.provider: adapter for adapter in adapters}
        self.governor = governor

    def _sources(self, options: ReconciliationOptions) -> list[Provider]:
        sources = []
        for provider in options.preferred_sources:
            if provider in self.adapters and provider not in sources:
                sources.append(provider)
        return sources

    async def resolve(self, record: MediaRecord, options: ReconciliationOptions) -> LookupResult:
        """Find a validated candidate for a record.

        Resolution order:
        1. ID lookup for each preferred provider the record has an id for
        2. Season/episode resolution through the parent series
        3. Title search across preferred providers
        4. Title search on the part before a colon ("Series Match")

        Candidates are checked against the display title, except seasons and
        episodes an adapter fetched by their season/episode numbers.

        Args:
            record: Record to enrich
            options: Run options (provider preference order)

        Returns:
            Found, NotFound, or RateLimited when nothing was found and a
            provider was throttled
        """
        current = _Pass(record=record, expected_title=record.display_name or record.title or "")
        sources = self._sources(options)
        ids = extract_identifiers(record.external_links)
        kind = record.kind
        hint = resolve_episode_hint(record.subtitle, record.display_name) if kind.is_sub_resource else None

        logger.debug(
            "Resolving record",
            record_id=record.id,
            title=record.display_name,
            kind=kind.value,
            sources=[p.value for p in sources],
            hint=str(hint) if hint else None,
        )

        # 1. External ids
        for provider in sources:
            identifier = ids.get(provider.identifier_key)
            if not identifier:
                continue
            adapter = self.adapters[provider]
            candidate = await self._lookup(
                current,
                provider,
                lambda: adapter.fetch_by_id(identifier, kind, hint),
                step="id",
            )
            if candidate:
                return Found(candidate.with_source(provider.label))

        # 2. Season/episode through the parent series
        if kind.is_sub_resource:
            for provider in sources:
                adapter = self.adapters[provider]
                if not adapter.supports_sub_resources:
                    continue
                candidate = await self._lookup(
                    current,
                    provider,
                    lambda: adapter.resolve_sub_resource(record, hint),
                    step="sub_resource",
                )
                if candidate:
                    return Found(candidate.with_source(provider.label))

        if record.display_name:
            # 3. Title search
            if found := await self._search(current, sources, record.display_name):
                provider, candidate = found
                return Found(candidate.with_source(provider.label))

            # 4. Base title before the colon
            if ":" in record.display_name:
                base = base_title(record.display_name)
                logger.debug("Trying base series search", record_id=record.id, base_title=base)
                if base and (found := await self._search(current, sources, base)):
                    provider, candidate = found
                    return Found(
                        candidate.with_title(record.display_name).with_source(
                            provider.label + SERIES_MATCH_SUFFIX
                        )
                    )

        if current.throttled:
            return RateLimited(providers=tuple(current.throttled), retry_after=current.retry_after)
        return NotFound()

    async def _search(
        self,
        current: _Pass,
        sources: list[Provider],
        title: str,
    ) -> Optional[tuple[Provider, UpdateCandidate]]:
        for provider in sources:
            adapter = self.adapters[provider]
            candidate = await self._lookup(
                current,
                provider,
                lambda: adapter.search_by_title(title, current.record.kind),
                step="title_search",
            )
            if candidate:
                return provider, candidate
        return None

    async def _lookup(
        self,
        current: _Pass,
        provider: Provider,
        call: Callable[[], Awaitable[Optional[UpdateCandidate]]],
        step: str,
    ) -> Optional[UpdateCandidate]:
        """Run one governed provider call and validate its candidate.

        Throttling and provider failures are logged and reported as a miss.
        """
        try:
            candidate = await self.governor.call(provider, call)
        except RateLimitError as e:
            logger.info(
                "Provider rate limited, trying next",
                provider=provider.value,
                step=step,
                record_id=current.record.id,
            )
            current.note_throttled(e)
            return None
        except ProviderNotImplemented as e:
            logger.info("Provider not implemented", provider=provider.value, step=step, reason=str(e))
            return None
        except Exception as e:
            logger.warning(
                "Provider lookup failed",
                provider=provider.value,
                step=step,
                record_id=current.record.id,
                error=str(e),
            )
            return None

        if candidate is None or candidate.numbered_part:
            return candidate

        if not validate_content_match(candidate.title, current.expected_title):
            logger.info(
                "Content validation failed",
                provider=provider.value,
                step=step,
                expected=current.expected_title,
                got=candidate.title,
            )
            return None

        return candidate
