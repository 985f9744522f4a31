"""Trakt adapter.

Trakt takes part in provider ordering but its API calls are not
implemented; every lookup raises ProviderNotImplemented so the resolver
can report it instead of treating it as an empty answer.
"""

from typing import Optional

from timelinemeta.errors import ProviderNotImplemented
from timelinemeta.models.media import EpisodeHint, MediaKind, MediaRecord
from timelinemeta.models.update import Provider, UpdateCandidate


class TraktAdapter:
    """Placeholder adapter for Trakt."""

    provider = Provider.TRAKT
    supports_sub_resources = False

    async def fetch_by_id(
        self,
        identifier: str,
        media_kind: MediaKind,
        hint: Optional[EpisodeHint] = None,
    ) -> Optional[UpdateCandidate]:
        raise ProviderNotImplemented(f"Trakt lookup not implemented (slug {identifier})")

    async def search_by_title(
        self,
        title: str,
        media_kind: MediaKind,
    ) -> Optional[UpdateCandidate]:
        raise ProviderNotImplemented("Trakt title search not implemented")

    async def resolve_sub_resource(
        self,
        record: MediaRecord,
        hint: Optional[EpisodeHint],
    ) -> Optional[UpdateCandidate]:
        return None
