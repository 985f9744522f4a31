"""Unit tests for the Trakt adapter."""

import pytest

from timelinemeta.errors import ProviderError, ProviderNotImplemented
from timelinemeta.metadata.trakt import TraktAdapter
from timelinemeta.models.media import MediaKind, MediaRecord


class TestTraktAdapter:
    """Test the Trakt placeholder."""

    @pytest.mark.asyncio
    async def test_lookups_not_implemented(self):
        """Should report lookups as not implemented."""
        adapter = TraktAdapter()

        with pytest.raises(ProviderNotImplemented):
            await adapter.fetch_by_id("dune-2021", MediaKind.MOVIE)
        with pytest.raises(ProviderNotImplemented):
            await adapter.search_by_title("Dune", MediaKind.MOVIE)

    @pytest.mark.asyncio
    async def test_not_implemented_is_provider_error(self):
        """Should raise a ProviderError subclass."""
        with pytest.raises(ProviderError):
            await TraktAdapter().fetch_by_id("dune-2021", MediaKind.MOVIE)

    @pytest.mark.asyncio
    async def test_no_sub_resources(self):
        """Should not resolve seasons or episodes."""
        adapter = TraktAdapter()

        assert not adapter.supports_sub_resources
        assert await adapter.resolve_sub_resource(MediaRecord(id=1), None) is None

