"""Shared pytest fixtures for timelinemeta tests."""

from dataclasses import replace
from typing import Optional

import pytest

from timelinemeta.config import RateLimitConfig, ReconciliationConfig
from timelinemeta.errors import ContentStoreError
from timelinemeta.metadata.ratelimit import RateLimitGovernor
from timelinemeta.models.media import EpisodeHint, MediaKind, MediaRecord
from timelinemeta.models.update import Provider, ReconciliationOptions, UpdateCandidate

_FIELD_NAMES = {
    "DisplayName": "display_name",
    "Description": "description",
    "CoverImageUrl": "cover_image_url",
}


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeContentStore:
    """In-memory content store recording every call."""

    def __init__(self, records=(), api_keys: Optional[dict] = None, fail_updates=()):
        self.records = {r.id: r for r in records}
        self.api_keys = api_keys or {}
        self.fail_updates = set(fail_updates)
        self.updates: list[tuple[int, dict]] = []
        self.binaries: list[tuple[int, bytes, str]] = []
        self.key_lookups: list[str] = []

    async def read(self, record_id: int) -> MediaRecord:
        return replace(self.records[record_id])

    async def update(self, record_id: int, fields: dict) -> MediaRecord:
        if record_id in self.fail_updates:
            raise ContentStoreError(f"write failed for {record_id}")
        self.updates.append((record_id, dict(fields)))
        record = self.records[record_id]
        for store_name, value in fields.items():
            setattr(record, _FIELD_NAMES[store_name], value)
        return replace(record)

    async def put_binary(self, record: MediaRecord, blob: bytes, file_name: str) -> None:
        self.binaries.append((record.id, blob, file_name))

    async def load_api_key(self, path: str) -> Optional[str]:
        self.key_lookups.append(path)
        return self.api_keys.get(path)


class FakeAdapter:
    """Provider adapter answering from dictionaries.

    Values may be exceptions, which are raised instead of returned.
    """

    def __init__(
        self,
        provider: Provider,
        by_id: Optional[dict] = None,
        by_title: Optional[dict] = None,
        sub_resource=None,
        supports_sub_resources: bool = False,
    ):
        self.provider = provider
        self.by_id = by_id or {}
        self.by_title = by_title or {}
        self.sub_resource = sub_resource
        self.supports_sub_resources = supports_sub_resources
        self.calls: list[tuple] = []

    @staticmethod
    def _answer(value):
        if isinstance(value, Exception):
            raise value
        return value

    async def fetch_by_id(self, identifier: str, media_kind: MediaKind, hint: Optional[EpisodeHint] = None):
        self.calls.append(("id", identifier, media_kind, hint))
        return self._answer(self.by_id.get(identifier))

    async def search_by_title(self, title: str, media_kind: MediaKind):
        self.calls.append(("title", title, media_kind))
        return self._answer(self.by_title.get(title))

    async def resolve_sub_resource(self, record: MediaRecord, hint: Optional[EpisodeHint]):
        self.calls.append(("sub_resource", record.id, hint))
        return self._answer(self.sub_resource)


@pytest.fixture
def clock():
    """Fake clock/sleep pair."""
    return FakeClock()


@pytest.fixture
def governor(clock):
    """Governor with default backoffs and instant sleeps."""
    return RateLimitGovernor(RateLimitConfig(), clock=clock, sleep=clock.sleep)


@pytest.fixture
def fast_config():
    """Runner configuration without inter-item delay."""
    return ReconciliationConfig(inter_item_delay_seconds=0)


@pytest.fixture
def overwrite_options():
    """Overwrite all fields, default provider order."""
    return ReconciliationOptions(only_missing=False)


@pytest.fixture
def dune_record():
    """Movie record with an IMDb id and no cover."""
    return MediaRecord(
        id=1,
        display_name="Dune",
        description="Old plot",
        media_type="Movie",
        external_links='{"imdb":"tt1160419"}',
    )


@pytest.fixture
def dune_candidate():
    """OMDb candidate for Dune."""
    return UpdateCandidate(
        title="Dune",
        description="Paul Atreides travels to Arrakis.",
        cover_image_url="http://x/y.jpg",
        release_date="22 Oct 2021",
        runtime=155,
        genres=("Action", "Adventure"),
    )


@pytest.fixture
def make_store():
    """Factory for in-memory content stores."""
    return FakeContentStore


@pytest.fixture
def make_adapter():
    """Factory for dictionary-backed provider adapters."""
    return FakeAdapter
