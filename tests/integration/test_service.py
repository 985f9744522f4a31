"""Integration tests for the media update service over mocked providers."""

import io

import httpx
import pytest
from PIL import Image

from timelinemeta.config import Config, ProviderConfig, ReconciliationConfig
from timelinemeta.core.approval import ApprovalWorkflow
from timelinemeta.core.service import MediaUpdateService
from timelinemeta.models.media import MediaRecord
from timelinemeta.models.result import ResultStatus
from timelinemeta.models.update import CoverImageMode, Provider, ReconciliationOptions

OMDB_KEY_PATH = "/Root/System/Settings/ServiceKeys/OMDb"
TMDB_KEY_PATH = "/Root/System/Settings/ServiceKeys/TMDB"

DUNE = {
    "Title": "Dune",
    "Plot": "Paul Atreides travels to Arrakis.",
    "Poster": "http://x/y.jpg",
    "Response": "True",
}


def cover_png():
    buffer = io.BytesIO()
    Image.new("RGB", (30, 40), (10, 120, 200)).save(buffer, format="PNG")
    return buffer.getvalue()


class Upstream:
    """MockTransport handler standing in for OMDb, TMDB and the image host."""

    def __init__(self, omdb=None, tmdb=None):
        self.omdb = omdb or {}
        self.tmdb = tmdb or {}
        self.requests = []
        self.cover = cover_png()

    def __call__(self, request):
        self.requests.append(request)
        if request.url.host == "www.omdbapi.com":
            key = request.url.params.get("i") or request.url.params.get("t")
            body = self.omdb.get(key, {"Response": "False", "Error": "Movie not found!"})
            return httpx.Response(200, json=body)
        if request.url.host == "api.themoviedb.org":
            body = self.tmdb.get(request.url.path)
            return httpx.Response(200, json=body) if body else httpx.Response(404)
        if request.url.host == "x":
            return httpx.Response(200, content=self.cover)
        return httpx.Response(500)

    def hosts(self):
        return [r.url.host for r in self.requests]


@pytest.fixture
def config():
    return Config(reconciliation=ReconciliationConfig(inter_item_delay_seconds=0))


@pytest.fixture
def service_factory(config, governor):
    """Build services wired to an Upstream handler and a store."""

    def factory(upstream, store, cfg=None):
        client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
        return MediaUpdateService.from_config(cfg or config, store, client=client, governor=governor)

    return factory


class TestMediaUpdateService:
    """Test the caller-facing operations end to end."""

    @pytest.mark.asyncio
    async def test_fetch_and_analyze(self, service_factory, make_store, dune_record):
        """Should propose the cover but not the already equal title."""
        store = make_store([dune_record], api_keys={OMDB_KEY_PATH: "omdb-key"})
        service = service_factory(Upstream(omdb={"tt1160419": DUNE}), store)
        options = ReconciliationOptions(only_missing=False, update_titles=True)

        candidate = await service.fetch_update_data(dune_record, options)
        changes = service.analyze_changes(dune_record, candidate, options)

        assert candidate.source == "OMDB"
        assert changes.title is None
        assert changes.cover_image_url == "http://x/y.jpg"

    @pytest.mark.asyncio
    async def test_fetch_not_found(self, service_factory, make_store):
        """Should return None when no provider knows the record."""
        record = MediaRecord(id=9, display_name="Nonexistent Film", media_type="Movie")
        store = make_store([record], api_keys={OMDB_KEY_PATH: "k", TMDB_KEY_PATH: "k"})
        service = service_factory(Upstream(tmdb={"/3/search/movie": {"results": []}}), store)

        assert await service.fetch_update_data(record) is None

    @pytest.mark.asyncio
    async def test_api_keys_read_from_store_per_call(self, service_factory, make_store, dune_record):
        """Should look up service keys on every provider call."""
        store = make_store([dune_record], api_keys={OMDB_KEY_PATH: "omdb-key"})
        upstream = Upstream(omdb={"tt1160419": DUNE})
        service = service_factory(upstream, store)

        await service.process_bulk_update([dune_record, dune_record], ReconciliationOptions())

        assert store.key_lookups == [OMDB_KEY_PATH, OMDB_KEY_PATH]
        assert all(r.url.params["apikey"] == "omdb-key" for r in upstream.requests)

    @pytest.mark.asyncio
    async def test_configured_key_overrides_store(self, service_factory, make_store, dune_record):
        """Should prefer a key from configuration."""
        config = Config(reconciliation=ReconciliationConfig(inter_item_delay_seconds=0))
        config.providers.omdb = ProviderConfig(base_url="https://www.omdbapi.com/", api_key="configured")
        store = make_store([dune_record], api_keys={OMDB_KEY_PATH: "stored"})
        upstream = Upstream(omdb={"tt1160419": DUNE})
        service = service_factory(upstream, store, cfg=config)

        await service.fetch_update_data(dune_record)

        assert store.key_lookups == []
        assert upstream.requests[0].url.params["apikey"] == "configured"

    @pytest.mark.asyncio
    async def test_provider_timeouts_applied(self, service_factory, make_store, dune_record):
        """Should send each provider's configured timeout with its requests."""
        store = make_store([dune_record], api_keys={OMDB_KEY_PATH: "k"})
        upstream = Upstream(omdb={"tt1160419": DUNE})
        config = Config(reconciliation=ReconciliationConfig(inter_item_delay_seconds=0))
        config.providers.omdb.timeout_seconds = 2.5
        config.providers.tmdb.timeout_seconds = 4.0
        service = service_factory(upstream, store, cfg=config)

        await service.fetch_update_data(dune_record)

        assert upstream.requests[0].extensions["timeout"]["read"] == 2.5
        assert service.resolver.adapters[Provider.TMDB].timeout == 4.0

    @pytest.mark.asyncio
    async def test_quota_exhaustion_reported_as_rate_limited(self, service_factory, make_store, dune_record):
        """Should surface OMDb quota errors as rate limited, not as a mismatch."""
        store = make_store([dune_record], api_keys={OMDB_KEY_PATH: "k"})
        upstream = Upstream(omdb={"tt1160419": {"Response": "False", "Error": "Daily limit exceeded!"}})
        config = Config(reconciliation=ReconciliationConfig(inter_item_delay_seconds=0))
        config.providers.tmdb.enabled = False
        service = service_factory(upstream, store, cfg=config)

        results = await service.process_bulk_update([dune_record], ReconciliationOptions())

        assert results[0].status == ResultStatus.RATE_LIMITED
        assert len(upstream.requests) == 1


class TestBinaryCoverFlow:
    """Test preview and commit with binary covers."""

    @pytest.mark.asyncio
    async def test_preview_then_commit(self, service_factory, make_store, dune_record):
        """Should only download and upload the cover when committing."""
        store = make_store([dune_record], api_keys={OMDB_KEY_PATH: "k"})
        upstream = Upstream(omdb={"tt1160419": DUNE})
        service = service_factory(upstream, store)
        options = ReconciliationOptions(only_missing=False, cover_image_mode=CoverImageMode.BINARY)

        preview = await service.process_bulk_update([dune_record], options, is_preview=True)

        assert preview[0].change_set.binary_cover
        assert "x" not in upstream.hosts()
        assert store.binaries == [] and store.updates == []

        await service.process_bulk_update([dune_record], options, is_preview=False)

        assert upstream.hosts().count("x") == 1
        record_id, blob, file_name = store.binaries[0]
        assert (record_id, file_name) == (1, "cover.jpg")
        with Image.open(io.BytesIO(blob)) as image:
            assert image.size == (360, 480)
        assert store.updates == [(1, {"Description": "Paul Atreides travels to Arrakis."})]


class TestWorkflowOverService:
    """Test the approval workflow on top of the service."""

    @pytest.mark.asyncio
    async def test_approve_and_commit(self, service_factory, make_store):
        """Should commit only the approved items."""
        records = [
            MediaRecord(id=1, display_name="Dune", media_type="Movie", external_links='{"imdb":"tt1160419"}'),
            MediaRecord(id=2, display_name="Heat", media_type="Movie"),
        ]
        store = make_store(records, api_keys={OMDB_KEY_PATH: "k"})
        upstream = Upstream(
            omdb={
                "tt1160419": DUNE,
                "Heat": {"Title": "Heat", "Plot": "Cops and robbers.", "Response": "True"},
            }
        )
        workflow = ApprovalWorkflow(service_factory(upstream, store), records)
        options = ReconciliationOptions(preferred_sources=[Provider.OMDB])

        items = await workflow.preview(options)
        assert [item.approved for item in items] == [True, True]
        workflow.set_approval(1, False)
        summary = await workflow.confirm()

        assert summary.success == 1
        assert [record_id for record_id, _ in store.updates] == [1]
        assert records[0].cover_image_url == "http://x/y.jpg"
        assert records[1].description is None

    @pytest.mark.asyncio
    async def test_commit_throttled_after_preview(self, service_factory, make_store, dune_record):
        """Should report a commit cut off by the OMDb quota as skipped."""
        store = make_store([dune_record], api_keys={OMDB_KEY_PATH: "k"})
        upstream = Upstream(omdb={"tt1160419": DUNE})
        workflow = ApprovalWorkflow(service_factory(upstream, store), [dune_record])

        items = await workflow.preview(ReconciliationOptions(preferred_sources=[Provider.OMDB]))
        assert items[0].approved

        upstream.omdb["tt1160419"] = {"Response": "False", "Error": "Request limit reached!"}
        summary = await workflow.confirm()

        assert summary.success == 0
        assert summary.failed == 0
        assert summary.skipped == 1
        assert summary.notes == ["Dune: rate limited, not updated"]
        assert store.updates == []
