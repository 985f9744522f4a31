"""Provider adapter contract, API key lookup and tagged lookup results."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Protocol, Union, runtime_checkable

import httpx
import structlog

from timelinemeta.config import ProvidersConfig
from timelinemeta.errors import ProviderError
from timelinemeta.models.media import EpisodeHint, MediaKind, MediaRecord
from timelinemeta.models.update import Provider, UpdateCandidate

if TYPE_CHECKING:
    from timelinemeta.store.base import ContentStore

logger = structlog.get_logger(__name__)


@runtime_checkable
class ProviderAdapter(Protocol):
    """Translates identifiers or titles into candidates for one catalog."""

    provider: Provider
    supports_sub_resources: bool

    async def fetch_by_id(
        self,
        identifier: str,
        media_kind: MediaKind,
        hint: Optional[EpisodeHint] = None,
    ) -> Optional[UpdateCandidate]:
        ...

    async def search_by_title(
        self,
        title: str,
        media_kind: MediaKind,
    ) -> Optional[UpdateCandidate]:
        ...

    async def resolve_sub_resource(
        self,
        record: MediaRecord,
        hint: Optional[EpisodeHint],
    ) -> Optional[UpdateCandidate]:
        ...


class ApiKeyResolver:
    """Looks up provider API keys on every call.

    A key set in configuration wins; otherwise the service key content in
    the repository is read.
    """

    def __init__(self, providers: ProvidersConfig, store: Optional["ContentStore"] = None):
        self.providers = providers
        self.store = store

    async def get(self, provider: Provider) -> Optional[str]:
        cfg = self.providers.for_provider(provider)
        if cfg.api_key:
            return cfg.api_key
        if self.store is None or not cfg.api_key_path:
            return None
        return await self.store.load_api_key(cfg.api_key_path)


@dataclass(frozen=True)
class Found:
    """A validated candidate."""

    candidate: UpdateCandidate


@dataclass(frozen=True)
class NotFound:
    """No provider produced a usable candidate."""

    pass


@dataclass(frozen=True)
class RateLimited:
    """Nothing was found and at least one provider was throttled."""

    providers: tuple[Provider, ...] = field(default_factory=tuple)
    retry_after: Optional[float] = None


LookupResult = Union[Found, NotFound, RateLimited]


class HttpProviderAdapter:
    """Shared plumbing for HTTP-backed adapters: client ownership and keys."""

    provider: Provider
    supports_sub_resources = False

    def __init__(
        self,
        base_url: str,
        keys: ApiKeyResolver,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        """Initialize adapter.

        Args:
            base_url: API base URL
            keys: API key resolver, consulted on every call
            client: Shared HTTP client (one is created if omitted)
            timeout: Per-request timeout in seconds, also used for an owned client
        """
        self.base_url = base_url.rstrip("/")
        self.keys = keys
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self):
        """Close HTTP client if this adapter created it."""
        if self._owns_client:
            await self.client.aclose()

    async def _api_key(self) -> Optional[str]:
        key = await self.keys.get(self.provider)
        if not key:
            logger.warning("API key not configured", provider=self.provider.value)
        return key

    async def _get(self, url: str, params: dict) -> httpx.Response:
        try:
            return await self.client.get(url, params=params, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.provider.label} request failed: {e}") from e

    async def resolve_sub_resource(
        self,
        record: MediaRecord,
        hint: Optional[EpisodeHint],
    ) -> Optional[UpdateCandidate]:
        return None


def retry_after_seconds(response: httpx.Response) -> Optional[float]:
    """Parse a numeric Retry-After header."""
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None
