"""sensenet OData repository client implementing ContentStore."""

import json
from typing import Any, Optional

import httpx

from timelinemeta.config import StoreConfig
from timelinemeta.errors import ContentStoreError
from timelinemeta.models.media import MediaRecord
from timelinemeta.utils.logger import get_logger

logger = get_logger(__name__)

RECORD_FIELDS = [
    "Id",
    "ParentId",
    "Name",
    "DisplayName",
    "Description",
    "MediaType",
    "CoverImageUrl",
    "ExternalLinks",
    "Subtitle",
    "Title",
]

# Binary field receiving uploaded covers
COVER_PROPERTY = "CoverImageBin"
MEDIA_ITEM_CONTENT_TYPE = "MediaItem"


class SenseNetContentStore:
    """Reads and writes media items through the sensenet OData API."""

    def __init__(self, config: StoreConfig, client: Optional[httpx.AsyncClient] = None):
        """Initialize store client.

        Args:
            config: Repository URL, token and timeout
            client: Shared HTTP client (one is created if omitted)
        """
        self.base_url = config.repository_url.rstrip("/")
        headers = {"Accept": "application/json"}
        if config.access_token:
            headers["Authorization"] = f"Bearer {config.access_token}"
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=config.timeout_seconds)
        self.headers = headers

    async def close(self):
        """Close HTTP client if this store created it."""
        if self._owns_client:
            await self.client.aclose()

    def _content_url(self, record_id: int) -> str:
        return f"{self.base_url}/odata.svc/content({record_id})"

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, url, headers=self.headers, **kwargs)
        except httpx.HTTPError as e:
            raise ContentStoreError(f"Repository request failed: {e}") from e

        if not response.is_success:
            logger.error(
                "Repository API error",
                method=method,
                url=url,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise ContentStoreError(
                f"Repository returned {response.status_code} for {method} {url}"
            )
        return response

    @staticmethod
    def _body(response: httpx.Response) -> dict:
        try:
            data = response.json()
        except ValueError as e:
            raise ContentStoreError("Repository returned non-JSON body") from e
        return data.get("d", data) if isinstance(data, dict) else {}

    async def read(self, record_id: int) -> MediaRecord:
        """Load a media record by content id."""
        response = await self._send(
            "GET",
            self._content_url(record_id),
            params={"metadata": "no", "$select": ",".join(RECORD_FIELDS)},
        )
        return MediaRecord.from_content(self._body(response))

    async def update(self, record_id: int, fields: dict[str, Any]) -> MediaRecord:
        """Patch the given fields of a media record.

        Args:
            record_id: Content id
            fields: Repository field names to values

        Returns:
            Updated record as returned by the repository
        """
        logger.info("Updating media item", record_id=record_id, fields=sorted(fields))
        response = await self._send(
            "PATCH",
            self._content_url(record_id),
            params={"metadata": "no", "$select": ",".join(RECORD_FIELDS)},
            data={"models": json.dumps([fields])},
        )
        return MediaRecord.from_content({"Id": record_id, **self._body(response)})

    async def put_binary(self, record: MediaRecord, blob: bytes, file_name: str) -> None:
        """Upload a cover image into the record's binary cover field.

        The upload goes to the record's parent container, addressed by the
        record's content name.

        Raises:
            ContentStoreError: If the record cannot be resolved or the upload fails
        """
        name, parent_id = record.name, record.parent_id
        if not name or parent_id is None:
            fresh = await self.read(record.id)
            name, parent_id = fresh.name, fresh.parent_id
        if not name or parent_id is None:
            raise ContentStoreError(f"Cannot resolve name/parent for content {record.id}")

        form = {
            "ChunkToken": "0*0*False*False",
            "FileName": name,
            "Overwrite": "true",
            "PropertyName": COVER_PROPERTY,
            "FileLength": str(len(blob)),
            "ContentType": MEDIA_ITEM_CONTENT_TYPE,
        }
        files = {name: (file_name, blob, "image/jpeg")}
        url = f"{self.base_url}/odata.svc/content({parent_id})/upload"

        logger.info("Uploading cover image", record_id=record.id, size=len(blob), url=url)
        await self._send("POST", url, data=form, files=files)

    async def load_api_key(self, path: str) -> Optional[str]:
        """Read the ApiKey field of a service key content item.

        Failures are logged and reported as a missing key.
        """
        url = f"{self.base_url}/OData.svc{path}"
        try:
            response = await self._send(
                "GET", url, params={"$select": "ApiKey", "metadata": "none"}
            )
            return self._body(response).get("ApiKey") or None
        except ContentStoreError as e:
            logger.error("Failed to load API key", path=path, error=str(e))
            return None
