"""Download, resize and upload cover images as repository binaries."""

import io
from typing import Optional

import httpx
import structlog
from PIL import Image

from timelinemeta.config import ReconciliationConfig
from timelinemeta.models.media import MediaRecord
from timelinemeta.store.base import ContentStore

logger = structlog.get_logger(__name__)


def resize_image(data: bytes, width: int, height: int, quality: int = 92) -> bytes:
    """Scale an image to exactly width x height and encode it as JPEG.

    Args:
        data: Source image bytes in any format Pillow reads
        width: Target width in px
        height: Target height in px
        quality: JPEG quality

    Returns:
        JPEG bytes
    """
    with Image.open(io.BytesIO(data)) as image:
        resized = image.convert("RGB").resize((width, height), Image.Resampling.LANCZOS)
    buffer = io.BytesIO()
    resized.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


class CoverImageIngestor:
    """Turns a cover URL into an uploaded binary cover."""

    def __init__(
        self,
        store: ContentStore,
        config: Optional[ReconciliationConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize ingestor.

        Args:
            store: Content store receiving the binary
            config: Target dimensions and JPEG quality
            client: Shared HTTP client (one is created if omitted)
        """
        self.store = store
        self.config = config or ReconciliationConfig()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=30.0, follow_redirects=True)

    async def close(self):
        """Close HTTP client if this ingestor created it."""
        if self._owns_client:
            await self.client.aclose()

    async def download(self, url: str) -> bytes:
        response = await self.client.get(url)
        response.raise_for_status()
        return response.content

    async def ingest(self, record: MediaRecord, url: str) -> None:
        """Download, resize and upload a cover image.

        Raises:
            Exception: Any download, decode or upload failure
        """
        original = await self.download(url)
        resized = resize_image(
            original,
            self.config.cover_width,
            self.config.cover_height,
            self.config.cover_quality,
        )
        await self.store.put_binary(record, resized, "cover.jpg")
        logger.info(
            "Cover image uploaded",
            record_id=record.id,
            url=url,
            original_size=len(original),
            uploaded_size=len(resized),
        )
