"""Content store interface used by the reconciliation engine."""

from typing import Any, Optional, Protocol

from timelinemeta.models.media import MediaRecord


class ContentStore(Protocol):
    """Repository holding media records.

    The engine reads records, writes partial field updates, uploads cover
    binaries and reads provider service keys. Authentication is the
    store's concern.
    """

    async def read(self, record_id: int) -> MediaRecord:
        ...

    async def update(self, record_id: int, fields: dict[str, Any]) -> MediaRecord:
        ...

    async def put_binary(self, record: MediaRecord, blob: bytes, file_name: str) -> None:
        ...

    async def load_api_key(self, path: str) -> Optional[str]:
        ...
