"""
Graph Drive Client
==================
Reads documents from SharePoint / OneDrive drives via Microsoft Graph.

    GET /drives/{drive-id}/items/{item-id}           -> name, file.mimeType
    GET /drives/{drive-id}/items/{item-id}/content   -> 302 to the download URL

A missing drive or item surfaces as ``BackendError(kind=NOT_FOUND,
service="file_store")`` so the API layer can answer 404.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol
import logging

import httpx

from services.errors import BackendError, SERVICE_FILE_STORE, error_kind_for_status, error_kind_for_transport
from utils.file_manager import FileManager

logger = logging.getLogger(__name__)


DEFAULT_GRAPH_URL = "https://graph.microsoft.com/v1.0"


@dataclass(frozen=True)
class DriveItem:
    """Metadata of a drive item."""
    drive_id: str
    item_id: str
    name: str
    mime_type: str = FileManager.DEFAULT_MIME_TYPE
    size: int = 0


class FileStore(Protocol):
    async def get_metadata(self, drive_id: str, item_id: str) -> DriveItem: ...

    async def get_content(self, drive_id: str, item_id: str) -> bytes: ...


class GraphDriveClient:
    """httpx-based ``FileStore`` backed by Microsoft Graph."""

    def __init__(
        self,
        token_provider: Optional[Any] = None,
        base_url: str = DEFAULT_GRAPH_URL,
        scope: str = "https://graph.microsoft.com/.default",
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._scope = scope
        self._tokens = token_provider
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=10.0),
            follow_redirects=True,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, path: str) -> httpx.Response:
        headers: Dict[str, str] = {}
        if self._tokens is not None:
            headers["Authorization"] = f"Bearer {await self._tokens.get_token(self._scope)}"

        try:
            response = await self._client.get(path, headers=headers, follow_redirects=True)
        except httpx.HTTPError as e:
            raise BackendError(
                f"GET {path} failed: {e}",
                kind=error_kind_for_transport(e),
                service=SERVICE_FILE_STORE,
            ) from e

        if response.status_code >= 400:
            raise BackendError(
                f"GET {path} returned {response.status_code}: {response.text}",
                kind=error_kind_for_status(response.status_code),
                service=SERVICE_FILE_STORE,
                status_code=response.status_code,
            )
        return response

    async def get_metadata(self, drive_id: str, item_id: str) -> DriveItem:
        payload = (await self._get(f"/drives/{drive_id}/items/{item_id}")).json()
        file_facet = payload.get("file") or {}
        item = DriveItem(
            drive_id=drive_id,
            item_id=item_id,
            name=payload.get("name") or item_id,
            mime_type=file_facet.get("mimeType") or FileManager.DEFAULT_MIME_TYPE,
            size=payload.get("size") or 0,
        )
        logger.info(f"Retrieved file: {item.name}, Type: {item.mime_type}")
        return item

    async def get_content(self, drive_id: str, item_id: str) -> bytes:
        response = await self._get(f"/drives/{drive_id}/items/{item_id}/content")
        return response.content
