"""
Ephemeral File Handler
======================
Uploads a document to the agent backend for the duration of one analysis
call and guarantees its deletion afterwards.

Usage:
    handler = EphemeralFileHandler(backend)
    async with handler.open(data, "document_a1b2c3d4.pdf", call_id="a1b2c3d4") as uploaded:
        ...  # uploaded.id is valid here, deleted on every exit path
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import logging

from services.agent_backend import AgentBackend, FILE_PURPOSE_AGENTS, UploadedFile

logger = logging.getLogger(__name__)


class EphemeralFileHandler:
    """Upload / delete of per-call document files."""

    def __init__(self, backend: AgentBackend):
        self._backend = backend

    async def upload(
        self,
        data: bytes,
        filename: str,
        purpose: str = FILE_PURPOSE_AGENTS,
        call_id: Optional[str] = None,
    ) -> UploadedFile:
        """Upload ``data``. BackendError propagates to the caller."""
        uploaded = await self._backend.upload_file(data, filename, purpose)
        logger.info(f"{call_id} : Uploaded file. File ID: {uploaded.id}, Filename: {uploaded.filename}")
        return uploaded

    async def delete(self, uploaded: UploadedFile, call_id: Optional[str] = None) -> bool:
        """
        Delete an uploaded file.

        Never raises: a failed delete must not mask the call's result or error.

        Returns:
            True if the backend confirmed the delete
        """
        try:
            await self._backend.delete_file(uploaded.id)
            logger.info(f"{call_id} : Deleted file with ID: {uploaded.id}")
            return True
        except Exception as e:
            logger.error(f"{call_id} : Failed to delete file {uploaded.id}: {e}")
            return False

    @asynccontextmanager
    async def scoped(self, uploaded: UploadedFile, call_id: Optional[str] = None) -> AsyncIterator[UploadedFile]:
        """Own an already uploaded file: it is deleted exactly once when the block exits."""
        try:
            yield uploaded
        finally:
            await self.delete(uploaded, call_id=call_id)

    @asynccontextmanager
    async def open(
        self,
        data: bytes,
        filename: str,
        purpose: str = FILE_PURPOSE_AGENTS,
        call_id: Optional[str] = None,
    ) -> AsyncIterator[UploadedFile]:
        """Upload on entry, delete on exit."""
        uploaded = await self.upload(data, filename, purpose, call_id=call_id)
        async with self.scoped(uploaded, call_id=call_id) as owned:
            yield owned
