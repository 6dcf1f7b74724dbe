"""
Upload, download and listing between HTTP clients and Drive.

Uploads forward the received file object to Drive as a stream; downloads
relay Drive's content chunk by chunk. Neither direction holds the whole
payload in memory on our side beyond what the HTTP layer already spooled.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator, BinaryIO, Optional
from urllib.parse import quote

from .categories import CategoryResolver
from .errors import PayloadTooLargeError, StreamError, UpstreamError, ValidationError
from .models import DEFAULT_MIME_TYPE, DriveItem, FolderListing, partition_items

if TYPE_CHECKING:
    from ..infrastructure.drive.client import DriveClient

logger = logging.getLogger(__name__)

# characters encodeURIComponent leaves alone, so browsers decode the name the same way
_FILENAME_SAFE = "-_.!~*'()"


def content_disposition(file_name: str) -> str:
    """Attachment header with the file name percent-encoded."""
    return f'attachment; filename="{quote(file_name, safe=_FILENAME_SAFE)}"'


@dataclass
class Download:
    """
    A download whose first chunk has already been fetched.

    Iterating `chunks()` yields the rest lazily. The Drive iterator is
    closed when iteration ends for any reason, including the client
    going away mid-transfer.
    """
    item: DriveItem
    first_chunk: bytes
    _remaining: Optional[AsyncIterator[bytes]]

    @property
    def media_type(self) -> str:
        return self.item.mime_type or DEFAULT_MIME_TYPE

    @property
    def content_disposition(self) -> str:
        return content_disposition(self.item.name)

    async def chunks(self) -> AsyncIterator[bytes]:
        sent = 0
        try:
            if self.first_chunk:
                sent += len(self.first_chunk)
                yield self.first_chunk
            if self._remaining is None:
                return
            async for chunk in self._remaining:
                sent += len(chunk)
                yield chunk
        except UpstreamError as e:
            logger.error(
                "Download failed mid-stream",
                extra={"file_id": self.item.id, "bytes_sent": sent, "error": e.message}
            )
            raise StreamError(e.message)
        except (GeneratorExit, asyncio.CancelledError):
            logger.info(
                "Client disconnected during download",
                extra={"file_id": self.item.id, "bytes_sent": sent}
            )
            raise
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        remaining, self._remaining = self._remaining, None
        if remaining is not None:
            await remaining.aclose()


class TransferProxy:
    """
    Moves files between HTTP requests and Drive.

    Validation happens before any Drive call: a missing file or one over
    the size ceiling never provisions a category or starts an upload.
    """

    def __init__(
        self,
        drive: "DriveClient",
        resolver: CategoryResolver,
        max_upload_bytes: int,
        list_page_size: int = 1000,
        chunk_size: int = 1024 * 1024,
    ) -> None:
        self._drive = drive
        self._resolver = resolver
        self._max_upload_bytes = max_upload_bytes
        self._list_page_size = list_page_size
        self._chunk_size = chunk_size

    @property
    def max_upload_bytes(self) -> int:
        return self._max_upload_bytes

    def check_upload_size(self, size: Optional[int]) -> None:
        """Reject payloads over the ceiling. Unknown size passes."""
        if size is not None and size > self._max_upload_bytes:
            limit_mb = self._max_upload_bytes // (1024 * 1024)
            raise PayloadTooLargeError(f"File too large. Maximum size: {limit_mb}MB")

    async def upload(
        self,
        category: Optional[str],
        file_name: Optional[str],
        mime_type: Optional[str],
        source: Optional[BinaryIO],
        size: Optional[int],
    ) -> DriveItem:
        """
        Upload a file into a category folder.

        Returns only after Drive has created the file. An empty file counts
        as no file. On failure nothing is cleaned up; a folder provisioned
        for the category stays.
        """
        if source is None or not file_name or size == 0:
            raise ValidationError("No file uploaded")
        self.check_upload_size(size)

        folder_id = await self._resolver.resolve(category)

        logger.info(
            "Upload started",
            extra={
                "category": self._resolver.normalize(category),
                "file_name": file_name,
                "size_bytes": size,
            }
        )

        item = await self._drive.create_file(
            name=file_name,
            mime_type=mime_type or DEFAULT_MIME_TYPE,
            stream=source,
            parent_id=folder_id,
        )

        logger.info(
            "Upload finished",
            extra={"file_id": item.id, "folder_id": folder_id, "size_bytes": item.size}
        )
        return item

    async def open_download(self, file_id: str) -> Download:
        """
        Fetch metadata and the first chunk of a file.

        Any failure here happens before a response is started, so the
        caller can still answer with an error body.
        """
        item = await self._drive.get_metadata(file_id)

        logger.info(
            "Download started",
            extra={"file_id": file_id, "file_name": item.name, "size_bytes": item.size}
        )

        remaining = self._drive.iter_content(file_id, self._chunk_size)
        try:
            first_chunk = await remaining.__anext__()
        except StopAsyncIteration:
            return Download(item=item, first_chunk=b"", _remaining=None)
        except BaseException:
            await remaining.aclose()
            raise

        return Download(item=item, first_chunk=first_chunk, _remaining=remaining)

    async def list_folder(self, folder_id: Optional[str] = None) -> FolderListing:
        """List one page of a folder's children. Defaults to the root folder."""
        folder_id = folder_id or self._resolver.root_folder_id
        items = await self._drive.list_children(folder_id, self._list_page_size)
        folders, files = partition_items(items)
        return FolderListing(folder_id=folder_id, folders=folders, files=files)

    async def list_category(self, category: Optional[str]) -> FolderListing:
        """
        List a category's folder.

        A category that is unknown or not provisioned yet lists as empty;
        listing never creates folders.
        """
        folder_id = self._resolver.lookup(category)
        if not folder_id:
            return FolderListing.empty()
        return await self.list_folder(folder_id)
