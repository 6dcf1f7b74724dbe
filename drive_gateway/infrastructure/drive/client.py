"""
Google Drive client for the gateway.

Wraps the Drive v3 API behind a small async protocol: folder lookup and
creation, single-page listing, file creation from a stream, metadata and
chunked content retrieval.

The Google client library is synchronous, so every call runs in the
thread pool. httplib2 connections are not thread-safe, which is why each
operation gets its own authorized HTTP object instead of sharing the one
bound to the service.

Mock mode keeps an in-memory folder tree with the same semantics, enabling
API testing without a service account.
"""

import base64
import binascii
import io
import json
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, AsyncIterator, BinaryIO, Callable, Optional, Protocol, TypeVar

import google_auth_httplib2
import httplib2
from fastapi.concurrency import run_in_threadpool
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from ...core.errors import ConfigurationError, NotFoundError, UpstreamError
from ...core.models import DEFAULT_MIME_TYPE, FOLDER_MIME_TYPE, DriveItem

logger = logging.getLogger(__name__)

T = TypeVar("T")

LIST_FIELDS = "files(id,name,mimeType,size,webViewLink,createdTime)"
UPLOAD_FIELDS = "id,name,mimeType,size,webViewLink"
METADATA_FIELDS = "id,name,mimeType,size"
FOLDER_FIELDS = "id,name,mimeType,parents"

# resumable upload chunks must be a multiple of 256 KiB
UPLOAD_CHUNK_SIZE = 8 * 1024 * 1024


@dataclass
class DriveConfig:
    """
    Configuration for the Google Drive client.

    The service account key is kept as parsed JSON; the Google auth
    library accepts it in memory, so it never touches the filesystem.
    """
    service_account_info: dict[str, Any]
    scopes: list[str] = field(
        default_factory=lambda: ["https://www.googleapis.com/auth/drive"]
    )


class DriveClient(Protocol):
    """
    Protocol for the Drive operations the gateway needs.

    Using a protocol means tests can provide fakes and the resolver and
    transfer proxy never import the Google client library.
    """

    async def find_folder(self, name: str, parent_id: str) -> Optional[str]:
        """Return the id of a non-trashed folder named `name` under `parent_id`."""
        ...

    async def create_folder(self, name: str, parent_id: str) -> DriveItem:
        """Create a folder under `parent_id`."""
        ...

    async def list_children(self, parent_id: str, page_size: int) -> list[DriveItem]:
        """List one page of non-trashed children of `parent_id`."""
        ...

    async def create_file(
        self,
        name: str,
        mime_type: str,
        stream: BinaryIO,
        parent_id: str,
    ) -> DriveItem:
        """Create a file from a readable stream. Returns once Drive confirms."""
        ...

    async def get_metadata(self, file_id: str) -> DriveItem:
        """Fetch name, MIME type and size of a file."""
        ...

    def iter_content(self, file_id: str, chunk_size: int) -> AsyncIterator[bytes]:
        """Yield the file's bytes in chunks of at most `chunk_size`."""
        ...


def load_service_account_info(encoded: str) -> dict[str, Any]:
    """Decode the base64 service account blob into its JSON key."""
    try:
        raw = base64.b64decode(encoded, validate=False)
        info = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise ConfigurationError(f"SERVICE_ACCOUNT_JSON_BASE64 is not valid base64 JSON: {e}")

    if not isinstance(info, dict):
        raise ConfigurationError("SERVICE_ACCOUNT_JSON_BASE64 must decode to a JSON object")

    return info


def escape_query_value(value: str) -> str:
    """Escape a string literal for a Drive `q` expression."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class GoogleDriveClient:
    """
    Drive v3 client authenticated with a service account.

    All methods are async to match the protocol; the blocking library
    calls are pushed to the thread pool so the event loop keeps serving
    other requests while Drive responds.
    """

    def __init__(self, config: DriveConfig) -> None:
        try:
            self._credentials = service_account.Credentials.from_service_account_info(
                config.service_account_info,
                scopes=config.scopes,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid service account key: {e}")

        self._service = build(
            "drive",
            "v3",
            credentials=self._credentials,
            cache_discovery=False,
        )

        logger.info(
            "Initialized Google Drive client",
            extra={
                "service_account": config.service_account_info.get("client_email"),
                "scopes": config.scopes,
            }
        )

    def _http(self) -> google_auth_httplib2.AuthorizedHttp:
        """Fresh authorized transport for a single operation."""
        return google_auth_httplib2.AuthorizedHttp(self._credentials, http=httplib2.Http())

    async def _run(self, operation: str, func: Callable[[], T], **context: Any) -> T:
        """Run a blocking Drive call in the thread pool and translate failures."""
        try:
            return await run_in_threadpool(func)
        except HttpError as e:
            status = e.resp.status if e.resp is not None else None
            message = getattr(e, "reason", None) or str(e)
            logger.error(
                f"Drive {operation} failed",
                extra={**context, "status": status, "error": message}
            )
            if status == 404:
                raise NotFoundError(message, backend_status=status)
            raise UpstreamError(message, backend_status=status)
        except Exception as e:
            logger.error(
                f"Drive {operation} failed",
                extra={**context, "error": str(e)}
            )
            raise UpstreamError(str(e))

    async def find_folder(self, name: str, parent_id: str) -> Optional[str]:
        query = (
            f"name='{escape_query_value(name)}' and "
            f"'{escape_query_value(parent_id)}' in parents and "
            f"mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        )

        def _search() -> dict[str, Any]:
            return self._service.files().list(
                q=query,
                fields="files(id,name)",
                pageSize=5,
                supportsAllDrives=True,
                includeItemsFromAllDrives=True,
            ).execute(http=self._http())

        result = await self._run("folder search", _search, folder_name=name, parent_id=parent_id)
        matches = result.get("files") or []
        return matches[0]["id"] if matches else None

    async def create_folder(self, name: str, parent_id: str) -> DriveItem:
        body = {"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]}

        def _create() -> dict[str, Any]:
            return self._service.files().create(
                body=body,
                fields=FOLDER_FIELDS,
                supportsAllDrives=True,
            ).execute(http=self._http())

        created = await self._run("folder create", _create, folder_name=name, parent_id=parent_id)
        logger.info("Created Drive folder", extra={"folder_name": name, "folder_id": created.get("id")})
        return DriveItem.from_api(created)

    async def list_children(self, parent_id: str, page_size: int) -> list[DriveItem]:
        query = f"'{escape_query_value(parent_id)}' in parents and trashed=false"

        def _list() -> dict[str, Any]:
            return self._service.files().list(
                q=query,
                fields=LIST_FIELDS,
                pageSize=page_size,
                supportsAllDrives=True,
                includeItemsFromAllDrives=True,
            ).execute(http=self._http())

        result = await self._run("list", _list, parent_id=parent_id)
        return [DriveItem.from_api(item) for item in result.get("files") or []]

    async def create_file(
        self,
        name: str,
        mime_type: str,
        stream: BinaryIO,
        parent_id: str,
    ) -> DriveItem:
        """
        Create a file from a readable stream.

        The stream is sent in UPLOAD_CHUNK_SIZE pieces over a resumable
        upload session, so only one chunk is read into memory at a time.
        Drive answers with the file's metadata after the last chunk.
        """
        media = MediaIoBaseUpload(
            stream,
            mimetype=mime_type or DEFAULT_MIME_TYPE,
            chunksize=UPLOAD_CHUNK_SIZE,
            resumable=True,
        )
        body = {"name": name, "parents": [parent_id]}

        def _upload() -> dict[str, Any]:
            request = self._service.files().create(
                body=body,
                media_body=media,
                fields=UPLOAD_FIELDS,
                supportsAllDrives=True,
            )
            http = self._http()
            response = None
            while response is None:
                _, response = request.next_chunk(http=http)
            return response

        created = await self._run("upload", _upload, file_name=name, parent_id=parent_id)
        return DriveItem.from_api(created)

    async def get_metadata(self, file_id: str) -> DriveItem:
        def _get() -> dict[str, Any]:
            return self._service.files().get(
                fileId=file_id,
                fields=METADATA_FIELDS,
                supportsAllDrives=True,
            ).execute(http=self._http())

        data = await self._run("metadata", _get, file_id=file_id)
        return DriveItem.from_api(data)

    async def iter_content(self, file_id: str, chunk_size: int) -> AsyncIterator[bytes]:
        """
        Yield file content chunk by chunk.

        Each chunk is one ranged request to Drive, so closing the iterator
        early simply stops issuing requests; nothing is left open.
        """
        buffer = io.BytesIO()
        request = self._service.files().get_media(fileId=file_id, supportsAllDrives=True)
        request.http = self._http()
        downloader = MediaIoBaseDownload(buffer, request, chunksize=chunk_size)

        done = False
        while not done:
            _, done = await self._run("download", downloader.next_chunk, file_id=file_id)
            chunk = buffer.getvalue()
            buffer.seek(0)
            buffer.truncate()
            if chunk:
                yield chunk


# ---------------------------------------------------------------------------
# Mock Drive for Local Development
# ---------------------------------------------------------------------------

@dataclass
class _MockEntry:
    item: DriveItem
    content: bytes = b""
    trashed: bool = False


class MockDriveClient:
    """
    In-memory Drive for local development and tests.

    Items are kept in insertion order, which stands in for Drive's
    unspecified ordering. Not suitable for production.
    """

    def __init__(self, root_folder_id: str = "root") -> None:
        self.root_folder_id = root_folder_id
        self._entries: dict[str, _MockEntry] = {
            root_folder_id: _MockEntry(
                item=DriveItem(id=root_folder_id, name="root", mime_type=FOLDER_MIME_TYPE)
            )
        }
        logger.info("Initialized mock Drive client (in-memory)")

    def _new_item(self, name: str, mime_type: str, parent_id: str, size: Optional[int] = None) -> DriveItem:
        item_id = uuid.uuid4().hex
        if mime_type == FOLDER_MIME_TYPE:
            link = f"https://drive.google.com/drive/folders/{item_id}"
        else:
            link = f"https://drive.google.com/file/d/{item_id}/view"
        return DriveItem(
            id=item_id,
            name=name,
            mime_type=mime_type,
            size=size,
            created_time=_utc_now(),
            web_view_link=link,
            parents=[parent_id],
        )

    def _live(self, item_id: str) -> _MockEntry:
        entry = self._entries.get(item_id)
        if entry is None or entry.trashed:
            raise NotFoundError(f"File not found: {item_id}.", backend_status=404)
        return entry

    def trash(self, item_id: str) -> None:
        """Move an item to the trash, hiding it from searches and listings."""
        self._live(item_id).trashed = True

    async def find_folder(self, name: str, parent_id: str) -> Optional[str]:
        for entry in self._entries.values():
            item = entry.item
            if (
                not entry.trashed
                and item.is_folder
                and item.name == name
                and parent_id in item.parents
            ):
                return item.id
        return None

    async def create_folder(self, name: str, parent_id: str) -> DriveItem:
        self._live(parent_id)
        item = self._new_item(name, FOLDER_MIME_TYPE, parent_id)
        self._entries[item.id] = _MockEntry(item=item)
        logger.debug("Created folder in mock Drive", extra={"folder_name": name, "folder_id": item.id})
        return item

    async def list_children(self, parent_id: str, page_size: int) -> list[DriveItem]:
        children = [
            entry.item for entry in self._entries.values()
            if not entry.trashed and parent_id in entry.item.parents
        ]
        return children[:page_size]

    async def create_file(
        self,
        name: str,
        mime_type: str,
        stream: BinaryIO,
        parent_id: str,
    ) -> DriveItem:
        self._live(parent_id)
        content = stream.read()
        item = self._new_item(name, mime_type or DEFAULT_MIME_TYPE, parent_id, size=len(content))
        self._entries[item.id] = _MockEntry(item=item, content=content)
        logger.debug(
            "Stored file in mock Drive",
            extra={"file_name": name, "file_id": item.id, "size_bytes": len(content)}
        )
        # a real upload only asks Drive for UPLOAD_FIELDS
        return replace(item, created_time=None)

    async def get_metadata(self, file_id: str) -> DriveItem:
        return self._live(file_id).item

    async def iter_content(self, file_id: str, chunk_size: int) -> AsyncIterator[bytes]:
        content = self._live(file_id).content
        for offset in range(0, len(content), chunk_size):
            yield content[offset:offset + chunk_size]


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_drive_client(
    config: Optional[DriveConfig] = None,
    mock_mode: bool = False,
    root_folder_id: str = "root",
) -> DriveClient:
    """
    Create a Drive client based on configuration.

    Args:
        config: Drive configuration (required if not mock_mode)
        mock_mode: If True, return the in-memory client
        root_folder_id: Root folder the mock client pre-registers

    Returns:
        DriveClient implementation (Google or Mock)
    """
    if mock_mode:
        return MockDriveClient(root_folder_id=root_folder_id)

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return GoogleDriveClient(config)
