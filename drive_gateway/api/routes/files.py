"""
File browsing, upload and download endpoints.

All Drive access goes through the TransferProxy; these handlers only
translate between HTTP and it. Errors raised by the proxy are turned into
JSON error bodies by the application's exception handlers.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, Query, UploadFile, status
from fastapi.responses import StreamingResponse

from ...core.models import UNCATEGORIZED
from ..dependencies import TransferProxyDep
from ..schemas import DriveItemResponse, ErrorResponse, FolderListingResponse, UploadResponse

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


@router.get(
    "/list",
    response_model=FolderListingResponse,
    responses=ERROR_RESPONSES,
    summary="List a folder",
    description="List subfolders and files of a folder (default: the root folder). Single page only.",
)
async def list_folder(
    proxy: TransferProxyDep,
    folder_id: Annotated[Optional[str], Query(alias="folderId")] = None,
) -> FolderListingResponse:
    listing = await proxy.list_folder(folder_id)
    return FolderListingResponse.from_listing(listing)


@router.get(
    "/list-by-category",
    response_model=FolderListingResponse,
    responses=ERROR_RESPONSES,
    summary="List a category folder",
    description="List a category's folder. Unknown or unprovisioned categories list as empty.",
)
async def list_by_category(
    proxy: TransferProxyDep,
    category: Optional[str] = None,
) -> FolderListingResponse:
    listing = await proxy.list_category(category)
    return FolderListingResponse.from_listing(listing)


@router.post(
    "/upload",
    response_model=UploadResponse,
    responses={
        **ERROR_RESPONSES,
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": ErrorResponse},
    },
    summary="Upload a file",
    description="Upload a file into a category folder, creating the folder on first use.",
)
async def upload_file(
    proxy: TransferProxyDep,
    file: Annotated[Optional[UploadFile], File(description="The file to store")] = None,
    category: Annotated[Optional[str], Form()] = None,
    uploader: Annotated[Optional[str], Form()] = None,
) -> UploadResponse:
    """
    Upload a file into Drive.

    The multipart body has already been spooled by the time this runs;
    the spooled file object is handed to Drive as is, without another
    copy in memory. Success is reported only once Drive has the file.
    """
    category = category or UNCATEGORIZED

    item = await proxy.upload(
        category=category,
        file_name=file.filename if file is not None else None,
        mime_type=file.content_type if file is not None else None,
        source=file.file if file is not None else None,
        size=file.size if file is not None else None,
    )

    return UploadResponse(
        file=DriveItemResponse.from_item(item),
        category=category,
        uploader=uploader or "",
    )


@router.get(
    "/download/{file_id}",
    response_class=StreamingResponse,
    responses={
        status.HTTP_200_OK: {"content": {"application/octet-stream": {}}},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
    summary="Download a file",
    description="Stream a file's content as an attachment.",
)
async def download_file(file_id: str, proxy: TransferProxyDep) -> StreamingResponse:
    """
    Stream a file from Drive.

    Metadata and the first chunk are fetched before the response starts,
    so a missing file still gets a JSON error. Later failures can only
    drop the connection.
    """
    download = await proxy.open_download(file_id)

    return StreamingResponse(
        download.chunks(),
        headers={
            "Content-Type": download.media_type,
            "Content-Disposition": download.content_disposition,
        },
    )
