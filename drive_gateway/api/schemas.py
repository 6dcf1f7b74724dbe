"""
Response models for the HTTP API.

Field names are camelCase on the wire (folderId, mimeType, webViewLink)
to match what the frontend already consumes, which is Drive's own naming.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, model_serializer
from pydantic.alias_generators import to_camel

from ..core.models import DriveItem, FolderListing


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DriveItemResponse(CamelModel):
    """
    A file or folder as returned by Drive.

    Fields Drive did not return are left out rather than sent as null.
    """
    id: str
    name: str
    mime_type: str
    size: Optional[str] = Field(default=None, description="Size in bytes, as Drive reports it (string)")
    web_view_link: Optional[str] = None
    created_time: Optional[str] = None

    @model_serializer(mode="wrap")
    def omit_unset_fields(self, handler: SerializerFunctionWrapHandler):
        return {key: value for key, value in handler(self).items() if value is not None}

    @classmethod
    def from_item(cls, item: DriveItem) -> "DriveItemResponse":
        return cls(
            id=item.id,
            name=item.name,
            mime_type=item.mime_type,
            size=str(item.size) if item.size is not None else None,
            web_view_link=item.web_view_link,
            created_time=item.created_time,
        )


class FolderListingResponse(CamelModel):
    """Children of a folder split into subfolders and files."""
    folder_id: Optional[str] = Field(description="Listed folder, null when the category has no folder yet")
    folders: list[DriveItemResponse]
    files: list[DriveItemResponse]

    @classmethod
    def from_listing(cls, listing: FolderListing) -> "FolderListingResponse":
        return cls(
            folder_id=listing.folder_id,
            folders=[DriveItemResponse.from_item(item) for item in listing.folders],
            files=[DriveItemResponse.from_item(item) for item in listing.files],
        )


class CategoryResponse(CamelModel):
    """A known category and its folder, if provisioned."""
    name: str
    folder_id: Optional[str] = None


class UploadResponse(BaseModel):
    """Result of an upload."""
    ok: bool = True
    file: DriveItemResponse
    category: str
    uploader: str = ""


class ErrorResponse(BaseModel):
    """Body of every error response."""
    error: str
