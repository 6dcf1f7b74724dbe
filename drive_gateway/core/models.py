"""
Domain models for the Drive gateway.

These mirror what Drive returns for a file or folder, trimmed to the fields
the API exposes. They have no dependency on the Google client library, so
the mock backend and the real one produce the same values.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
DEFAULT_MIME_TYPE = "application/octet-stream"
UNCATEGORIZED = "Uncategorized"


@dataclass
class DriveItem:
    """
    A file or folder stored in Drive.

    Folders and files share one shape; the MIME type is the only thing
    that tells them apart.
    """
    id: str
    name: str
    mime_type: str = DEFAULT_MIME_TYPE
    size: Optional[int] = None
    created_time: Optional[str] = None
    web_view_link: Optional[str] = None
    parents: list[str] = field(default_factory=list)

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "DriveItem":
        """Build from a Drive v3 `files` resource (camelCase keys)."""
        size = data.get("size")
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            mime_type=data.get("mimeType") or DEFAULT_MIME_TYPE,
            size=int(size) if size is not None else None,
            created_time=data.get("createdTime"),
            web_view_link=data.get("webViewLink"),
            parents=list(data.get("parents") or []),
        )


@dataclass
class FolderListing:
    """Children of one folder, split into subfolders and files."""
    folder_id: Optional[str]
    folders: list[DriveItem] = field(default_factory=list)
    files: list[DriveItem] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "FolderListing":
        return cls(folder_id=None)


def partition_items(items: Iterable[DriveItem]) -> tuple[list[DriveItem], list[DriveItem]]:
    """
    Split items into (folders, files) by MIME type, keeping backend order.

    Every item lands in exactly one of the two lists.
    """
    folders: list[DriveItem] = []
    files: list[DriveItem] = []
    for item in items:
        (folders if item.is_folder else files).append(item)
    return folders, files
