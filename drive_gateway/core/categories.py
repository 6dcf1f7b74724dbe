"""
Category to Drive folder resolution.

Categories are application-level labels ("Năm 1", "Tài Liệu Giáo Án", ...)
that each map onto one folder directly under the root folder. Folders are
provisioned lazily: the first time a category is needed we look for an
existing folder with that name, and only create one when none exists.

The map lives in memory only. After a restart the ids are rediscovered by
the name search, so folders created before the restart are reused.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from .models import UNCATEGORIZED

if TYPE_CHECKING:
    from ..infrastructure.drive.client import DriveClient

logger = logging.getLogger(__name__)


class CategoryResolver:
    """
    Resolves category names to folder ids, creating folders on first use.

    Concurrent first-time resolutions of the same name share one lock, so
    only one of them searches and creates; the others find the id in the
    map once the lock is released. Different names never wait on each other.
    """

    def __init__(
        self,
        drive: "DriveClient",
        root_folder_id: str,
        seed: Optional[dict[str, str]] = None,
    ) -> None:
        self._drive = drive
        self._root_folder_id = root_folder_id
        self._folders: dict[str, str] = dict(seed or {})
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def root_folder_id(self) -> str:
        return self._root_folder_id

    @staticmethod
    def normalize(category_name: Optional[str]) -> str:
        return category_name or UNCATEGORIZED

    def lookup(self, category_name: Optional[str]) -> Optional[str]:
        """Return the cached folder id, or None if not provisioned yet."""
        if not category_name:
            return None
        return self._folders.get(category_name) or None

    def categories(self) -> list[tuple[str, Optional[str]]]:
        """Known categories in insertion order, unprovisioned ones with a None id."""
        return [
            (name, folder_id or None)
            for name, folder_id in self._folders.items()
        ]

    def _lock_for(self, category_name: str) -> asyncio.Lock:
        lock = self._locks.get(category_name)
        if lock is None:
            lock = self._locks[category_name] = asyncio.Lock()
        return lock

    async def resolve(self, category_name: Optional[str]) -> str:
        """
        Return the folder id for a category, provisioning it if needed.

        Empty names resolve as "Uncategorized". Drive failures propagate
        as UpstreamError; nothing is retried.
        """
        name = self.normalize(category_name)

        folder_id = self._folders.get(name)
        if folder_id:
            return folder_id

        lock = self._lock_for(name)
        try:
            async with lock:
                # another request may have provisioned it while we waited
                folder_id = self._folders.get(name)
                if folder_id:
                    return folder_id

                folder_id = await self._drive.find_folder(name, self._root_folder_id)
                if folder_id:
                    logger.info(
                        "Found existing category folder",
                        extra={"category": name, "folder_id": folder_id}
                    )
                else:
                    created = await self._drive.create_folder(name, self._root_folder_id)
                    folder_id = created.id
                    logger.info(
                        "Created category folder",
                        extra={"category": name, "folder_id": folder_id}
                    )

                self._folders[name] = folder_id
        finally:
            # drop the lock once nobody holds it, whether resolution succeeded or not
            if not lock.locked() and self._locks.get(name) is lock:
                del self._locks[name]

        return folder_id
