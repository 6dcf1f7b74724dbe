"""
Google Drive integration for category folders and file transfer.

Authenticates with a service account key held in memory.
Includes mock mode for local development without credentials.
"""

from .client import (
    DriveClient,
    DriveConfig,
    GoogleDriveClient,
    MockDriveClient,
    create_drive_client,
    load_service_account_info,
)

__all__ = [
    "DriveClient",
    "DriveConfig",
    "GoogleDriveClient",
    "MockDriveClient",
    "create_drive_client",
    "load_service_account_info",
]
