"""
FastAPI dependency injection.

The Drive client, category resolver and transfer proxy are created once
in the application lifespan and kept on `app.state`; the category map
must be shared by every request, so these are never built per request.
Tests swap them by setting different instances on `app.state`.
"""

import logging
from typing import Annotated

from fastapi import Depends, Request

from ..config.settings import Settings, get_settings
from ..core.categories import CategoryResolver
from ..core.transfer import TransferProxy
from ..infrastructure.drive.client import DriveClient

logger = logging.getLogger(__name__)


def get_drive_client(request: Request) -> DriveClient:
    """Provide the Drive client created at startup."""
    return request.app.state.drive


def get_category_resolver(request: Request) -> CategoryResolver:
    """Provide the process-wide category resolver."""
    return request.app.state.resolver


def get_transfer_proxy(request: Request) -> TransferProxy:
    """Provide the transfer proxy bound to the shared resolver."""
    return request.app.state.transfer


def get_app_settings(request: Request) -> Settings:
    """
    Provide the settings the application was created with.

    Falls back to the cached environment settings when the app was
    created without explicit ones.
    """
    return getattr(request.app.state, "settings", None) or get_settings()


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
DriveClientDep = Annotated[DriveClient, Depends(get_drive_client)]
CategoryResolverDep = Annotated[CategoryResolver, Depends(get_category_resolver)]
TransferProxyDep = Annotated[TransferProxy, Depends(get_transfer_proxy)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
