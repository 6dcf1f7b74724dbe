"""
Health check endpoints.

We provide two endpoints:
- /_health: Basic liveness check (is the process running?)
- /_health/ready: Readiness check (can Drive reach the root folder?)

Configuration is validated at startup, so readiness only has to check
the backend.
"""

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ...core.errors import UpstreamError
from ...infrastructure.drive.client import MockDriveClient
from ..dependencies import CategoryResolverDep, DriveClientDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Liveness response."""
    ok: bool = True


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    mock_mode: bool = False
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check() -> HealthResponse:
    return HealthResponse()


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the root folder can be reached through Drive.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    settings: SettingsDep,
    drive: DriveClientDep,
    resolver: CategoryResolverDep,
):
    """
    Readiness check - can we serve traffic?

    Fetches the root folder's metadata. Returns 503 if Drive rejects the
    credentials or the root folder is missing or not shared with the
    service account, which tells load balancers not to route traffic here.
    """
    checks: list[ReadinessCheck] = []

    try:
        root = await drive.get_metadata(resolver.root_folder_id)
    except UpstreamError as e:
        checks.append(ReadinessCheck(name="root_folder", status="error", error=e.message))
    else:
        if root.is_folder:
            checks.append(ReadinessCheck(name="root_folder", status="ok"))
        else:
            checks.append(ReadinessCheck(
                name="root_folder",
                status="error",
                error=f"{resolver.root_folder_id} is not a folder",
            ))

    all_ok = all(check.status == "ok" for check in checks)
    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=settings.api_version,
        mock_mode=isinstance(drive, MockDriveClient),
        checks=checks,
    )

    if not all_ok:
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )

    return response
