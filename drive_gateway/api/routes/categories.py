"""
Category endpoints.

Categories come from CATEGORIES_JSON (or the built-in defaults) and grow
whenever an upload names a new one. Folders that have not been
provisioned yet are reported with a null folderId.
"""

from fastapi import APIRouter

from ..dependencies import CategoryResolverDep
from ..schemas import CategoryResponse

router = APIRouter()


@router.get(
    "/categories",
    response_model=list[CategoryResponse],
    summary="List categories",
    description="Known categories and their Drive folder ids. Never calls Drive.",
)
async def list_categories(resolver: CategoryResolverDep) -> list[CategoryResponse]:
    return [
        CategoryResponse(name=name, folder_id=folder_id)
        for name, folder_id in resolver.categories()
    ]
