"""
Directory data endpoint.

GET /api/directory/{resource}?refresh=false

Serves programs, categories, groups, areas and metadata from the public
directory API through the resilient cache.
"""
from fastapi import APIRouter, Query, Request

from smart_assistant.core.errors import DirectoryNotFoundError
from smart_assistant.core.logging import get_logger
from smart_assistant.models.responses import DirectoryResponse

logger = get_logger(__name__)

router = APIRouter()


@router.get("/{resource}", response_model=DirectoryResponse, response_model_by_alias=True)
async def get_directory_resource(
    request: Request,
    resource: str,
    refresh: bool = Query(False, description="Bypass the cache and fetch now"),
):
    directory = request.app.state.container.directory
    if not directory.is_known_resource(resource):
        logger.info("directory_unknown_resource", resource=resource)
        raise DirectoryNotFoundError()

    result = await directory.get(resource, force_refresh=refresh)
    return DirectoryResponse(
        resource=resource,
        data=result.data,
        from_cache=result.from_cache,
        stale=result.stale,
    )
