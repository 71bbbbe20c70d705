"""
应用清单 API

直接查询 Spectrum，不经过存储。
"""

from fastapi import APIRouter, Depends, HTTPException, status

from ...models import ApplicationListResponse, ErrorResponse
from ...query import QueryService
from ..dependencies import get_query_service

router = APIRouter(prefix="/api", tags=["apps"])


@router.get(
    "/apps",
    response_model=ApplicationListResponse,
    responses={500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}}
)
async def list_apps(query: QueryService = Depends(get_query_service)):
    """获取实时应用清单"""
    if query.source is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Spectrum source is not configured"
        )
    apps = await query.get_applications()
    return ApplicationListResponse(data=apps)
