"""
快照查询 API

提供最新快照和每日历史快照。
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...config import get_config
from ...models import ErrorResponse, SnapshotListResponse, SnapshotResponse
from ...query import QueryService
from ..dependencies import get_query_service

router = APIRouter(prefix="/api", tags=["snapshots"])


@router.get(
    "/latest",
    response_model=SnapshotResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_latest(query: QueryService = Depends(get_query_service)):
    """获取最近一次刷新结果，没有数据时返回 404"""
    snapshot = query.get_latest()
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No data available"
        )
    return SnapshotResponse(data=snapshot)


@router.get(
    "/history",
    response_model=SnapshotListResponse,
    responses={422: {"model": ErrorResponse}}
)
async def get_history(
    days: Optional[int] = Query(None, ge=1, description="查询天数，默认取 snapshots.history_days（目前不参与过滤）"),
    query: QueryService = Depends(get_query_service)
):
    """
    获取每日快照

    按时间倒序返回，每天最多一条。
    """
    if days is None:
        days = get_config().snapshots.history_days
    return SnapshotListResponse(data=query.get_history(days))
