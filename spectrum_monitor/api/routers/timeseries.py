"""
时间序列 API

提供图表用的滚动时间序列。
"""

from fastapi import APIRouter, Depends

from ...models import TimeseriesResponse
from ...query import QueryService
from ..dependencies import get_query_service

router = APIRouter(prefix="/api", tags=["timeseries"])


@router.get("/timeseries", response_model=TimeseriesResponse)
async def get_timeseries(query: QueryService = Depends(get_query_service)):
    """按时间先后返回最近的时间序列点（没有数据时为空列表）"""
    return TimeseriesResponse(data=query.get_time_series())
