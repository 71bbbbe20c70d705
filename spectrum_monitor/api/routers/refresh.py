"""
刷新 API

手动触发一次拉取 + 汇总 + 保存。
"""

from fastapi import APIRouter, Depends

from ...models import ErrorResponse, SnapshotResponse
from ...refresh import RefreshService
from ..dependencies import get_refresh_service, verify_admin_token

router = APIRouter(prefix="/api", tags=["refresh"])


@router.post(
    "/refresh",
    response_model=SnapshotResponse,
    responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    dependencies=[Depends(verify_admin_token)]
)
async def trigger_refresh(service: RefreshService = Depends(get_refresh_service)):
    """
    立即刷新

    拉取失败或写入存储失败时返回 500。
    """
    snapshot = await service.refresh()
    return SnapshotResponse(data=snapshot)
