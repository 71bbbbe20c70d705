"""
依赖注入模块

提供 FastAPI 依赖项。
"""

import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from ..config import ADMIN_TOKEN_PLACEHOLDER, get_config
from ..query import QueryService
from ..refresh import RefreshService
from ..services import get_services


async def get_query_service() -> QueryService:
    """获取查询服务"""
    return get_services().query


async def get_refresh_service() -> RefreshService:
    """获取刷新服务，未配置 Spectrum 凭据时返回 503"""
    services = get_services()
    if services.source is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Spectrum source is not configured"
        )
    return services.refresher


async def verify_admin_token(x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token")):
    """
    校验 POST /api/refresh 的 X-Admin-Token

    admin_token 仍为占位值时不校验（本地开发）。
    """
    expected = get_config().api.admin_token
    if expected == ADMIN_TOKEN_PLACEHOLDER:
        return

    if x_admin_token is None or not secrets.compare_digest(x_admin_token.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token"
        )
