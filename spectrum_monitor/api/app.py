"""
FastAPI 应用配置

配置 CORS、错误响应格式、静态文件托管、路由注册。
"""

import logging
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config import get_config
from ..exceptions import FetchError, StorageError
from ..models import ErrorResponse
from .routers import apps, refresh, snapshots, timeseries

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def register_error_handlers(app: FastAPI):
    """所有错误统一返回 {"error": <message>}"""

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        return _error(422, errors)

    @app.exception_handler(FetchError)
    async def fetch_error_handler(request: Request, exc: FetchError):
        logger.error(f"API Error: {exc}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(f"Storage Error: {exc}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error: {exc}", exc_info=exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


def create_app() -> FastAPI:
    """
    创建 FastAPI 应用实例

    配置：
    - CORS 中间件
    - 错误响应格式
    - API 路由
    - 静态文件托管（仪表盘）
    """
    config = get_config()

    app = FastAPI(
        title="Spectrum Monitor",
        description="Spectrum 流量汇总和 API 服务",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )

    # CORS 中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Admin-Token"],
    )

    register_error_handlers(app)

    # 注册路由
    app.include_router(refresh.router)
    app.include_router(snapshots.router)
    app.include_router(timeseries.router)
    app.include_router(apps.router)

    # 静态文件托管（前端）
    if config.frontend.enabled:
        frontend_path = Path(config.frontend.path)
        if frontend_path.exists():
            app.mount("/", StaticFiles(directory=str(frontend_path), html=True), name="frontend")
            logger.info(f"Serving frontend from {frontend_path}")
        else:
            logger.warning(f"Frontend path not found: {frontend_path}")

    return app
