"""
主程序入口

启动三个并发任务：
1. 定时刷新循环
2. 过期数据清理任务
3. REST API 服务
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import uvicorn

from . import __version__
from .config import LoggingConfig, get_config
from .refresh import run_cleanup, run_scheduler
from .services import get_services

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# 上游客户端的逐请求日志过于频繁
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def resolve_log_level(name: str) -> int:
    """把配置中的级别名转换为 logging 常量，无法识别时使用 INFO"""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(logging_config: Optional[LoggingConfig] = None):
    """
    配置根日志：标准输出 + 可选的日志文件

    重复调用时替换已有的处理器，不会重复输出。
    """
    logging_config = logging_config or get_config().logging
    handlers = [logging.StreamHandler(sys.stdout)]

    if logging_config.file:
        log_path = Path(logging_config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_path), encoding="utf-8"))

    logging.basicConfig(
        level=resolve_log_level(logging_config.level),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


async def run_api_server():
    """运行 API 服务器（uvicorn 日志级别跟随 logging.level）"""
    from .api.app import create_app

    config = get_config()
    server_config = uvicorn.Config(
        app=create_app(),
        host=config.api.host,
        port=config.api.port,
        log_level=resolve_log_level(config.logging.level),
        access_log=False
    )
    await uvicorn.Server(server_config).serve()


async def main():
    """主函数：启动所有任务"""
    logger = logging.getLogger(__name__)

    config = get_config()
    setup_logging(config.logging)
    logger.info(f"Spectrum Monitor v{__version__} starting")
    logger.info(f"API: {config.api.host}:{config.api.port}, storage: {config.storage.path}")
    logger.info(
        f"Aggregation: unit={config.aggregation.unit}, "
        f"connections from {config.aggregation.connection_source}"
    )

    services = get_services()

    tasks = [
        run_cleanup(services.kv, config.scheduler.cleanup_interval),
        run_api_server(),
    ]
    if not config.scheduler.enabled:
        logger.info("Scheduled refresh disabled by config")
    elif services.source is None:
        logger.warning("Scheduled refresh disabled: Spectrum credentials are not configured")
    else:
        tasks.append(run_scheduler(services.refresher, config.scheduler.interval))

    try:
        await asyncio.gather(*tasks)
    except asyncio.CancelledError:
        logger.info("Tasks cancelled, shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        raise


def cli():
    """命令行入口（spectrum-monitor）"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Shutdown requested, exiting")


if __name__ == "__main__":
    cli()
