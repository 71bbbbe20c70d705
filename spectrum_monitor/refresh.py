"""
刷新流程与后台任务

一次刷新：
1. 并发拉取应用清单、流量分析（最近 24 小时窗口）、当前会话
2. 计算 Totals
3. 保存每日快照 + latest，追加时间序列点

应用清单和流量分析失败会中止刷新；当前会话失败时按空列表处理。
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from .aggregator import AggregationMode, compute_totals, project_point
from .exceptions import FetchError
from .models import LiveSessionRecord, Snapshot, format_timestamp
from .snapshots import SnapshotStore
from .source import SpectrumSource
from .storage import KVStore
from .timeseries import TimeSeriesStore

logger = logging.getLogger(__name__)


class RefreshService:
    """拉取 + 汇总 + 保存"""

    def __init__(
        self,
        source: SpectrumSource,
        snapshots: SnapshotStore,
        timeseries: TimeSeriesStore,
        mode: AggregationMode = AggregationMode(),
        window_hours: int = 24
    ):
        self.source = source
        self.snapshots = snapshots
        self.timeseries = timeseries
        self.mode = mode
        self.window_hours = window_hours

    async def _current_sessions(self) -> List[LiveSessionRecord]:
        """当前会话：失败时降级为空列表"""
        try:
            return await self.source.fetch_current_sessions()
        except FetchError as e:
            logger.warning(f"Current sessions unavailable, using empty result: {e}")
            return []

    async def refresh(self, now: Optional[datetime] = None) -> Snapshot:
        """
        执行一次刷新

        Args:
            now: 刷新时间（UTC），默认当前时间

        Returns:
            新保存的快照

        Raises:
            FetchError: 应用清单或流量分析拉取失败
            StorageError: 快照或时间序列写入失败
        """
        if now is None:
            now = datetime.now(timezone.utc)
        since = (now - timedelta(hours=self.window_hours)).date()
        until = now.date()

        apps, analytics, sessions = await asyncio.gather(
            self.source.fetch_applications(),
            self.source.fetch_analytics(since, until),
            self._current_sessions(),
        )

        totals = compute_totals(analytics, sessions, self.mode)
        snapshot = Snapshot(
            timestamp=format_timestamp(now),
            apps=apps,
            analytics=analytics,
            current_sessions=sessions,
            totals=totals,
        )

        self.snapshots.save(snapshot)
        self.timeseries.append(project_point(snapshot))

        logger.info(
            f"Refresh completed: {len(apps)} apps, {len(analytics)} analytics rows, "
            f"{len(sessions)} sessions, connections={totals.connections}"
        )
        return snapshot


async def run_scheduler(service: RefreshService, interval: int):
    """
    定时刷新循环

    每隔 interval 秒执行一次刷新，结果丢弃，错误只记录日志。
    """
    logger.info(f"Starting refresh loop (interval={interval}s)")

    while True:
        try:
            await service.refresh()
        except asyncio.CancelledError:
            logger.info("Refresh loop cancelled")
            raise
        except Exception as e:
            logger.error(f"Scheduled refresh failed: {e}", exc_info=True)

        await asyncio.sleep(interval)


async def run_cleanup(kv: KVStore, interval: int):
    """
    过期数据清理任务

    定期删除已过期的键（读取时已视为不存在，这里只回收空间）。
    """
    logger.info(f"Starting cleanup task (interval={interval}s)")

    while True:
        try:
            await asyncio.sleep(interval)
            removed = kv.purge_expired()
            logger.info(f"Cleanup completed: removed {removed} expired keys")
        except asyncio.CancelledError:
            logger.info("Cleanup task cancelled")
            raise
        except Exception as e:
            logger.error(f"Cleanup error: {e}", exc_info=True)
