"""
读取侧门面

从存储中组装 latest / history / timeseries 视图；应用清单直接查上游。
"""

from typing import List, Optional

from .models import ApplicationRecord, Snapshot, TimeSeriesPoint
from .snapshots import SnapshotStore
from .source import SpectrumSource
from .timeseries import TimeSeriesStore


class QueryService:
    """只读查询服务（无缓存）"""

    def __init__(
        self,
        snapshots: SnapshotStore,
        timeseries: TimeSeriesStore,
        source: Optional[SpectrumSource] = None
    ):
        self.snapshots = snapshots
        self.timeseries = timeseries
        self.source = source

    def get_latest(self) -> Optional[Snapshot]:
        return self.snapshots.get_latest()

    def get_history(self, days: int = 30) -> List[Snapshot]:
        """最近的每日快照，按时间倒序（days 暂不用于过滤）"""
        return self.snapshots.list_recent(days)

    def get_time_series(self) -> List[TimeSeriesPoint]:
        return self.timeseries.read_all()

    async def get_applications(self) -> List[ApplicationRecord]:
        """实时获取应用清单，不经过存储"""
        if self.source is None:
            raise RuntimeError("No Spectrum source configured")
        return await self.source.fetch_applications()
