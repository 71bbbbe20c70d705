"""
服务装配

按配置创建存储、数据源和各个 Store，全局实例延迟加载。
"""

import logging
from typing import Optional

from .aggregator import AggregationMode
from .config import AppConfig, get_config
from .query import QueryService
from .refresh import RefreshService
from .snapshots import SnapshotStore
from .source import SpectrumSource
from .storage import KVStore, SQLiteKVStore
from .timeseries import TimeSeriesStore

logger = logging.getLogger(__name__)


class Services:
    """一组相互关联的服务实例，共享同一个键值存储"""

    def __init__(self, config: AppConfig, kv: KVStore, source: Optional[SpectrumSource] = None):
        self.config = config
        self.kv = kv
        self.source = source
        self.snapshots = SnapshotStore(kv, ttl_seconds=config.snapshots.ttl_seconds)
        self.timeseries = TimeSeriesStore(
            kv,
            capacity=config.timeseries.capacity,
            ttl_seconds=config.timeseries.ttl_seconds
        )
        self.query = QueryService(self.snapshots, self.timeseries, source)
        self.mode = AggregationMode(
            unit=config.aggregation.unit,
            connection_source=config.aggregation.connection_source
        )

    @property
    def refresher(self) -> RefreshService:
        """刷新服务（需要数据源）"""
        if self.source is None:
            raise RuntimeError("No Spectrum source configured")
        return RefreshService(
            self.source,
            self.snapshots,
            self.timeseries,
            mode=self.mode,
            window_hours=self.config.source.analytics_window_hours
        )


def build_services(config: Optional[AppConfig] = None, kv: Optional[KVStore] = None) -> Services:
    """按配置创建服务；kv 为空时使用 SQLite 存储"""
    if config is None:
        config = get_config()
    if kv is None:
        kv = SQLiteKVStore(config.storage.path, timeout=config.storage.timeout)
    try:
        source = SpectrumSource(config.source, unit=config.aggregation.unit)
    except ValueError as e:
        # 没有凭据时仍可提供只读查询
        logger.warning(f"Spectrum source disabled: {e}")
        source = None
    return Services(config, kv, source)


# 全局服务实例（延迟加载）
_services: Optional[Services] = None


def get_services() -> Services:
    """获取全局服务实例"""
    global _services
    if _services is None:
        _services = build_services()
    return _services


def reset_services():
    """重置服务实例（主要用于测试）"""
    global _services
    _services = None
