"""
滚动时间序列

单个键 "timeseries" 下保存一个有上限的点序列，超出容量时丢弃最旧的点（FIFO）。
整个序列带 TTL 写回，长时间不刷新会自动过期。

注意：append 是无锁的读-改-写。两个刷新并发执行时，后写入的一方会覆盖
先写入一方追加的点（丢失更新）。遥测数据可以容忍这一点。
"""

import json
import logging
from typing import List

from pydantic import ValidationError

from .exceptions import StorageError
from .models import TimeSeriesPoint
from .storage import KVStore

logger = logging.getLogger(__name__)

TIMESERIES_KEY = "timeseries"
DEFAULT_CAPACITY = 200  # 15s 刷新约 50 分钟
DEFAULT_TTL_SECONDS = 60 * 60 * 24


class TimeSeriesStore:
    """有界时间序列存储"""

    def __init__(
        self,
        kv: KVStore,
        capacity: int = DEFAULT_CAPACITY,
        ttl_seconds: int = DEFAULT_TTL_SECONDS
    ):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.kv = kv
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds

    def _load(self) -> List[TimeSeriesPoint]:
        """读取已保存的序列，不存在或损坏时返回空列表"""
        try:
            raw = self.kv.get(TIMESERIES_KEY)
        except StorageError as e:
            logger.warning(f"Failed to read time series: {e}")
            return []
        if not raw:
            return []

        try:
            items = json.loads(raw)
            if not isinstance(items, list):
                raise ValueError(f"expected a list, got {type(items).__name__}")
            return [TimeSeriesPoint.model_validate(item) for item in items]
        except (ValueError, ValidationError) as e:
            logger.warning(f"Discarding corrupt time series: {e}")
            return []

    def append(self, point: TimeSeriesPoint):
        """追加一个点，保留最近 capacity 个，写入失败时抛出 StorageError"""
        series = self._load()
        series.append(point)
        if len(series) > self.capacity:
            series = series[-self.capacity:]

        payload = json.dumps([p.model_dump(mode="json", by_alias=True) for p in series])
        self.kv.put(TIMESERIES_KEY, payload, ttl_seconds=self.ttl_seconds)
        logger.debug(f"Time series now holds {len(series)} points")

    def read_all(self) -> List[TimeSeriesPoint]:
        """按时间先后返回全部点"""
        return self._load()
