"""
快照存储

- snapshot:<YYYY-MM-DD>: 每天一个，同一天重复写入时覆盖，带较长 TTL
- latest: 最近一次刷新结果，每次覆盖，不过期
"""

import logging
from typing import List, Optional

from pydantic import ValidationError

from .exceptions import StorageError
from .models import Snapshot
from .storage import KVStore

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "snapshot:"
LATEST_KEY = "latest"
DEFAULT_TTL_SECONDS = 60 * 60 * 24 * 30


def snapshot_key(day: str) -> str:
    """每日快照键"""
    return f"{SNAPSHOT_PREFIX}{day}"


class SnapshotStore:
    """按天存储的快照"""

    def __init__(self, kv: KVStore, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.kv = kv
        self.ttl_seconds = ttl_seconds

    def save(self, snapshot: Snapshot):
        """
        保存快照

        先写当天的键，再覆盖 latest，保证 latest 不会领先于已写入的每日快照。
        写入失败时抛出 StorageError。
        """
        payload = snapshot.model_dump_json(by_alias=True)
        self.kv.put(snapshot_key(snapshot.day), payload, ttl_seconds=self.ttl_seconds)
        self.kv.put(LATEST_KEY, payload)
        logger.debug(f"Saved snapshot {snapshot.timestamp}")

    def _load(self, key: str) -> Optional[Snapshot]:
        raw = self.kv.get(key)
        if not raw:
            return None
        try:
            return Snapshot.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Skipping malformed snapshot at {key}: {e.error_count()} errors")
            return None

    def get_latest(self) -> Optional[Snapshot]:
        """获取最近一次快照，没有数据时返回 None"""
        try:
            return self._load(LATEST_KEY)
        except StorageError as e:
            logger.warning(f"Failed to read latest snapshot: {e}")
            return None

    def list_recent(self, max_days: int = 30) -> List[Snapshot]:
        """
        列出已保存的每日快照，按时间倒序

        损坏的条目会被跳过。max_days 目前不参与过滤，返回 TTL 内的全部快照。
        """
        try:
            keys = self.kv.list(SNAPSHOT_PREFIX)
        except StorageError as e:
            logger.warning(f"Failed to list snapshots: {e}")
            return []

        results = []
        for key in keys:
            try:
                snapshot = self._load(key)
            except StorageError as e:
                logger.warning(f"Failed to read {key}: {e}")
                continue
            if snapshot is not None:
                results.append(snapshot)

        return sorted(results, key=lambda s: s.parsed_timestamp, reverse=True)
