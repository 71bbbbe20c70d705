"""
测试快照存储

覆盖：
- 每日键与 latest 指针
- 同一天重复保存时覆盖
- 列举结果按时间倒序（与存储列举顺序无关）
- 损坏条目被跳过
- 读取失败降级为无数据
"""

import random

import pytest

from spectrum_monitor.exceptions import StorageError
from spectrum_monitor.models import Snapshot, Totals
from spectrum_monitor.snapshots import LATEST_KEY, SnapshotStore, snapshot_key
from spectrum_monitor.storage import MemoryKVStore


def make_snapshot(ts: str, connections: int = 0) -> Snapshot:
    return Snapshot(timestamp=ts, totals=Totals(connections=connections))


class ShuffledKV(MemoryKVStore):
    """列举顺序随机的存储"""

    def list(self, prefix=""):
        keys = super().list(prefix)
        random.shuffle(keys)
        return keys


class RecordingKV(MemoryKVStore):
    """记录写入顺序和 TTL"""

    def __init__(self):
        super().__init__()
        self.writes = []

    def put(self, key, value, ttl_seconds=None):
        self.writes.append((key, ttl_seconds))
        super().put(key, value, ttl_seconds)


class BrokenKV(MemoryKVStore):
    def get(self, key):
        raise StorageError("unavailable")

    def list(self, prefix=""):
        raise StorageError("unavailable")

    def put(self, key, value, ttl_seconds=None):
        raise StorageError("unavailable")


@pytest.fixture
def kv():
    return MemoryKVStore()


@pytest.fixture
def store(kv):
    return SnapshotStore(kv)


class TestSnapshotStore:
    """快照存储测试"""

    def test_get_latest_empty(self, store):
        """测试：空存储返回 None 而不是抛异常"""
        assert store.get_latest() is None

    def test_list_recent_empty(self, store):
        assert store.list_recent() == []

    def test_save_writes_day_key_then_latest(self):
        """测试：先写每日键（带 TTL），再写 latest（不带 TTL）"""
        kv = RecordingKV()
        store = SnapshotStore(kv, ttl_seconds=3600)

        store.save(make_snapshot("2026-10-18T09:15:00.000Z"))

        assert kv.writes == [("snapshot:2026-10-18", 3600), (LATEST_KEY, None)]

    def test_get_latest_returns_last_saved(self, store):
        store.save(make_snapshot("2026-10-17T23:00:00.000Z", 1))
        store.save(make_snapshot("2026-10-18T01:00:00.000Z", 2))

        latest = store.get_latest()

        assert latest is not None
        assert latest.timestamp == "2026-10-18T01:00:00.000Z"
        assert latest.totals.connections == 2

    def test_same_day_overwrites(self, store, kv):
        """测试：同一天保存两次，只保留后一次"""
        store.save(make_snapshot("2026-10-18T01:00:00.000Z", 1))
        store.save(make_snapshot("2026-10-18T22:00:00.000Z", 2))

        assert kv.list("snapshot:") == ["snapshot:2026-10-18"]
        history = store.list_recent()
        assert len(history) == 1
        assert history[0].totals.connections == 2

    def test_day_uses_utc(self, store, kv):
        """测试：带时区偏移的时间戳按 UTC 日期归档"""
        store.save(make_snapshot("2026-10-18T01:30:00+08:00"))

        assert kv.list("snapshot:") == [snapshot_key("2026-10-17")]

    def test_mixed_offsets_same_utc_day(self, store, kv):
        """测试：同一 UTC 日期、不同偏移的两次保存只占一个每日条目"""
        store.save(make_snapshot("2026-10-18T01:00:00.000Z", 1))
        # 即 2026-10-18T04:30Z
        store.save(make_snapshot("2026-10-17T23:30:00-05:00", 2))

        assert kv.list("snapshot:") == [snapshot_key("2026-10-18")]
        history = store.list_recent()
        assert len(history) == 1
        assert history[0].totals.connections == 2
        assert history[0].parsed_timestamp.utcoffset().total_seconds() == 0

    def test_list_recent_sorted_desc(self):
        """测试：无论存储列举顺序如何，结果都按时间倒序"""
        store = SnapshotStore(ShuffledKV())
        days = [f"2026-10-{d:02d}T12:00:00.000Z" for d in range(1, 15)]
        for ts in random.sample(days, len(days)):
            store.save(make_snapshot(ts))

        for _ in range(5):
            timestamps = [s.timestamp for s in store.list_recent()]
            assert timestamps == sorted(days, reverse=True)

    def test_list_recent_one_per_date(self, store):
        for hour in range(0, 24, 3):
            store.save(make_snapshot(f"2026-10-18T{hour:02d}:00:00.000Z"))
            store.save(make_snapshot(f"2026-10-17T{hour:02d}:00:00.000Z"))

        days = [s.day for s in store.list_recent()]

        assert days == ["2026-10-18", "2026-10-17"]

    def test_malformed_entries_skipped(self, store, kv):
        """测试：损坏的条目被跳过，不影响其他条目"""
        store.save(make_snapshot("2026-10-16T00:00:00.000Z"))
        store.save(make_snapshot("2026-10-18T00:00:00.000Z"))
        kv.put("snapshot:2026-10-17", "{not json")
        kv.put("snapshot:2026-10-15", '{"timestamp": "yesterday"}')
        kv.put("snapshot:2026-10-14", '{"apps": []}')

        timestamps = [s.timestamp for s in store.list_recent()]

        assert timestamps == ["2026-10-18T00:00:00.000Z", "2026-10-16T00:00:00.000Z"]

    def test_corrupt_latest_is_no_data(self, store, kv):
        kv.put(LATEST_KEY, "garbage")

        assert store.get_latest() is None

    def test_expired_days_not_listed(self):
        now = [0.0]
        store = SnapshotStore(MemoryKVStore(clock=lambda: now[0]), ttl_seconds=100)
        store.save(make_snapshot("2026-10-17T00:00:00.000Z"))
        now[0] = 50.0
        store.save(make_snapshot("2026-10-18T00:00:00.000Z"))

        now[0] = 120.0
        history = store.list_recent()

        assert [s.day for s in history] == ["2026-10-18"]
        # latest 不过期
        assert store.get_latest().day == "2026-10-18"

    def test_max_days_not_applied(self, store):
        """测试：max_days 目前不参与过滤"""
        for d in range(1, 6):
            store.save(make_snapshot(f"2026-10-{d:02d}T00:00:00.000Z"))

        assert len(store.list_recent(max_days=1)) == 5

    def test_read_errors_degrade(self):
        store = SnapshotStore(BrokenKV())

        assert store.get_latest() is None
        assert store.list_recent() == []

    def test_write_errors_propagate(self):
        with pytest.raises(StorageError):
            SnapshotStore(BrokenKV()).save(make_snapshot("2026-10-18T00:00:00.000Z"))

    def test_round_trip_keeps_upstream_fields(self, store):
        """测试：上游记录的字段（含未知字段）保存后原样读回"""
        snapshot = Snapshot.model_validate({
            "timestamp": "2026-10-18T09:00:00.000Z",
            "apps": [{"id": "app-1", "protocol": "tcp/22", "ip_firewall": True, "edge_ips": {"type": "dynamic"}}],
            "analytics": [{
                "dimensions": {"applicationTag": "app-1", "coloName": "SJC", "date": "2026-10-18", "outcome": "success"},
                "sum": {"bits": 10, "packets": 1},
            }],
            "currentSessions": [{"appID": "app-1", "connections": 3, "durationAvg": 1.5}],
            "totals": {"bits": 10, "packets": 1, "connections": 3},
        })

        store.save(snapshot)
        loaded = store.get_latest()

        assert loaded == snapshot
        assert loaded.apps[0].model_extra["edge_ips"] == {"type": "dynamic"}
        assert loaded.analytics[0].dimensions.application_id == "app-1"
