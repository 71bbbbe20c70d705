"""
测试 REST API

覆盖 /api/refresh、/api/latest、/api/history、/api/timeseries、/api/apps：
- 成功响应统一为 {"success": true, "data": ...}
- 错误响应统一为 {"error": ...}
"""

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# 添加项目路径到 sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from spectrum_monitor import config as config_module
from spectrum_monitor.api.app import create_app
from spectrum_monitor.api.dependencies import get_query_service, get_refresh_service
from spectrum_monitor.config import APIConfig, AppConfig
from spectrum_monitor.exceptions import FetchError, ParseError
from spectrum_monitor.models import AnalyticsRecord, ApplicationRecord, LiveSessionRecord, Snapshot
from spectrum_monitor.query import QueryService
from spectrum_monitor.refresh import RefreshService
from spectrum_monitor.snapshots import SnapshotStore
from spectrum_monitor.storage import MemoryKVStore
from spectrum_monitor.timeseries import TimeSeriesStore


class FakeSource:
    """假的 Spectrum 数据源"""

    def __init__(self):
        self.apps = [ApplicationRecord(id="app-1", protocol="tcp/22", ip_firewall=True)]
        self.analytics = [AnalyticsRecord.model_validate({
            "dimensions": {"applicationTag": "app-1", "coloName": "SJC", "date": "2026-10-18"},
            "sum": {"bits": 1024, "packets": 8},
        })]
        self.sessions = [LiveSessionRecord.model_validate(
            {"appID": "app-1", "connections": 2, "bytesIngress": 300, "bytesEgress": 100, "durationAvg": 4.0}
        )]
        self.app_calls = 0

    async def fetch_applications(self):
        self.app_calls += 1
        if isinstance(self.apps, Exception):
            raise self.apps
        return self.apps

    async def fetch_analytics(self, since, until):
        if isinstance(self.analytics, Exception):
            raise self.analytics
        return self.analytics

    async def fetch_current_sessions(self):
        if isinstance(self.sessions, Exception):
            raise self.sessions
        return self.sessions


@pytest.fixture(autouse=True)
def default_config(monkeypatch):
    """使用默认配置，避免读取工作目录下的 config.yaml"""
    monkeypatch.setattr(config_module, "_config", AppConfig())


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def kv():
    return MemoryKVStore()


@pytest.fixture
def stores(kv):
    return SnapshotStore(kv), TimeSeriesStore(kv, capacity=3)


@pytest.fixture
def client(source, stores):
    """创建测试客户端（使用内存存储和假数据源）"""
    snapshots, timeseries = stores
    app = create_app()

    async def _override_query():
        return QueryService(snapshots, timeseries, source)

    async def _override_refresh():
        return RefreshService(source, snapshots, timeseries)

    app.dependency_overrides[get_query_service] = _override_query
    app.dependency_overrides[get_refresh_service] = _override_refresh
    return TestClient(app)


class TestRefreshAPI:
    """POST /api/refresh"""

    def test_refresh_returns_snapshot(self, client):
        response = client.post("/api/refresh")
        assert response.status_code == 200

        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert set(data) == {"timestamp", "apps", "analytics", "currentSessions", "totals"}
        assert data["totals"] == {
            "bits": 1024, "packets": 8, "bytesIngress": 300, "bytesEgress": 100, "connections": 2,
        }
        assert data["currentSessions"][0]["appID"] == "app-1"
        assert data["analytics"][0]["dimensions"]["coloName"] == "SJC"

    def test_refresh_upstream_error(self, client, source, kv):
        """测试：应用清单失败时返回 500 和错误信息，不写入数据"""
        source.apps = FetchError("Spectrum API error: Authentication error (code: 10000)", status=403)

        response = client.post("/api/refresh")

        assert response.status_code == 500
        assert "Authentication error" in response.json()["error"]
        assert kv.list() == []

    def test_refresh_sessions_parse_error(self, client, source):
        """测试：当前会话解析失败时刷新仍然成功"""
        source.sessions = ParseError("Failed to parse response: <html>")

        response = client.post("/api/refresh")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["currentSessions"] == []
        assert data["totals"]["connections"] == 0

    def test_refresh_requires_admin_token(self, client, monkeypatch):
        monkeypatch.setattr(config_module, "_config", AppConfig(api=APIConfig(admin_token="s3cret")))

        response = client.post("/api/refresh")
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid admin token"}

        response = client.post("/api/refresh", headers={"X-Admin-Token": "wrong"})
        assert response.status_code == 401

        response = client.post("/api/refresh", headers={"X-Admin-Token": "s3cret"})
        assert response.status_code == 200

    def test_refresh_method_not_allowed(self, client):
        response = client.get("/api/refresh")
        assert response.status_code == 405
        assert "error" in response.json()


class TestLatestAPI:
    """GET /api/latest"""

    def test_no_data(self, client):
        response = client.get("/api/latest")

        assert response.status_code == 404
        assert response.json() == {"error": "No data available"}

    def test_latest_after_refresh(self, client):
        created = client.post("/api/refresh").json()["data"]

        response = client.get("/api/latest")

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": created}


class TestHistoryAPI:
    """GET /api/history"""

    def test_history_newest_first(self, client, stores):
        snapshots, _ = stores
        for ts in ["2026-10-16T10:00:00.000Z", "2026-10-18T10:00:00.000Z", "2026-10-17T10:00:00.000Z"]:
            snapshots.save(Snapshot(timestamp=ts))

        response = client.get("/api/history?days=7")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert [s["timestamp"][:10] for s in body["data"]] == ["2026-10-18", "2026-10-17", "2026-10-16"]

    def test_history_empty(self, client):
        response = client.get("/api/history")

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": []}

    def test_history_default_days_from_config(self, client, source, stores, monkeypatch):
        """测试：未传 days 时使用 snapshots.history_days"""
        monkeypatch.setattr(
            config_module, "_config",
            AppConfig.model_validate({"snapshots": {"history_days": 7}})
        )
        snapshots, timeseries = stores
        seen = []

        class RecordingQuery(QueryService):
            def get_history(self, days=30):
                seen.append(days)
                return super().get_history(days)

        async def _override_query():
            return RecordingQuery(snapshots, timeseries, source)

        client.app.dependency_overrides[get_query_service] = _override_query

        assert client.get("/api/history").status_code == 200
        assert client.get("/api/history?days=3").status_code == 200
        assert seen == [7, 3]

    @pytest.mark.parametrize("days", ["0", "-3", "abc"])
    def test_history_invalid_days(self, client, days):
        response = client.get(f"/api/history?days={days}")

        assert response.status_code == 422
        assert "days" in response.json()["error"]


class TestTimeseriesAPI:
    """GET /api/timeseries"""

    def test_empty(self, client):
        response = client.get("/api/timeseries")

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": []}

    def test_bounded_series(self, client):
        for _ in range(5):
            assert client.post("/api/refresh").status_code == 200

        data = client.get("/api/timeseries").json()["data"]

        assert len(data) == 3
        assert data[-1]["perApp"] == {"app-1": {"connections": 2, "bytesIngress": 300, "bytesEgress": 100}}
        assert [p["timestamp"] for p in data] == sorted(p["timestamp"] for p in data)


class TestAppsAPI:
    """GET /api/apps"""

    def test_apps_always_live(self, client, source):
        """测试：每次请求都直接查询上游"""
        client.get("/api/apps")
        response = client.get("/api/apps")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"][0]["id"] == "app-1"
        assert body["data"][0]["ip_firewall"] is True
        assert source.app_calls == 2

    def test_apps_upstream_error(self, client, source):
        source.apps = ParseError("Failed to parse response: oops", status=502)

        response = client.get("/api/apps")

        assert response.status_code == 500
        assert "Failed to parse response" in response.json()["error"]


def test_unknown_path(client):
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert "error" in response.json()


def test_error_schema_documented(client):
    """测试：错误响应模型出现在 OpenAPI 文档中"""
    openapi = client.get("/api/openapi.json").json()

    assert openapi["components"]["schemas"]["ErrorResponse"]["required"] == ["error"]
    latest_404 = openapi["paths"]["/api/latest"]["get"]["responses"]["404"]
    assert latest_404["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
