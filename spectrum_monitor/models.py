"""
数据模型定义

包括：
- 上游记录模型（应用清单、流量分析、当前会话）
- 汇总模型（Totals、Snapshot、TimeSeriesPoint）
- API 响应模型

上游字段为 camelCase，Python 属性统一为 snake_case，两种写法都可以用来构造模型。
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

Number = Union[int, float]


class CamelModel(BaseModel):
    """允许按字段名或别名构造的基类"""
    model_config = ConfigDict(populate_by_name=True)


def parse_timestamp(ts: str) -> datetime:
    """解析 ISO 8601 时间戳（兼容 Z 后缀），统一转换为 UTC，无时区时按 UTC 处理"""
    dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """格式化为带 Z 后缀的 UTC 时间戳（毫秒精度）"""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


# =============================================================================
# 上游记录
# =============================================================================

class AppDNS(BaseModel):
    """应用 DNS 绑定"""
    type: Optional[str] = None
    name: Optional[str] = None


class OriginDNS(BaseModel):
    """源站 DNS"""
    name: Optional[str] = None


class ApplicationRecord(BaseModel):
    """Spectrum 应用（透传，不参与聚合）"""
    model_config = ConfigDict(extra="allow")

    id: str
    protocol: Optional[str] = None
    dns: Optional[AppDNS] = None
    origin_direct: Optional[List[str]] = None
    origin_dns: Optional[OriginDNS] = None
    ip_firewall: bool = False
    proxy_protocol: Optional[str] = None
    created_on: Optional[str] = None
    modified_on: Optional[str] = None


class AnalyticsDimensions(CamelModel):
    """分析桶维度"""
    application_tag: Optional[str] = Field(default=None, alias="applicationTag")
    app_id: Optional[str] = Field(default=None, alias="appId")
    colo_name: Optional[str] = Field(default=None, alias="coloName")
    date: Optional[str] = None
    outcome: Optional[str] = None

    @property
    def application_id(self) -> Optional[str]:
        return self.application_tag or self.app_id


class AnalyticsSum(CamelModel):
    """分析桶计数（bits/packets 或 bytes，视部署形态而定）"""
    bits: Optional[Number] = None
    packets: Optional[Number] = None
    bytes_ingress: Optional[Number] = Field(default=None, alias="bytesIngress")
    bytes_egress: Optional[Number] = Field(default=None, alias="bytesEgress")


class AnalyticsUniq(CamelModel):
    """去重计数"""
    connections: Optional[Number] = None


class AnalyticsRecord(CamelModel):
    """流量分析聚合桶（按 应用 + colo + 日期 [+ outcome] 分组）"""
    dimensions: AnalyticsDimensions = Field(default_factory=AnalyticsDimensions)
    sum: Optional[AnalyticsSum] = None
    count: Optional[Number] = None
    uniq: Optional[AnalyticsUniq] = None


class LiveSessionRecord(CamelModel):
    """当前会话（某应用此刻的连接情况）"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    app_id: str = Field(alias="appID")
    connections: Optional[Number] = None
    bytes_ingress: Optional[Number] = Field(default=None, alias="bytesIngress")
    bytes_egress: Optional[Number] = Field(default=None, alias="bytesEgress")
    duration_avg: Optional[Number] = Field(default=None, alias="durationAvg")


# =============================================================================
# 汇总与存储模型
# =============================================================================

class Totals(CamelModel):
    """汇总指标（缺失字段按 0 处理，不会出现 None）"""
    bits: Number = 0
    packets: Number = 0
    bytes_ingress: Number = Field(default=0, alias="bytesIngress")
    bytes_egress: Number = Field(default=0, alias="bytesEgress")
    connections: Number = 0


class Snapshot(CamelModel):
    """一次刷新的完整结果"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    timestamp: str
    apps: List[ApplicationRecord] = Field(default_factory=list)
    analytics: List[AnalyticsRecord] = Field(default_factory=list)
    current_sessions: List[LiveSessionRecord] = Field(default_factory=list, alias="currentSessions")
    totals: Totals = Field(default_factory=Totals)

    @field_validator("timestamp")
    @classmethod
    def _check_timestamp(cls, v: str) -> str:
        parse_timestamp(v)
        return v

    @property
    def parsed_timestamp(self) -> datetime:
        return parse_timestamp(self.timestamp)

    @property
    def day(self) -> str:
        """快照所属日期（UTC，YYYY-MM-DD）"""
        return self.parsed_timestamp.date().isoformat()


class AppTraffic(CamelModel):
    """单个应用的实时流量"""
    connections: Number = 0
    bytes_ingress: Number = Field(default=0, alias="bytesIngress")
    bytes_egress: Number = Field(default=0, alias="bytesEgress")


class TimeSeriesPoint(CamelModel):
    """时间序列点（图表用的轻量投影）"""
    timestamp: str
    connections: Number = 0
    bytes_ingress: Number = Field(default=0, alias="bytesIngress")
    bytes_egress: Number = Field(default=0, alias="bytesEgress")
    per_app: Dict[str, AppTraffic] = Field(default_factory=dict, alias="perApp")


# =============================================================================
# API 响应模型
# =============================================================================

class SnapshotResponse(BaseModel):
    """单个快照响应"""
    success: bool = True
    data: Snapshot


class SnapshotListResponse(BaseModel):
    """快照列表响应"""
    success: bool = True
    data: List[Snapshot] = Field(default_factory=list)


class TimeseriesResponse(BaseModel):
    """时间序列响应"""
    success: bool = True
    data: List[TimeSeriesPoint] = Field(default_factory=list)


class ApplicationListResponse(BaseModel):
    """应用清单响应"""
    success: bool = True
    data: List[ApplicationRecord] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """错误响应"""
    error: str
