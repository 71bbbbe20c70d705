"""
流量汇总

把流量分析桶和当前会话合并为一个 Totals，并生成图表用的时间序列点。
纯函数，无 I/O。
"""

from typing import Dict, Iterable, Literal, Optional

from pydantic import BaseModel, ConfigDict

from .models import (
    AnalyticsRecord, AppTraffic, LiveSessionRecord,
    Number, Snapshot, TimeSeriesPoint, Totals,
)


class AggregationMode(BaseModel):
    """
    汇总方式（对应两种部署形态）

    - unit: 分析桶累加 bits 还是 bytesIngress/bytesEgress
    - connection_source: 连接数来自当前会话还是分析桶的 uniq.connections，二者只取其一
    """
    model_config = ConfigDict(frozen=True)

    unit: Literal["bits", "bytes"] = "bits"
    connection_source: Literal["sessions", "analytics"] = "sessions"


# 仅有分析数据、没有当前会话接口的部署
BYTES_ANALYTICS_MODE = AggregationMode(unit="bytes", connection_source="analytics")


def _n(value: Optional[Number]) -> Number:
    """缺失值按 0 处理"""
    return value if value is not None else 0


def compute_totals(
    analytics: Iterable[AnalyticsRecord],
    sessions: Iterable[LiveSessionRecord],
    mode: AggregationMode = AggregationMode()
) -> Totals:
    """
    计算汇总指标

    Args:
        analytics: 流量分析桶（同一应用/日期可能按 colo 拆成多条，全部累加）
        sessions: 当前会话
        mode: 汇总方式

    Returns:
        Totals，所有字段都是数值
    """
    bits = packets = bytes_ingress = bytes_egress = connections = 0

    for record in analytics:
        s = record.sum
        if s is not None:
            packets += _n(s.packets)
            if mode.unit == "bits":
                bits += _n(s.bits)
            else:
                bytes_ingress += _n(s.bytes_ingress)
                bytes_egress += _n(s.bytes_egress)
        if mode.connection_source == "analytics" and record.uniq is not None:
            connections += _n(record.uniq.connections)

    for session in sessions:
        bytes_ingress += _n(session.bytes_ingress)
        bytes_egress += _n(session.bytes_egress)
        if mode.connection_source == "sessions":
            connections += _n(session.connections)

    return Totals(
        bits=bits,
        packets=packets,
        bytes_ingress=bytes_ingress,
        bytes_egress=bytes_egress,
        connections=connections,
    )


def project_point(snapshot: Snapshot) -> TimeSeriesPoint:
    """
    从快照生成时间序列点（同一应用出现多行时累加）

    整体的 connections / bytes 取自 snapshot.totals，perApp 只来自当前会话。
    connection_source="analytics" 时整体连接数来自 uniq.connections，
    因此各应用连接数之和不一定等于整体连接数。
    """
    per_app: Dict[str, AppTraffic] = {}
    for s in snapshot.current_sessions:
        prev = per_app.get(s.app_id) or AppTraffic()
        per_app[s.app_id] = AppTraffic(
            connections=prev.connections + _n(s.connections),
            bytes_ingress=prev.bytes_ingress + _n(s.bytes_ingress),
            bytes_egress=prev.bytes_egress + _n(s.bytes_egress),
        )

    return TimeSeriesPoint(
        timestamp=snapshot.timestamp,
        connections=snapshot.totals.connections,
        bytes_ingress=snapshot.totals.bytes_ingress,
        bytes_egress=snapshot.totals.bytes_egress,
        per_app=per_app,
    )
