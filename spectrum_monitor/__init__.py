"""
Spectrum Monitor - Spectrum 流量监控服务

负责：
- 定时拉取 Spectrum 应用清单、流量分析与当前会话
- 汇总流量指标（Totals）
- 保存每日快照与滚动时间序列
- 提供 REST API 给前端仪表盘
"""

__version__ = "1.0.0"
