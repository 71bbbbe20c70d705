"""
Spectrum API 数据源

三个相互独立的只读查询：
- 应用清单（REST）
- 历史流量分析（GraphQL，按日期范围）
- 当前会话（REST）

任何失败都以 FetchError / ParseError 抛出，是否降级由调用方决定。
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .config import SourceConfig
from .exceptions import FetchError, ParseError
from .models import AnalyticsRecord, ApplicationRecord, LiveSessionRecord

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# 账户级网络分析（bits / packets）
BITS_ANALYTICS_QUERY = """
query SpectrumAnalytics($accountTag: string!, $filter: AccountSpectrumNetworkAnalyticsAdaptiveGroupsFilter_InputObject!, $limit: uint64!) {
  viewer {
    accounts(filter: { accountTag: $accountTag }) {
      spectrumNetworkAnalyticsAdaptiveGroups(
        filter: $filter
        limit: $limit
        orderBy: [date_ASC]
      ) {
        dimensions {
          applicationTag
          coloName
          date
          outcome
        }
        sum {
          bits
          packets
        }
      }
    }
  }
}
"""

# 区域级应用分析（bytes + 去重连接数）
BYTES_ANALYTICS_QUERY = """
query SpectrumAnalytics($zoneTag: string!, $filter: ZoneSpectrumApplicationAnalyticsAdaptiveGroupsFilter_InputObject!, $limit: uint64!) {
  viewer {
    zones(filter: { zoneTag: $zoneTag }) {
      spectrumApplicationAnalyticsAdaptiveGroups(
        filter: $filter
        limit: $limit
        orderBy: [date_ASC]
      ) {
        dimensions {
          appId
          coloName
          date
        }
        sum {
          bytesIngress
          bytesEgress
        }
        count
        uniq {
          connections
        }
      }
    }
  }
}
"""

# unit -> (查询语句, 标签变量名, viewer 下的作用域, 结果字段)
ANALYTICS_QUERIES = {
    "bits": (BITS_ANALYTICS_QUERY, "accountTag", "accounts", "spectrumNetworkAnalyticsAdaptiveGroups"),
    "bytes": (BYTES_ANALYTICS_QUERY, "zoneTag", "zones", "spectrumApplicationAnalyticsAdaptiveGroups"),
}


class SpectrumSource:
    """Spectrum API 客户端"""

    def __init__(
        self,
        config: SourceConfig,
        unit: str = "bits",
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            config: API 配置（地址、凭据、超时）
            unit: 分析查询形态，"bits" 或 "bytes"
            transport: 自定义 httpx 传输层（测试时注入 MockTransport）
        """
        if unit not in ANALYTICS_QUERIES:
            raise ValueError(f"Invalid unit {unit!r}. Must be one of: {list(ANALYTICS_QUERIES)}")
        if not config.api_token and not (config.auth_email and config.api_key):
            raise ValueError("Missing Spectrum credentials: set api_token, or auth_email and api_key")

        self.config = config
        self.unit = unit
        self.base_url = config.base_url.rstrip("/")
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        """构造认证头：优先使用 API Token，否则使用 Email + Global Key"""
        headers = {"Content-Type": "application/json"}
        if self.config.api_token:
            headers["Authorization"] = f"Bearer {self.config.api_token}"
        else:
            headers["X-Auth-Email"] = self.config.auth_email
            headers["X-Auth-Key"] = self.config.api_key
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        payload: Optional[Dict[str, Any]] = None
    ) -> Tuple[int, Dict[str, Any]]:
        """
        发送请求并解析 JSON

        Returns:
            (HTTP 状态码, 响应 JSON 对象)
        """
        async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
            try:
                response = await client.request(method, url, headers=self._headers(), json=payload)
            except httpx.HTTPError as e:
                raise FetchError(f"Request failed: {e}", endpoint=url) from e

        text = response.text
        try:
            data = response.json()
        except ValueError as e:
            raise ParseError(
                f"Failed to parse response: {text[:200]}",
                endpoint=url,
                status=response.status_code,
                payload=text[:200]
            ) from e

        if not isinstance(data, dict):
            raise ParseError(
                f"Unexpected response shape: {text[:200]}",
                endpoint=url,
                status=response.status_code,
                payload=text[:200]
            )
        return response.status_code, data

    @staticmethod
    def _validate(model: Type[ModelT], rows: Any, url: str, status: int) -> List[ModelT]:
        """把原始行校验为模型列表，结构不符时抛出 ParseError"""
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise ParseError(f"Expected a list of records, got {type(rows).__name__}", endpoint=url, status=status)
        try:
            return [model.model_validate(row) for row in rows]
        except ValidationError as e:
            raise ParseError(f"Invalid {model.__name__}: {e}", endpoint=url, status=status) from e

    async def _fetch_rest(self, url: str) -> Tuple[int, Any]:
        """调用 v4 REST 接口并解开 {success, result, errors} 信封"""
        status, data = await self._request("GET", url)
        if not data.get("success"):
            errors = data.get("errors") or []
            error_msg = ", ".join(
                f"{e.get('message')} (code: {e.get('code')})"
                for e in errors if isinstance(e, dict)
            ) or f"Unknown error. Status: {status}"
            raise FetchError(f"Spectrum API error: {error_msg}", endpoint=url, status=status, payload=errors)
        return status, data.get("result")

    async def fetch_applications(self) -> List[ApplicationRecord]:
        """获取应用清单"""
        url = f"{self.base_url}/zones/{self.config.zone_id}/spectrum/apps"
        status, result = await self._fetch_rest(url)
        apps = self._validate(ApplicationRecord, result, url, status)
        logger.debug(f"Fetched {len(apps)} applications")
        return apps

    async def fetch_analytics(self, since: date, until: date) -> List[AnalyticsRecord]:
        """
        获取流量分析数据

        Args:
            since: 开始日期（含）
            until: 结束日期（含）

        Returns:
            按日期升序的聚合桶，最多 analytics_limit 条
        """
        url = f"{self.base_url}/graphql"
        query, tag_var, scope, field = ANALYTICS_QUERIES[self.unit]
        tag = self.config.account_id if self.unit == "bits" else self.config.zone_id
        payload = {
            "query": query,
            "variables": {
                tag_var: tag,
                "limit": self.config.analytics_limit,
                "filter": {
                    "date_geq": since.isoformat(),
                    "date_leq": until.isoformat(),
                },
            },
        }

        status, data = await self._request("POST", url, payload)
        if data.get("errors"):
            messages = ", ".join(
                str(e.get("message")) if isinstance(e, dict) else str(e)
                for e in data["errors"]
            )
            raise FetchError(f"GraphQL errors: {messages}", endpoint=url, status=status, payload=data["errors"])
        if status >= 400:
            raise FetchError("GraphQL request failed", endpoint=url, status=status, payload=data)

        scopes = ((data.get("data") or {}).get("viewer") or {}).get(scope) or []
        rows = (scopes[0] or {}).get(field) if isinstance(scopes, list) and scopes else []
        records = self._validate(AnalyticsRecord, rows, url, status)
        logger.debug(f"Fetched {len(records)} analytics rows for {since}..{until}")
        return records

    async def fetch_current_sessions(self) -> List[LiveSessionRecord]:
        """获取当前会话"""
        url = f"{self.base_url}/zones/{self.config.zone_id}/spectrum/analytics/aggregate/current"
        status, result = await self._fetch_rest(url)
        sessions = self._validate(LiveSessionRecord, result, url, status)
        logger.debug(f"Fetched {len(sessions)} current sessions")
        return sessions
