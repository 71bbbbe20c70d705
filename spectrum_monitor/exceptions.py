"""
异常定义

- FetchError: 上游调用失败或返回非成功结果
- ParseError: 上游响应无法解析
- StorageError: 键值存储读写失败
"""

from typing import Any, Optional


class SpectrumMonitorError(Exception):
    """所有业务异常的基类"""


class FetchError(SpectrumMonitorError):
    """上游 API 调用失败"""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status: Optional[int] = None,
        payload: Any = None
    ):
        super().__init__(message)
        self.message = message
        self.endpoint = endpoint
        self.status = status
        self.payload = payload

    def __str__(self) -> str:
        parts = [self.message]
        if self.status is not None:
            parts.append(f"status={self.status}")
        if self.endpoint:
            parts.append(f"URL: {self.endpoint}")
        return ". ".join(parts)


class ParseError(FetchError):
    """上游响应不是有效的 JSON / 结构不符合预期"""


class StorageError(SpectrumMonitorError):
    """键值存储操作失败"""
