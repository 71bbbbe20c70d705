"""
键值存储抽象层

提供带过期时间（TTL）的字符串键值存储：
- KVStore: 存储接口，注入到各个 Store 的构造函数
- SQLiteKVStore: 基于 SQLite 的持久化实现
- MemoryKVStore: 内存实现（测试及临时运行）

TTL 只是到期提示：过期的键在读取和列举时视为不存在，由定时清理任务真正删除。
"""

import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .exceptions import StorageError


class KVStore(ABC):
    """键值存储接口"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """读取键值，不存在或已过期时返回 None"""

    @abstractmethod
    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None):
        """写入键值（覆盖），ttl_seconds 为 None 表示永不过期"""

    @abstractmethod
    def list(self, prefix: str = "") -> List[str]:
        """列举指定前缀的未过期键"""

    @abstractmethod
    def purge_expired(self) -> int:
        """删除已过期的键，返回删除数量"""


class SQLiteKVStore(KVStore):
    """SQLite 键值存储"""

    def __init__(self, db_path: str, timeout: int = 30, clock: Callable[[], float] = time.time):
        """
        初始化存储

        Args:
            db_path: 数据库文件路径
            timeout: SQLite 锁等待时间（秒）
            clock: 时间函数（测试时可替换）
        """
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._clock = clock

        # 确保目录存在
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    @contextmanager
    def get_conn(self):
        """
        获取数据库连接（上下文管理器）

        sqlite3 的异常统一转换为 StorageError。
        """
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open {self.db_path}: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"SQLite error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self):
        """创建表结构"""
        with self.get_conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL
                )
            """)

    def get(self, key: str) -> Optional[str]:
        with self.get_conn() as conn:
            row = conn.execute(
                "SELECT value FROM kv WHERE key = ? AND (expires_at IS NULL OR expires_at > ?)",
                (key, self._clock())
            ).fetchone()
            return row[0] if row else None

    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None):
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        with self.get_conn() as conn:
            conn.execute("""
                INSERT INTO kv (key, value, expires_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, expires_at = excluded.expires_at
            """, (key, value, expires_at))

    def list(self, prefix: str = "") -> List[str]:
        # 用 substr 比较前缀，避免 LIKE 对 % 和 _ 的转义问题
        with self.get_conn() as conn:
            cursor = conn.execute("""
                SELECT key FROM kv
                WHERE substr(key, 1, ?) = ? AND (expires_at IS NULL OR expires_at > ?)
                ORDER BY key
            """, (len(prefix), prefix, self._clock()))
            return [row[0] for row in cursor.fetchall()]

    def purge_expired(self) -> int:
        with self.get_conn() as conn:
            cursor = conn.execute(
                "DELETE FROM kv WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (self._clock(),)
            )
            return cursor.rowcount


class MemoryKVStore(KVStore):
    """内存键值存储"""

    def __init__(self, clock: Callable[[], float] = time.time):
        # {key: (value, expires_at)}
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def _alive(self, expires_at: Optional[float]) -> bool:
        return expires_at is None or expires_at > self._clock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None or not self._alive(entry[1]):
                return None
            return entry[0]

    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None):
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def list(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(
                k for k, (_, expires_at) in self._data.items()
                if k.startswith(prefix) and self._alive(expires_at)
            )

    def purge_expired(self) -> int:
        with self._lock:
            expired = [k for k, (_, exp) in self._data.items() if not self._alive(exp)]
            for k in expired:
                del self._data[k]
            return len(expired)
