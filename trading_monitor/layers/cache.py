"""
Layer 5 – 缓存层
全市场快照的进程内 TTL 缓存（不持久化）。
"是否需要刷新" 的判断在锁内完成：同一 TTL 窗口内的并发请求只触发一次刷新。
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from trading_monitor.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotCache(Generic[T]):
    """单值 TTL 缓存，过期后由首个调用者刷新，其余调用者等待并复用结果"""

    def __init__(
        self,
        refresh: Callable[[], Awaitable[T]],
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._refresh = refresh
        self._ttl = settings.CACHE_TTL if ttl is None else ttl
        self._clock = clock
        self._value: Optional[T] = None
        self._generated_at: float = 0.0
        self._lock = asyncio.Lock()

    def _is_fresh(self, now: float) -> bool:
        return self._value is not None and now - self._generated_at <= self._ttl

    async def get(self) -> T:
        """
        返回缓存值，不存在或已过期时同步刷新

        刷新失败时异常向上抛出，原缓存保持不变
        """
        async with self._lock:
            now = self._clock()
            if not self._is_fresh(now):
                logger.debug("快照缓存过期，开始刷新")
                self._value = await self._refresh()
                self._generated_at = now
            return self._value

    @property
    def age(self) -> Optional[float]:
        """距上次生成的秒数，尚未生成时为 None"""
        if self._value is None:
            return None
        return self._clock() - self._generated_at
