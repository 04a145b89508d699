"""
实时推送服务
维护已连接的前端 WebSocket 及其订阅的代码集合，向所有在线连接广播行情
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Set

from starlette.websockets import WebSocket, WebSocketState

from trading_monitor.config import settings
from trading_monitor.models.market import Tick

logger = logging.getLogger(__name__)


@dataclass
class Subscription:
    channel: WebSocket
    symbols: Set[str] = field(default_factory=set)


class BroadcastHub:
    """
    订阅登记 + 广播

    订阅集合目前只做登记，广播时不按订阅过滤，所有在线连接都会收到全部行情。
    单次发送超过 send_timeout 的连接视为失效，从登记表中移除。
    """

    def __init__(self, send_timeout: Optional[float] = None):
        self._subscriptions: Dict[int, Subscription] = {}
        self._send_timeout = settings.SEND_TIMEOUT if send_timeout is None else send_timeout

    # ── 订阅登记 ──────────────────────────────────────────

    def register(self, channel: WebSocket) -> None:
        self._subscriptions[id(channel)] = Subscription(channel=channel)
        logger.info(f"客户端已连接，当前在线 {len(self)} 个")

    def update_subscription(self, channel: WebSocket, symbols: Iterable[str]) -> None:
        sub = self._subscriptions.get(id(channel))
        if sub is None:
            return
        sub.symbols = set(symbols)
        logger.debug(f"订阅更新: {sorted(sub.symbols)}")

    def unregister(self, channel: WebSocket) -> None:
        if self._subscriptions.pop(id(channel), None) is not None:
            logger.info(f"客户端已断开，当前在线 {len(self)} 个")

    def subscriptions(self, channel: WebSocket) -> Optional[Set[str]]:
        sub = self._subscriptions.get(id(channel))
        return set(sub.symbols) if sub else None

    def __len__(self) -> int:
        return len(self._subscriptions)

    # ── 广播 ──────────────────────────────────────────────

    @staticmethod
    def _is_open(channel: WebSocket) -> bool:
        return (
            channel.client_state == WebSocketState.CONNECTED
            and channel.application_state == WebSocketState.CONNECTED
        )

    async def broadcast(self, tick: Tick) -> int:
        """
        序列化一次后发送给所有在线连接，返回成功送达的连接数

        尽力而为：未处于在线状态的连接直接跳过，发送失败不重试，
        发送超时的连接被注销，不阻塞后续行情
        """
        # 复制一份，发送期间的注册 / 注销不影响本次遍历
        targets = [s.channel for s in list(self._subscriptions.values()) if self._is_open(s.channel)]
        if not targets:
            return 0

        message = tick.to_json()
        results = await asyncio.gather(*(self._send(channel, message) for channel in targets))
        return sum(results)

    async def _send(self, channel: WebSocket, message: str) -> bool:
        try:
            await asyncio.wait_for(channel.send_text(message), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"推送超时（>{self._send_timeout:g}s），该客户端已移出广播列表")
            self.unregister(channel)
            return False
        except Exception as exc:
            logger.debug(f"推送失败，已跳过: {exc}")
            return False
        return True


# ── 模块级别单例 ──────────────────────────────────────────
_hub: Optional[BroadcastHub] = None


def get_broadcast_hub() -> BroadcastHub:
    global _hub
    if _hub is None:
        _hub = BroadcastHub()
    return _hub
