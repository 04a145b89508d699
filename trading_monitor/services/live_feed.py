"""
实时行情服务
  - 加密货币：Binance 逐笔成交 WebSocket，断线后固定 5 秒重连，无次数上限
  - 美股 / A股：每秒轮询 Yahoo 最新价（组内逐个请求）
所有事件统一转换为 Tick 后交给广播服务
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import websockets

from trading_monitor.config import settings
from trading_monitor.layers.acquisition import AcquisitionLayer, get_acquisition_layer
from trading_monitor.models.market import (
    FetchResult,
    Instrument,
    LatestQuote,
    Tick,
    TradeEvent,
)
from trading_monitor.services.broadcast import BroadcastHub, get_broadcast_hub
from trading_monitor.watchlist import CN_STOCKS, CRYPTO, US_STOCKS, WATCHLIST

logger = logging.getLogger(__name__)

TickHandler = Callable[[Tick], Awaitable[Any]]
QuoteFetcher = Callable[[Instrument], Awaitable[FetchResult[LatestQuote]]]
TradeParser = Callable[[Union[str, bytes]], Optional[TradeEvent]]


def _now_ms() -> int:
    return int(time.time() * 1000)


async def _cancel(task: Optional[asyncio.Task]) -> None:
    if task and not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


class StreamState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


# ── 加密货币逐笔成交流 ────────────────────────────────────

class CryptoTradeStream:
    """
    Binance 组合流连接，状态机：
        DISCONNECTED → CONNECTING → CONNECTED → (断开) DISCONNECTED

    断开后等待 reconnect_delay 秒发起一次重连，循环往复直到 stop()。
    等待重连期间调用 stop() 会取消该等待。
    """

    def __init__(
        self,
        instruments: List[Instrument],
        on_tick: TickHandler,
        url: str,
        parse: TradeParser,
        connect: Callable[[str], Any] = websockets.connect,
        reconnect_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._by_symbol: Dict[str, Instrument] = {i.symbol: i for i in instruments}
        self._on_tick = on_tick
        self._url = url
        self._parse = parse
        self._connect = connect
        self._reconnect_delay = (
            settings.STREAM_RECONNECT_DELAY if reconnect_delay is None else reconnect_delay
        )
        self._sleep = sleep
        self._state = StreamState.DISCONNECTED
        self._task: Optional[asyncio.Task] = None
        self.reconnect_attempts = 0

    @property
    def state(self) -> StreamState:
        return self._state

    def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name="crypto-trade-stream")

    async def stop(self) -> None:
        await _cancel(self._task)
        self._task = None
        self._state = StreamState.DISCONNECTED
        logger.info("Binance WebSocket 已停止")

    async def _run(self) -> None:
        while True:
            await self._connect_once()
            logger.info(f"Binance WebSocket 断开，{self._reconnect_delay:g}s 后重连...")
            await self._sleep(self._reconnect_delay)
            self.reconnect_attempts += 1

    async def _connect_once(self) -> None:
        self._state = StreamState.CONNECTING
        logger.info("正在连接 Binance WebSocket...")
        try:
            async with self._connect(self._url) as ws:
                self._state = StreamState.CONNECTED
                logger.info("✅ Binance WebSocket 已连接")
                async for raw in ws:
                    await self._handle_message(raw)
        except Exception as exc:
            logger.error(f"Binance WebSocket 错误: {exc}")
        finally:
            self._state = StreamState.DISCONNECTED

    async def _handle_message(self, raw: Union[str, bytes]) -> None:
        try:
            event = self._parse(raw)
        except (ValueError, KeyError, TypeError) as exc:
            logger.debug(f"忽略无法解析的消息: {exc}")
            return
        if event is None:
            return

        instrument = self._by_symbol.get(event.symbol)
        tick = Tick(
            market=CRYPTO,
            symbol=instrument.key if instrument else event.symbol,
            price=event.price,
            quantity=event.quantity,
            time=event.event_time,
            is_buyer_maker=event.is_buyer_maker,
        )
        await self._on_tick(tick)


# ── 股票最新价轮询 ────────────────────────────────────────

class QuotePoller:
    """单个市场分组的定时轮询：每轮逐个请求组内标的，一轮结束后再等待 interval"""

    def __init__(
        self,
        group: str,
        instruments: List[Instrument],
        fetch_quote: QuoteFetcher,
        on_tick: TickHandler,
        interval: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.group = group
        self._instruments = list(instruments)
        self._fetch_quote = fetch_quote
        self._on_tick = on_tick
        self._interval = settings.POLL_INTERVAL if interval is None else interval
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name=f"{self.group}-poller")

    async def stop(self) -> None:
        await _cancel(self._task)
        self._task = None

    async def _run(self) -> None:
        while True:
            await self.poll_once()
            await self._sleep(self._interval)

    async def poll_once(self) -> int:
        """执行一轮轮询，返回推送的 Tick 数量"""
        sent = 0
        for instrument in self._instruments:
            try:
                result = await self._fetch_quote(instrument)
            except Exception as exc:
                logger.debug(f"{instrument.symbol} 最新价获取失败: {exc}")
                continue
            if not result.is_ok:
                continue

            quote = result.value
            prev_close = quote.previous_close
            change = quote.price - prev_close if prev_close else 0.0
            change_pct = change / prev_close * 100 if prev_close else 0.0
            await self._on_tick(Tick(
                market=self.group,
                symbol=instrument.symbol,
                price=quote.price,
                change=change,
                change_pct=change_pct,
                time=_now_ms(),
                market_state=quote.market_state,
            ))
            sent += 1
        return sent


class LiveFeedService:
    """实时行情服务：一条加密货币流 + 美股 / A股两个轮询循环"""

    def __init__(
        self,
        acquisition: Optional[AcquisitionLayer] = None,
        hub: Optional[BroadcastHub] = None,
        watchlist: Optional[Dict[str, List[Instrument]]] = None,
    ):
        acq = acquisition or get_acquisition_layer()
        hub = hub or get_broadcast_hub()
        watchlist = WATCHLIST if watchlist is None else watchlist

        crypto = watchlist.get(CRYPTO, [])
        self.crypto_stream = CryptoTradeStream(
            instruments=crypto,
            on_tick=hub.broadcast,
            url=acq.binance.trade_stream_url([c.symbol for c in crypto]),
            parse=acq.binance.parse_trade_event,
        )
        self.pollers = [
            QuotePoller(group, watchlist.get(group, []), acq.fetch_latest_quote, hub.broadcast)
            for group in (US_STOCKS, CN_STOCKS)
        ]

    async def start(self) -> None:
        self.crypto_stream.start()
        for poller in self.pollers:
            poller.start()
        logger.info("实时行情已启动：加密货币 WebSocket + 股票轮询")

    async def stop(self) -> None:
        await self.crypto_stream.stop()
        for poller in self.pollers:
            await poller.stop()
        logger.info("实时行情已停止")


# ── 模块级别单例 ──────────────────────────────────────────
_live_feed: Optional[LiveFeedService] = None


def get_live_feed_service() -> LiveFeedService:
    global _live_feed
    if _live_feed is None:
        _live_feed = LiveFeedService()
    return _live_feed
