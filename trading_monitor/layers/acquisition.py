"""
Layer 1 – 数据获取层
从 Yahoo Finance（美股 / A股）与 Binance（加密货币）拉取原始行情，
统一规范化为 RawSeries / LatestQuote / TradeEvent 后向上层提供标准接口。
任何上游异常都在本层转换为 FetchResult.failure，不向上抛出。
"""

import json
import logging
from typing import Any, Dict, List, Optional, Union

import httpx

from trading_monitor.config import settings
from trading_monitor.models.market import (
    FetchResult,
    Instrument,
    LatestQuote,
    RawSeries,
    TradeEvent,
)
from trading_monitor.watchlist import CRYPTO

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """上游请求失败（超时、连接中断、状态码异常、响应无法解析）"""


# ── HTTP 传输 ─────────────────────────────────────────────

class HttpTransport:
    """共享的异步 HTTP 客户端，带固定超时"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=settings.REQUEST_TIMEOUT,
                headers={"User-Agent": settings.USER_AGENT},
                follow_redirects=True,
            )
        return self._client

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            resp = await self._get_client().get(url, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.TimeoutException as exc:
            raise UpstreamError(f"请求超时: {url}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"请求失败: {exc}") from exc
        except ValueError as exc:
            raise UpstreamError(f"响应不是合法 JSON: {url}") from exc

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# ── Yahoo Finance（美股 / A股） ───────────────────────────

class YahooChartSource:
    """Yahoo v8 chart 接口"""

    def __init__(self, transport: HttpTransport):
        self._transport = transport

    async def _chart(self, symbol: str, interval: str, range_: str) -> Optional[Dict[str, Any]]:
        payload = await self._transport.get_json(
            f"{settings.YAHOO_CHART_URL}/{symbol}",
            params={"interval": interval, "range": range_},
        )
        if not isinstance(payload, dict):
            return None
        results = (payload.get("chart") or {}).get("result") or []
        if not results or not isinstance(results[0], dict):
            return None
        return results[0]

    async def fetch_daily_series(self, symbol: str) -> FetchResult[RawSeries]:
        """日 K 线（默认近 6 个月）"""
        try:
            result = await self._chart(symbol, "1d", settings.DAILY_RANGE)
        except UpstreamError as exc:
            return FetchResult.failure(str(exc))
        if result is None:
            return FetchResult.empty(f"{symbol} 无 chart 数据")

        quotes = (result.get("indicators") or {}).get("quote") or [{}]
        quote = quotes[0] or {}
        return FetchResult.ok(RawSeries(
            timestamps=result.get("timestamp") or [],
            open=quote.get("open") or [],
            high=quote.get("high") or [],
            low=quote.get("low") or [],
            close=quote.get("close") or [],
            volume=quote.get("volume") or [],
        ))

    async def fetch_latest_quote(self, symbol: str) -> FetchResult[LatestQuote]:
        """最新价 + 昨收 + 交易时段状态（1 分钟 K 线接口的 meta 字段）"""
        try:
            result = await self._chart(symbol, "1m", "1d")
        except UpstreamError as exc:
            return FetchResult.failure(str(exc))
        if result is None:
            return FetchResult.empty(f"{symbol} 无 chart 数据")

        meta = result.get("meta") or {}
        price = _to_float(meta.get("regularMarketPrice"))
        if not price:
            return FetchResult.empty(f"{symbol} 无最新价")
        prev_close = meta.get("previousClose") or meta.get("chartPreviousClose")
        return FetchResult.ok(LatestQuote(
            price=price,
            previous_close=_to_float(prev_close),
            market_state=meta.get("marketState"),
        ))


# ── Binance（加密货币） ───────────────────────────────────

class BinanceSource:
    """Binance 现货 REST K 线 + 逐笔成交 WebSocket"""

    def __init__(self, transport: HttpTransport):
        self._transport = transport

    async def fetch_daily_series(self, symbol: str) -> FetchResult[RawSeries]:
        try:
            payload = await self._transport.get_json(
                f"{settings.BINANCE_REST_URL}/klines",
                params={"symbol": symbol, "interval": "1d", "limit": settings.BINANCE_KLINE_LIMIT},
            )
        except UpstreamError as exc:
            return FetchResult.failure(str(exc))
        if not isinstance(payload, list) or not payload:
            return FetchResult.empty(f"{symbol} 无 K 线数据")

        series = RawSeries()
        try:
            for kline in payload:
                series.timestamps.append(kline[0])
                series.open.append(_to_float(kline[1]))
                series.high.append(_to_float(kline[2]))
                series.low.append(_to_float(kline[3]))
                series.close.append(_to_float(kline[4]))
                series.volume.append(_to_float(kline[5]))
        except (IndexError, TypeError, KeyError) as exc:
            return FetchResult.failure(f"{symbol} K 线格式异常: {exc}")
        return FetchResult.ok(series)

    @staticmethod
    def trade_stream_url(symbols: List[str]) -> str:
        """组合流地址，如 .../stream?streams=btcusdt@trade/ethusdt@trade"""
        streams = "/".join(f"{s.lower()}@trade" for s in symbols)
        return f"{settings.BINANCE_STREAM_URL}?streams={streams}"

    @staticmethod
    def parse_trade_event(raw: Union[str, bytes]) -> Optional[TradeEvent]:
        """
        解析组合流消息，非 trade 事件返回 None

        Raises:
            ValueError / KeyError / TypeError: 消息格式错误
        """
        msg = json.loads(raw)
        data = msg.get("data") if isinstance(msg, dict) else None
        if not isinstance(data, dict) or data.get("e") != "trade":
            return None
        return TradeEvent(
            symbol=data["s"],
            price=float(data["p"]),
            quantity=float(data["q"]),
            event_time=int(data["T"]),
            is_buyer_maker=bool(data.get("m", False)),
        )


class AcquisitionLayer:
    """数据获取层：按市场分组路由到对应数据源"""

    def __init__(self, transport: Optional[HttpTransport] = None):
        self._transport = transport or HttpTransport()
        self.yahoo = YahooChartSource(self._transport)
        self.binance = BinanceSource(self._transport)

    async def fetch_daily_series(self, group: str, instrument: Instrument) -> FetchResult[RawSeries]:
        if group == CRYPTO:
            result = await self.binance.fetch_daily_series(instrument.symbol)
        else:
            result = await self.yahoo.fetch_daily_series(instrument.symbol)
        if not result.is_ok:
            logger.warning(f"{instrument.symbol} 日线获取失败: {result.reason}")
        return result

    async def fetch_latest_quote(self, instrument: Instrument) -> FetchResult[LatestQuote]:
        return await self.yahoo.fetch_latest_quote(instrument.symbol)

    async def aclose(self) -> None:
        await self._transport.aclose()


# ── 模块级别单例 ──────────────────────────────────────────
_acquisition: Optional[AcquisitionLayer] = None


def get_acquisition_layer() -> AcquisitionLayer:
    global _acquisition
    if _acquisition is None:
        _acquisition = AcquisitionLayer()
    return _acquisition
