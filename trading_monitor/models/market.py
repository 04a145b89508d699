"""
行情数据模型
对外 JSON 字段沿用前端页面约定的驼峰命名（currentPrice / changePct ...）
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ── 监控标的 ──────────────────────────────────────────────

class Instrument(_WireModel):
    """监控列表中的单个标的"""
    symbol: str                       # 上游代码，如 AAPL / BTCUSDT / 600519.SS
    name: str                         # 显示名称
    sector: Optional[str] = None      # 股票所属板块
    display: Optional[str] = None     # 加密货币简称，如 BTC

    @property
    def key(self) -> str:
        """快照与实时推送中使用的代码"""
        return self.display or self.symbol


# ── 上游原始数据 ──────────────────────────────────────────

class RawSeries(_WireModel):
    """数据源返回的原始 K 线，各字段按下标对齐，可能含空值"""
    timestamps: List[Any] = Field(default_factory=list)
    open: List[Any] = Field(default_factory=list)
    high: List[Any] = Field(default_factory=list)
    low: List[Any] = Field(default_factory=list)
    close: List[Any] = Field(default_factory=list)
    volume: List[Any] = Field(default_factory=list)


class LatestQuote(_WireModel):
    """最新报价"""
    price: float
    previous_close: Optional[float] = None
    market_state: Optional[str] = None    # PRE / REGULAR / POST / CLOSED


class TradeEvent(_WireModel):
    """逐笔成交"""
    symbol: str
    price: float
    quantity: float
    event_time: int                       # 毫秒时间戳
    is_buyer_maker: bool = False


class FetchStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    FAILURE = "failure"


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """数据源调用结果：成功 / 无数据 / 失败"""
    status: FetchStatus
    value: Optional[T] = None
    reason: str = ""

    @classmethod
    def ok(cls, value: T) -> "FetchResult[T]":
        return cls(status=FetchStatus.OK, value=value)

    @classmethod
    def empty(cls, reason: str = "") -> "FetchResult[T]":
        return cls(status=FetchStatus.EMPTY, reason=reason)

    @classmethod
    def failure(cls, reason: str) -> "FetchResult[T]":
        return cls(status=FetchStatus.FAILURE, reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.status is FetchStatus.OK


# ── 指标与快照 ────────────────────────────────────────────

class OHLCV(_WireModel):
    open: List[float]
    high: List[float]
    low: List[float]
    close: List[float]
    volume: List[float]


class MACDSeries(_WireModel):
    macd: List[Optional[float]]
    signal: List[Optional[float]]
    histogram: List[Optional[float]]


class BollingerSeries(_WireModel):
    upper: List[Optional[float]]
    middle: List[Optional[float]]
    lower: List[Optional[float]]


class KDJSeries(_WireModel):
    k: List[Optional[float]]
    d: List[Optional[float]]
    j: List[Optional[float]]


class MovingAverages(_WireModel):
    ma5: List[Optional[float]]
    ma10: List[Optional[float]]
    ma20: List[Optional[float]]
    ma60: List[Optional[float]]


class IndicatorSet(_WireModel):
    """一组与收盘价序列等长的技术指标，None 表示历史数据不足"""
    rsi: List[Optional[float]]
    macd: MACDSeries
    bollinger: BollingerSeries
    kdj: KDJSeries
    ma: MovingAverages


class InstrumentSnapshot(_WireModel):
    """单个标的的完整快照（K 线 + 指标），每次刷新整体替换"""
    symbol: str
    name: str = ""
    sector: Optional[str] = None
    display: Optional[str] = None
    timestamps: List[Any]
    ohlcv: OHLCV
    current_price: float = Field(alias="currentPrice")
    prev_close: float = Field(alias="prevClose")
    change: float
    change_pct: float = Field(alias="changePct")
    rsi: List[Optional[float]]
    macd: MACDSeries
    bollinger: BollingerSeries
    kdj: KDJSeries
    ma: MovingAverages


class Signal(_WireModel):
    """交易信号"""
    symbol: str
    name: str
    indicator_type: Literal["RSI", "MACD", "BB"] = Field(alias="type")
    action: Literal["BUY", "SELL"]
    description: str = Field(alias="desc")
    strength: int


class AggregateSnapshot(_WireModel):
    """全市场快照"""
    us_stocks: Dict[str, InstrumentSnapshot] = Field(default_factory=dict)
    crypto: Dict[str, InstrumentSnapshot] = Field(default_factory=dict)
    cn_stocks: Dict[str, InstrumentSnapshot] = Field(default_factory=dict)
    signals: List[Signal] = Field(default_factory=list)
    timestamp: str

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ── 实时推送 ──────────────────────────────────────────────

class Tick(_WireModel):
    """实时行情增量，仅在一次广播期间存在"""
    type: Literal["tick"] = "tick"
    market: str
    symbol: str
    price: float
    change: Optional[float] = None
    change_pct: Optional[float] = Field(default=None, alias="changePct")
    quantity: Optional[float] = None
    time: int
    market_state: Optional[str] = Field(default=None, alias="marketState")
    is_buyer_maker: Optional[bool] = Field(default=None, alias="isBuyerMaker")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)
