"""
Layer 3 – 技术分析层
计算常用技术指标：MA、EMA、RSI、MACD、BOLL、KDJ

所有指标返回与输入等长的列表，历史数据不足的位置为 None（与真实的 0 区分）。
EMA / RSI / KDJ 的递推必须按时间顺序逐点计算。
"""

import logging
import math
from typing import List, Optional, Sequence

import pandas as pd

from trading_monitor.models.market import (
    BollingerSeries,
    IndicatorSet,
    KDJSeries,
    MACDSeries,
    MovingAverages,
)

logger = logging.getLogger(__name__)

Values = List[Optional[float]]


def _to_list(series: pd.Series) -> Values:
    """NaN → None"""
    return [None if pd.isna(v) else float(v) for v in series]


# 逐项求和，与对切片直接求均值逐位一致
def _window_mean(window) -> float:
    return sum(window) / len(window)


def _window_pstd(window) -> float:
    mid = _window_mean(window)
    return math.sqrt(sum((v - mid) ** 2 for v in window) / len(window))


class AnalysisLayer:
    """技术分析层：在处理层输出的收盘价序列上计算技术指标"""

    # ── 均线 ──────────────────────────────────────────────

    def sma(self, values: Sequence[float], period: int) -> Values:
        """简单移动平均，前 period-1 个位置为 None"""
        if not values:
            return []
        s = pd.Series(values, dtype="float64")
        return _to_list(s.rolling(window=period, min_periods=period).apply(_window_mean, raw=True))

    def ema(self, values: Sequence[float], period: int) -> List[float]:
        """指数移动平均，以首个值为种子，从下标 0 起即有定义"""
        if not values:
            return []
        k = 2 / (period + 1)
        result = [float(values[0])]
        for v in values[1:]:
            result.append(v * k + result[-1] * (1 - k))
        return result

    # ── RSI ───────────────────────────────────────────────

    def rsi(self, values: Sequence[float], period: int = 14) -> Values:
        """
        Wilder 平滑 RSI

        首个有效值位于下标 period，以前 period 个涨跌幅的简单均值作种子；
        平均跌幅为 0 时 RS 取 100。
        """
        n = len(values)
        if n < period + 1:
            return [None] * n

        changes = [values[i] - values[i - 1] for i in range(1, n)]
        avg_gain = sum(c for c in changes[:period] if c > 0) / period
        avg_loss = sum(-c for c in changes[:period] if c < 0) / period

        result: Values = [None] * period
        result.append(self._rsi_value(avg_gain, avg_loss))
        for change in changes[period:]:
            gain = change if change > 0 else 0.0
            loss = -change if change < 0 else 0.0
            avg_gain = (avg_gain * (period - 1) + gain) / period
            avg_loss = (avg_loss * (period - 1) + loss) / period
            result.append(self._rsi_value(avg_gain, avg_loss))
        return result

    @staticmethod
    def _rsi_value(avg_gain: float, avg_loss: float) -> float:
        rs = 100 if avg_loss == 0 else avg_gain / avg_loss
        return 100 - 100 / (1 + rs)

    # ── MACD ──────────────────────────────────────────────

    def macd(
        self,
        values: Sequence[float],
        fast: int = 12,
        slow: int = 26,
        signal: int = 9,
    ) -> MACDSeries:
        """MACD 线（快慢 EMA 之差）、信号线、柱"""
        ema_fast = self.ema(values, fast)
        ema_slow = self.ema(values, slow)
        macd_line = [f - s for f, s in zip(ema_fast, ema_slow)]
        signal_line = self.ema(macd_line, signal)
        histogram = [m - s for m, s in zip(macd_line, signal_line)]
        return MACDSeries(macd=macd_line, signal=signal_line, histogram=histogram)

    # ── 布林带 ────────────────────────────────────────────

    def bollinger(
        self, values: Sequence[float], period: int = 20, multiplier: float = 2.0
    ) -> BollingerSeries:
        """布林带，带宽使用总体标准差（除以 period）"""
        if not values:
            return BollingerSeries(upper=[], middle=[], lower=[])
        s = pd.Series(values, dtype="float64")
        window = s.rolling(window=period, min_periods=period)
        middle = window.apply(_window_mean, raw=True)
        band = multiplier * window.apply(_window_pstd, raw=True)
        return BollingerSeries(
            upper=_to_list(middle + band),
            middle=_to_list(middle),
            lower=_to_list(middle - band),
        )

    # ── KDJ ───────────────────────────────────────────────

    def kdj(
        self,
        highs: Sequence[float],
        lows: Sequence[float],
        closes: Sequence[float],
        n: int = 9,
        m1: int = 3,
        m2: int = 3,
    ) -> KDJSeries:
        """KDJ 随机指标，K / D 以 50 为初值逐点递推"""
        k: Values = []
        d: Values = []
        j: Values = []
        prev_k = prev_d = 50.0
        for i in range(len(closes)):
            if i < n - 1:
                k.append(None)
                d.append(None)
                j.append(None)
                continue
            highest = max(highs[i - n + 1:i + 1])
            lowest = min(lows[i - n + 1:i + 1])
            if highest == lowest:
                rsv = 100.0
            else:
                rsv = (closes[i] - lowest) / (highest - lowest) * 100
            cur_k = (2 / m1) * rsv + ((m1 - 2) / m1) * prev_k
            cur_d = (2 / m2) * cur_k + ((m2 - 2) / m2) * prev_d
            k.append(cur_k)
            d.append(cur_d)
            j.append(3 * cur_k - 2 * cur_d)
            prev_k, prev_d = cur_k, cur_d
        return KDJSeries(k=k, d=d, j=j)

    # ── 全量指标 ──────────────────────────────────────────

    def compute_all(
        self,
        highs: Sequence[float],
        lows: Sequence[float],
        closes: Sequence[float],
    ) -> IndicatorSet:
        """使用默认参数一次性计算所有指标"""
        return IndicatorSet(
            rsi=self.rsi(closes, 14),
            macd=self.macd(closes, 12, 26, 9),
            bollinger=self.bollinger(closes, 20, 2.0),
            kdj=self.kdj(highs, lows, closes, 9, 3, 3),
            ma=MovingAverages(
                ma5=self.sma(closes, 5),
                ma10=self.sma(closes, 10),
                ma20=self.sma(closes, 20),
                ma60=self.sma(closes, 60),
            ),
        )


# ── 模块级别单例 ──────────────────────────────────────────
_analysis: Optional[AnalysisLayer] = None


def get_analysis_layer() -> AnalysisLayer:
    global _analysis
    if _analysis is None:
        _analysis = AnalysisLayer()
    return _analysis
