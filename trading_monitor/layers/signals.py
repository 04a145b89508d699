"""
Layer 4 – 信号层
基于快照最近两个指标点的规则集：RSI 超买超卖、MACD 金叉死叉、布林带突破
各规则独立触发，同一标的可同时产生多条信号
"""

import logging
from typing import List, Optional

from trading_monitor.models.market import InstrumentSnapshot, Signal

logger = logging.getLogger(__name__)

RSI_OVERBOUGHT = 70
RSI_OVERSOLD = 30


class SignalGenerator:
    """交易信号生成器"""

    def generate(self, snapshot: InstrumentSnapshot, symbol: str, name: str) -> List[Signal]:
        if len(snapshot.rsi) < 2:
            return []
        signals: List[Signal] = []
        for rule in (self._rsi_rule, self._macd_rule, self._bollinger_rule):
            signal = rule(snapshot, symbol, name)
            if signal is not None:
                signals.append(signal)
        return signals

    @staticmethod
    def _rsi_rule(snapshot: InstrumentSnapshot, symbol: str, name: str) -> Optional[Signal]:
        last_rsi = snapshot.rsi[-1]
        if last_rsi is None:
            return None
        if last_rsi > RSI_OVERBOUGHT:
            return Signal(symbol=symbol, name=name, type="RSI", action="SELL",
                          desc=f"RSI超买({last_rsi:.1f})", strength=2)
        if last_rsi < RSI_OVERSOLD:
            return Signal(symbol=symbol, name=name, type="RSI", action="BUY",
                          desc=f"RSI超卖({last_rsi:.1f})", strength=2)
        return None

    @staticmethod
    def _macd_rule(snapshot: InstrumentSnapshot, symbol: str, name: str) -> Optional[Signal]:
        macd, signal = snapshot.macd.macd, snapshot.macd.signal
        prev_macd, last_macd = macd[-2], macd[-1]
        prev_signal, last_signal = signal[-2], signal[-1]
        if None in (prev_macd, last_macd, prev_signal, last_signal):
            return None
        if prev_macd < prev_signal and last_macd > last_signal:
            return Signal(symbol=symbol, name=name, type="MACD", action="BUY",
                          desc="MACD金叉", strength=2)
        if prev_macd > prev_signal and last_macd < last_signal:
            return Signal(symbol=symbol, name=name, type="MACD", action="SELL",
                          desc="MACD死叉", strength=2)
        return None

    @staticmethod
    def _bollinger_rule(snapshot: InstrumentSnapshot, symbol: str, name: str) -> Optional[Signal]:
        upper = snapshot.bollinger.upper[-1]
        lower = snapshot.bollinger.lower[-1]
        # 上下轨为 None 或 0 时不判断
        if not upper or not lower:
            return None
        price = snapshot.current_price
        if price > upper:
            return Signal(symbol=symbol, name=name, type="BB", action="SELL",
                          desc="突破布林上轨", strength=1)
        if price < lower:
            return Signal(symbol=symbol, name=name, type="BB", action="BUY",
                          desc="跌破布林下轨", strength=1)
        return None


# ── 模块级别单例 ──────────────────────────────────────────
_generator: Optional[SignalGenerator] = None


def get_signal_generator() -> SignalGenerator:
    global _generator
    if _generator is None:
        _generator = SignalGenerator()
    return _generator
