"""
Layer 2 – 数据处理层
对原始 K 线进行清洗（剔除无效收盘价、回填缺失字段），
计算现价 / 涨跌幅，并调用分析层组装单标的快照。
"""

import logging
from typing import Any, List, Optional

import pandas as pd

from trading_monitor.layers.analysis import AnalysisLayer, get_analysis_layer
from trading_monitor.models.market import OHLCV, Instrument, InstrumentSnapshot, RawSeries

logger = logging.getLogger(__name__)

_PRICE_COLS = ["open", "high", "low"]


def _numeric(values: List[Any]) -> pd.Series:
    return pd.to_numeric(pd.Series(values, dtype="object"), errors="coerce").astype("float64")


class ProcessingLayer:
    """数据处理层：清洗 + 快照组装"""

    def __init__(self, analysis: Optional[AnalysisLayer] = None):
        self._analysis = analysis or get_analysis_layer()

    def clean_ohlcv(self, raw: RawSeries) -> pd.DataFrame:
        """
        清洗原始 K 线

        - 只保留收盘价为有效数字的位置
        - 开 / 高 / 低缺失（空值或 0）时以当根收盘价代替
        - 成交量缺失记为 0

        Returns:
            列为 timestamp, open, high, low, close, volume 的 DataFrame，可能为空
        """
        df = pd.DataFrame({
            "timestamp": pd.Series(raw.timestamps, dtype="object"),
            "open": _numeric(raw.open),
            "high": _numeric(raw.high),
            "low": _numeric(raw.low),
            "close": _numeric(raw.close),
            "volume": _numeric(raw.volume),
        })
        df = df[df["close"].notna()].copy()
        if df.empty:
            return df

        for col in _PRICE_COLS:
            valid = df[col].notna() & (df[col] != 0)
            df[col] = df[col].where(valid, df["close"])
        df["volume"] = df["volume"].fillna(0.0)
        return df.reset_index(drop=True)

    def build_snapshot(
        self, raw: RawSeries, instrument: Instrument
    ) -> Optional[InstrumentSnapshot]:
        """清洗后计算全部指标，无有效数据时返回 None"""
        df = self.clean_ohlcv(raw)
        if df.empty:
            logger.debug(f"{instrument.symbol} 无有效收盘价，跳过")
            return None

        closes = df["close"].tolist()
        highs = df["high"].tolist()
        lows = df["low"].tolist()

        current_price = closes[-1]
        prev_close = closes[-2] if len(closes) > 1 else current_price
        change = current_price - prev_close
        change_pct = change / prev_close * 100 if prev_close else 0.0

        indicators = self._analysis.compute_all(highs, lows, closes)
        timestamps = [None if pd.isna(ts) else ts for ts in df["timestamp"]]

        return InstrumentSnapshot(
            symbol=instrument.symbol,
            name=instrument.name,
            sector=instrument.sector,
            display=instrument.display,
            timestamps=timestamps,
            ohlcv=OHLCV(
                open=df["open"].tolist(),
                high=highs,
                low=lows,
                close=closes,
                volume=df["volume"].tolist(),
            ),
            current_price=current_price,
            prev_close=prev_close,
            change=change,
            change_pct=change_pct,
            rsi=indicators.rsi,
            macd=indicators.macd,
            bollinger=indicators.bollinger,
            kdj=indicators.kdj,
            ma=indicators.ma,
        )


# ── 模块级别单例 ──────────────────────────────────────────
_processor: Optional[ProcessingLayer] = None


def get_processing_layer() -> ProcessingLayer:
    global _processor
    if _processor is None:
        _processor = ProcessingLayer()
    return _processor
