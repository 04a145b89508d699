"""
快照聚合服务
整合获取、处理、信号三层：并发拉取全部监控标的，合并为全市场快照并按 TTL 缓存
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from trading_monitor.config import settings
from trading_monitor.layers.acquisition import AcquisitionLayer, get_acquisition_layer
from trading_monitor.layers.cache import SnapshotCache
from trading_monitor.layers.processing import ProcessingLayer, get_processing_layer
from trading_monitor.layers.signals import SignalGenerator, get_signal_generator
from trading_monitor.models.market import (
    AggregateSnapshot,
    Instrument,
    InstrumentSnapshot,
    Signal,
)
from trading_monitor.watchlist import MARKET_GROUPS, WATCHLIST

logger = logging.getLogger(__name__)

_InstrumentResult = Optional[Tuple[InstrumentSnapshot, List[Signal]]]


def _iso_now() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SnapshotService:
    """全市场快照聚合服务"""

    def __init__(
        self,
        acquisition: Optional[AcquisitionLayer] = None,
        processing: Optional[ProcessingLayer] = None,
        signals: Optional[SignalGenerator] = None,
        watchlist: Optional[Dict[str, List[Instrument]]] = None,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        concurrency: Optional[int] = None,
    ):
        self._acq = acquisition or get_acquisition_layer()
        self._proc = processing or get_processing_layer()
        self._signals = signals or get_signal_generator()
        self._watchlist = WATCHLIST if watchlist is None else watchlist
        self._concurrency = concurrency or settings.FETCH_CONCURRENCY
        self._cache: SnapshotCache[AggregateSnapshot] = SnapshotCache(
            self.refresh, ttl=ttl, clock=clock
        )

    async def get_snapshot(self) -> AggregateSnapshot:
        """获取全市场快照（TTL 内直接返回缓存）"""
        return await self._cache.get()

    @property
    def cache_age(self) -> Optional[float]:
        return self._cache.age

    # ── 刷新 ──────────────────────────────────────────────

    async def refresh(self) -> AggregateSnapshot:
        """
        全量刷新：每个标的一个任务并发执行，全部完成后再合并发布

        单个标的失败只会被忽略并记录日志，不影响其它标的
        """
        logger.info("开始拉取全市场数据...")
        started = time.perf_counter()
        semaphore = asyncio.Semaphore(self._concurrency)

        jobs = [
            (group, instrument)
            for group in MARKET_GROUPS
            for instrument in self._watchlist.get(group, [])
        ]
        results = await asyncio.gather(*(
            self._build_instrument(group, instrument, semaphore)
            for group, instrument in jobs
        ))

        groups: Dict[str, Dict[str, InstrumentSnapshot]] = {g: {} for g in MARKET_GROUPS}
        signals: List[Signal] = []
        for (group, instrument), item in zip(jobs, results):
            if item is None:
                continue
            data, instrument_signals = item
            groups[group][instrument.key] = data
            signals.extend(instrument_signals)

        # sorted 在 reverse=True 时仍保持相同强度信号的原有顺序
        signals = sorted(signals, key=lambda s: s.strength, reverse=True)

        elapsed = (time.perf_counter() - started) * 1000
        fetched = sum(len(v) for v in groups.values())
        logger.info(f"全市场数据拉取完成，耗时 {elapsed:.0f}ms，成功 {fetched}/{len(jobs)} 个标的")
        return AggregateSnapshot(**groups, signals=signals, timestamp=_iso_now())

    async def _build_instrument(
        self,
        group: str,
        instrument: Instrument,
        semaphore: asyncio.Semaphore,
    ) -> _InstrumentResult:
        async with semaphore:
            try:
                result = await self._acq.fetch_daily_series(group, instrument)
                if not result.is_ok:
                    return None
                data = self._proc.build_snapshot(result.value, instrument)
                if data is None:
                    return None
                return data, self._signals.generate(data, instrument.key, instrument.name)
            except Exception as exc:
                logger.warning(f"{instrument.symbol} 快照构建失败: {exc}")
                return None


# ── 模块级别单例 ──────────────────────────────────────────
_snapshot_service: Optional[SnapshotService] = None


def get_snapshot_service() -> SnapshotService:
    global _snapshot_service
    if _snapshot_service is None:
        _snapshot_service = SnapshotService()
    return _snapshot_service
