"""健康检查路由"""

import time

from fastapi import APIRouter

from trading_monitor import __version__
from trading_monitor.services.broadcast import get_broadcast_hub
from trading_monitor.services.live_feed import get_live_feed_service
from trading_monitor.services.snapshot_service import get_snapshot_service

router = APIRouter(tags=["健康检查"])


@router.get("/health")
async def health():
    """服务健康检查"""
    cache_age = get_snapshot_service().cache_age
    return {
        "success": True,
        "data": {
            "status": "ok",
            "version": __version__,
            "timestamp": int(time.time()),
            "service": "Trading Monitor",
            "snapshot_age": None if cache_age is None else round(cache_age, 1),
            "crypto_stream": get_live_feed_service().crypto_stream.state.value,
            "clients": len(get_broadcast_hub()),
        },
        "message": "服务运行正常",
    }


@router.get("/healthz")
async def healthz():
    """Kubernetes liveness probe"""
    return {"status": "ok"}


@router.get("/readyz")
async def readyz():
    """Kubernetes readiness probe"""
    return {"ready": True}
