"""
快照数据路由
GET /api/data  - 全市场快照（K 线 + 技术指标 + 交易信号），30 秒缓存
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from trading_monitor.models.response import ErrorResponse
from trading_monitor.services.snapshot_service import SnapshotService, get_snapshot_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["行情快照"])


@router.get("/data")
async def get_data(service: SnapshotService = Depends(get_snapshot_service)):
    """获取全市场快照，刷新失败时返回 500"""
    try:
        snapshot = await service.get_snapshot()
    except Exception as exc:
        logger.error(f"快照刷新失败: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse.from_exception(exc, "快照刷新失败").model_dump(),
        )
    return JSONResponse(content=snapshot.to_wire())
