"""
Trading Monitor 行情监控服务
FastAPI 应用程序入口

启动方式:
    uvicorn trading_monitor.main:app --host 0.0.0.0 --port 8080
    python -m trading_monitor.main
"""

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response

from trading_monitor import __version__
from trading_monitor.config import settings
from trading_monitor.layers.acquisition import get_acquisition_layer
from trading_monitor.models.response import ErrorResponse
from trading_monitor.routers import data, health, stream
from trading_monitor.services.live_feed import get_live_feed_service
from trading_monitor.watchlist import CN_STOCKS, CRYPTO, US_STOCKS, WATCHLIST

# ── 日志配置 ──────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


# ── 生命周期管理 ──────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用启动/关闭生命周期钩子"""
    logger.info("=" * 60)
    logger.info(f"🚀 Trading Monitor v{__version__} 启动中")
    logger.info(f"   地址      : http://{settings.HOST}:{settings.PORT}")
    logger.info(f"   美股      : {', '.join(i.symbol for i in WATCHLIST[US_STOCKS])}")
    logger.info(f"   加密货币  : {', '.join(i.key for i in WATCHLIST[CRYPTO])}")
    logger.info(f"   A股       : {', '.join(i.name for i in WATCHLIST[CN_STOCKS])}")
    logger.info("=" * 60)

    live_feed = get_live_feed_service() if settings.LIVE_FEED_ENABLED else None
    if live_feed:
        await live_feed.start()
    else:
        logger.warning("⚠️ 实时行情未启用，仅提供快照接口")

    yield

    logger.info("🔄 行情监控服务正在关闭...")
    if live_feed:
        await live_feed.stop()
    await get_acquisition_layer().aclose()
    logger.info("✅ 行情监控服务已关闭")


# ── 应用实例 ──────────────────────────────────────────────
app = FastAPI(
    title="Trading Monitor 行情监控服务",
    description=(
        "多市场技术指标监控与实时行情推送：\n"
        "- 📊 美股 / 加密货币 / A股 日线快照（30 秒缓存）\n"
        "- 📈 技术指标（MA / EMA / RSI / MACD / BOLL / KDJ）与交易信号\n"
        "- 📡 WebSocket 实时行情（Binance 逐笔成交 + 股票每秒轮询）"
    ),
    version=__version__,
    lifespan=lifespan,
)

# ── CORS 中间件 ───────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# ── 请求计时中间件 ─────────────────────────────────────────
@app.middleware("http")
async def add_process_time(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = f"{(time.time() - start) * 1000:.1f}ms"
    return response


# ── OPTIONS 预检：任意路径直接返回 204 ─────────────────────
@app.middleware("http")
async def preflight(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=_CORS_HEADERS)
    response = await call_next(request)
    for key, value in _CORS_HEADERS.items():
        response.headers.setdefault(key, value)
    return response


# ── 全局异常处理 ──────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"未处理的异常: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse.from_exception(exc, "内部服务错误").model_dump(),
    )


# ── 注册路由 ──────────────────────────────────────────────
app.include_router(health.router)
app.include_router(data.router)
app.include_router(stream.router)


# ── 前端页面 ──────────────────────────────────────────────
@app.get("/", include_in_schema=False)
@app.get("/index.html", include_in_schema=False)
async def index():
    page = Path(settings.INDEX_HTML)
    if not page.is_file():
        return Response(status_code=404, content="Not Found")
    return HTMLResponse(page.read_text(encoding="utf-8"))


# ── 直接运行入口 ──────────────────────────────────────────
def run() -> None:
    uvicorn.run(
        "trading_monitor.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
