"""
行情监控服务配置模块
支持从环境变量 / .env 文件读取配置
"""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_index_html() -> str:
    """默认使用包内自带的行情页面"""
    return str(Path(__file__).parent / "static" / "index.html")


class MonitorSettings(BaseSettings):
    """行情监控服务配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── 基础配置 ──────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8080)
    DEBUG: bool = Field(default=False)
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"]
    )
    INDEX_HTML: str = Field(default_factory=_default_index_html)

    # ── 上游请求配置 ───────────────────────────────────────
    REQUEST_TIMEOUT: float = Field(default=15.0)     # 单次上游请求超时（秒）
    FETCH_CONCURRENCY: int = Field(default=32)       # 快照刷新并发上限
    USER_AGENT: str = Field(
        default="Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"
    )

    # ── 数据源配置 ─────────────────────────────────────────
    YAHOO_CHART_URL: str = Field(default="https://query1.finance.yahoo.com/v8/finance/chart")
    DAILY_RANGE: str = Field(default="6mo")
    BINANCE_REST_URL: str = Field(default="https://api.binance.com/api/v3")
    BINANCE_KLINE_LIMIT: int = Field(default=180)
    BINANCE_STREAM_URL: str = Field(default="wss://stream.binance.com:9443/stream")

    # ── 缓存配置 ──────────────────────────────────────────
    CACHE_TTL: float = Field(default=30.0)           # 快照缓存 TTL（秒）

    # ── 实时行情配置 ───────────────────────────────────────
    LIVE_FEED_ENABLED: bool = Field(default=True)
    STREAM_RECONNECT_DELAY: float = Field(default=5.0)  # 断线重连等待（秒）
    POLL_INTERVAL: float = Field(default=1.0)           # 股票轮询间隔（秒）
    SEND_TIMEOUT: float = Field(default=2.0)            # 单个客户端推送超时（秒）

    # ── 日志配置 ──────────────────────────────────────────
    LOG_LEVEL: str = Field(default="INFO")


@lru_cache
def get_settings() -> MonitorSettings:
    """获取全局配置（单例）"""
    return MonitorSettings()


settings = get_settings()
