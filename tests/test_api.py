"""
HTTP / WebSocket 路由测试（TestClient，不访问真实行情源）

覆盖范围：
  - GET /api/data 快照接口（正常 / 刷新失败）
  - 前端页面、OPTIONS 预检、CORS 响应头
  - 健康检查
  - WebSocket 连接与订阅
"""

import json
import threading
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from trading_monitor.models.market import AggregateSnapshot, Instrument, RawSeries, Signal


def _aggregate() -> AggregateSnapshot:
    from trading_monitor.layers.processing import ProcessingLayer
    closes = [100.0 + i for i in range(30)]
    raw = RawSeries(timestamps=list(range(30)), open=closes, high=closes,
                    low=closes, close=closes, volume=[1] * 30)
    aapl = ProcessingLayer().build_snapshot(raw, Instrument(symbol="AAPL", name="苹果", sector="科技"))
    return AggregateSnapshot(
        us_stocks={"AAPL": aapl},
        signals=[Signal(symbol="AAPL", name="苹果", type="RSI", action="SELL",
                        desc="RSI超买(100.0)", strength=2)],
        timestamp="2024-01-01T00:00:00.000Z",
    )


@pytest.fixture(scope="module")
def client():
    from trading_monitor.main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture
def snapshot_service():
    """用假服务替换 /api/data 的依赖"""
    from trading_monitor.main import app
    from trading_monitor.services.snapshot_service import get_snapshot_service

    service = MagicMock()
    service.get_snapshot = AsyncMock(return_value=_aggregate())
    app.dependency_overrides[get_snapshot_service] = lambda: service
    yield service
    app.dependency_overrides.pop(get_snapshot_service, None)


# ─────────────────────────────────────────────────────────
# 1. 快照接口
# ─────────────────────────────────────────────────────────

class TestDataRoute:
    def test_snapshot(self, client, snapshot_service):
        resp = client.get("/api/data")
        assert resp.status_code == 200
        body = resp.json()
        assert set(body) == {"us_stocks", "crypto", "cn_stocks", "signals", "timestamp"}
        aapl = body["us_stocks"]["AAPL"]
        assert aapl["currentPrice"] == 129.0
        assert aapl["prevClose"] == 128.0
        assert aapl["sector"] == "科技"
        assert body["signals"][0] == {
            "symbol": "AAPL", "name": "苹果", "type": "RSI",
            "action": "SELL", "desc": "RSI超买(100.0)", "strength": 2,
        }
        assert resp.headers["access-control-allow-origin"] == "*"

    def test_refresh_failure_returns_500(self, client, snapshot_service):
        snapshot_service.get_snapshot.side_effect = RuntimeError("upstream down")
        resp = client.get("/api/data")
        assert resp.status_code == 500
        body = resp.json()
        assert body == {"success": False, "error": "upstream down", "message": "快照刷新失败"}

    def test_error_response_without_message(self):
        from trading_monitor.models.response import ErrorResponse
        body = ErrorResponse.from_exception(TimeoutError(), "快照刷新失败").model_dump()
        assert body == {"success": False, "error": "TimeoutError", "message": "快照刷新失败"}


# ─────────────────────────────────────────────────────────
# 2. 页面与跨域
# ─────────────────────────────────────────────────────────

class TestPageRoutes:
    def test_index(self, client):
        for path in ("/", "/index.html"):
            resp = client.get(path)
            assert resp.status_code == 200
            assert "text/html" in resp.headers["content-type"]
            assert "Trading Monitor" in resp.text

    def test_missing_page(self, client, monkeypatch, tmp_path):
        from trading_monitor.config import settings
        monkeypatch.setattr(settings, "INDEX_HTML", str(tmp_path / "absent.html"))
        assert client.get("/").status_code == 404

    def test_unknown_path(self, client):
        assert client.get("/no/such/path").status_code == 404

    def test_options_preflight(self, client):
        for path in ("/api/data", "/anything/else"):
            resp = client.options(path)
            assert resp.status_code == 204
            assert resp.headers["access-control-allow-origin"] == "*"
            assert "GET" in resp.headers["access-control-allow-methods"]
            assert resp.headers["access-control-allow-headers"] == "Content-Type"


# ─────────────────────────────────────────────────────────
# 3. 健康检查
# ─────────────────────────────────────────────────────────

class TestHealthRoutes:
    def test_health_endpoint(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["status"] == "ok"
        assert body["data"]["crypto_stream"] == "disconnected"
        assert isinstance(body["data"]["clients"], int)

    def test_healthz_endpoint(self, client):
        resp = client.get("/healthz")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_readyz_endpoint(self, client):
        resp = client.get("/readyz")
        assert resp.status_code == 200
        assert resp.json()["ready"] is True


# ─────────────────────────────────────────────────────────
# 4. WebSocket
# ─────────────────────────────────────────────────────────

class TestStreamRoute:
    def test_connect_subscribe_disconnect(self, client):
        from trading_monitor.services.broadcast import get_broadcast_hub
        hub = get_broadcast_hub()
        before = len(hub)
        for path in ("/ws", "/"):
            with client.websocket_connect(path) as ws:
                ws.send_text("not json")
                ws.send_text(json.dumps({"type": "subscribe", "symbols": "AAPL"}))
                ws.send_text(json.dumps({"type": "subscribe", "symbols": ["AAPL", "BTC"]}))
            assert len(hub) == before

    def test_binary_subscribe_frame(self, client, monkeypatch):
        from trading_monitor.services.broadcast import get_broadcast_hub
        hub = get_broadcast_hub()
        received = []
        done = threading.Event()

        def record(channel, symbols):
            received.append(list(symbols))
            done.set()

        monkeypatch.setattr(hub, "update_subscription", record)
        with client.websocket_connect("/ws") as ws:
            ws.send_bytes(b"\xff\xfe")
            ws.send_bytes(json.dumps({"type": "subscribe", "symbols": ["BTC"]}).encode())
            assert done.wait(timeout=2.0)
        assert received == [["BTC"]]
