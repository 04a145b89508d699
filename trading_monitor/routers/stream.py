"""
实时行情 WebSocket
WS /  或  WS /ws
  客户端 → 服务端: {"type": "subscribe", "symbols": ["AAPL", "BTC", ...]}（文本帧或二进制帧）
  服务端 → 客户端: Tick JSON（主动推送）
"""

import json
import logging

from fastapi import APIRouter, WebSocket

from trading_monitor.services.broadcast import get_broadcast_hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["实时行情"])


@router.websocket("/")
@router.websocket("/ws")
async def live_ticks(websocket: WebSocket):
    hub = get_broadcast_hub()
    await websocket.accept()
    hub.register(websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue
            try:
                msg = json.loads(raw)
            except ValueError:
                logger.debug("忽略无法解析的客户端消息")
                continue
            if isinstance(msg, dict) and msg.get("type") == "subscribe":
                symbols = msg.get("symbols")
                if not isinstance(symbols, list):
                    symbols = []
                hub.update_subscription(websocket, [str(s) for s in symbols])
    finally:
        hub.unregister(websocket)
