"""
监控列表配置
三个市场分组：美股 / 加密货币 / A股，进程启动时加载，只读
"""

from typing import Dict, List

from trading_monitor.models.market import Instrument

US_STOCKS = "us_stocks"
CRYPTO = "crypto"
CN_STOCKS = "cn_stocks"

MARKET_GROUPS = (US_STOCKS, CRYPTO, CN_STOCKS)


WATCHLIST: Dict[str, List[Instrument]] = {
    US_STOCKS: [
        Instrument(symbol="AAPL", name="苹果", sector="科技"),
        Instrument(symbol="MSFT", name="微软", sector="科技"),
        Instrument(symbol="GOOGL", name="谷歌", sector="科技"),
        Instrument(symbol="AMZN", name="亚马逊", sector="科技"),
        Instrument(symbol="NVDA", name="英伟达", sector="半导体"),
        Instrument(symbol="META", name="Meta", sector="科技"),
        Instrument(symbol="TSLA", name="特斯拉", sector="汽车"),
        Instrument(symbol="TSM", name="台积电", sector="半导体"),
    ],
    CRYPTO: [
        Instrument(symbol="BTCUSDT", name="比特币", display="BTC"),
        Instrument(symbol="ETHUSDT", name="以太坊", display="ETH"),
        Instrument(symbol="SOLUSDT", name="Solana", display="SOL"),
        Instrument(symbol="BNBUSDT", name="币安币", display="BNB"),
    ],
    CN_STOCKS: [
        Instrument(symbol="600519.SS", name="贵州茅台", sector="消费"),
        Instrument(symbol="000858.SZ", name="五粮液", sector="消费"),
        Instrument(symbol="601318.SS", name="中国平安", sector="金融"),
        Instrument(symbol="000001.SZ", name="平安银行", sector="金融"),
        Instrument(symbol="600036.SS", name="招商银行", sector="金融"),
        Instrument(symbol="002594.SZ", name="比亚迪", sector="汽车"),
    ],
}

