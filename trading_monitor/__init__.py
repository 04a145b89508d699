"""
Trading Monitor 行情监控服务
多市场（美股 / 加密货币 / A股）技术指标快照 + 实时行情推送

架构分层：
  数据获取层 (Acquisition)  → Yahoo Finance / Binance 行情接口标准化
  处理层     (Processing)   → K 线清洗、缺失值回填、涨跌幅计算
  分析层     (Analysis)     → 技术指标计算（MA / EMA / RSI / MACD / BOLL / KDJ）
  信号层     (Signals)      → 基于最新指标点生成买卖信号
  缓存层     (Cache)        → 全市场快照的 TTL 内存缓存
"""

__version__ = "1.0.0"
