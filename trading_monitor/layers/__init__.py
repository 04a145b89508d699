"""
数据流分层架构
  Layer 1 – Acquisition  : 行情获取（Yahoo Finance / Binance）
  Layer 2 – Processing   : K 线清洗与快照组装
  Layer 3 – Analysis     : 技术指标计算
  Layer 4 – Signals      : 交易信号规则
  Layer 5 – Cache        : 全市场快照 TTL 缓存
"""
