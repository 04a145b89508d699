"""
测试公共配置
  - 确保仓库根目录在 sys.path
  - 关闭实时行情（测试进程内不连接 Binance / Yahoo）
"""

import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

os.environ["LIVE_FEED_ENABLED"] = "false"
