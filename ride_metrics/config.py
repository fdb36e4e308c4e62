"""
指标引擎配置中心（Configuration Center）

说明：
- 本模块统一管理指标引擎的运行配置（日志、结果缓存、聚合分析默认阈值）
- 配置优先从环境变量中读取，避免硬编码；必要时提供安全的默认值
- 读取顺序：环境变量（优先） > 配置文件开关（仅缓存） > 安全默认

常用环境变量（全部可选）：
1) 缓存与日志
   - `CACHE_ENABLED`：是否启用指标结果缓存，"true"/"false"（不分大小写）。
     若未设置，则回退读取当前目录的 `.cache_config` 文件（内容：enabled=true/false）；
     两者都未设置时，默认启用缓存。
   - `CACHE_DIR`：缓存文件落盘目录，默认 `./data/metric_cache`
   - `LOG_LEVEL`：日志等级，默认 INFO

2) 聚合分析默认阈值
   - `DEPTH_THRESHOLD_KJ`：深度分析累计做功阈值（kJ），默认 2000
   - `DEPTH_MIN_POWER_W`：深度分析最低瞬时功率（W），默认 180
   - `DURABLE_TSS_THRESHOLD_KJ`：Durable TSS 累计做功阈值（kJ），默认 1000
   - `DURABILITY_MIN_DURATION_SEC`：耐久性分析的最短骑行时长（秒），默认 10800
"""

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

CACHE_CONFIG_FILE = '.cache_config'


def _cache_flag_from_file(path: str = CACHE_CONFIG_FILE) -> Optional[bool]:
    """`.cache_config` 中的 enabled=true/false；文件不存在时返回 None，读取失败按关闭处理。"""
    if not os.path.exists(path):
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            flags = f.read().strip().lower()
    except OSError as e:
        logger.warning(f"读取 {path} 失败: {e}")
        return False
    return 'enabled=true' in flags


def _float_from_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"环境变量 {name}={raw!r} 不是数字，使用默认值 {default}")
        return default


# 日志（Logging）
# LOG_LEVEL 用于控制 logging 的根等级，详见 ride_metrics/logging_config.py
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

# 缓存（Cache）
# CACHE_DIR 为指标结果缓存文件的根目录
CACHE_DIR = os.environ.get('CACHE_DIR', os.path.join(os.getcwd(), 'data', 'metric_cache'))


def is_cache_enabled() -> bool:
    """环境变量 CACHE_ENABLED 优先，其次 .cache_config，两者都没有时启用。"""
    env_flag = os.environ.get('CACHE_ENABLED')
    if env_flag is not None:
        return env_flag.strip().lower() == 'true'
    file_flag = _cache_flag_from_file()
    return True if file_flag is None else file_flag


# 聚合分析默认阈值
DEPTH_THRESHOLD_KJ = _float_from_env('DEPTH_THRESHOLD_KJ', 2000.0)
DEPTH_MIN_POWER_W = _float_from_env('DEPTH_MIN_POWER_W', 180.0)
DURABLE_TSS_THRESHOLD_KJ = _float_from_env('DURABLE_TSS_THRESHOLD_KJ', 1000.0)
DURABILITY_MIN_DURATION_SEC = int(_float_from_env('DURABILITY_MIN_DURATION_SEC', 3 * 3600))
