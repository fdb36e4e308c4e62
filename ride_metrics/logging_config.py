"""
日志初始化

引擎内部各模块只通过 logging.getLogger(__name__) 取 logger，不主动配置 handler；
由调用方（批处理脚本、服务进程）在启动时调用一次 setup_logging。
"""

import logging
from typing import Optional

from .config import LOG_LEVEL

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def setup_logging(level: Optional[str] = None) -> None:
    """按 level（缺省取配置中的 LOG_LEVEL）初始化根日志记录器。"""
    log_level = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    logging.getLogger('ride_metrics').setLevel(log_level)
