"""
指标结果缓存管理器

负责管理单次活动指标结果的文件缓存，包括：
1. 缓存键生成（活动 ID + 指标键 + 算法版本）
2. 缓存数据的存储和检索（JSON 文件落盘）
3. 按活动失效

核心计算从不依赖缓存；缓存读写失败只记录日志，调用方按未命中处理。
"""

import glob
import hashlib
import json
import logging
import os
from typing import Any, Dict, Optional

from ..config import CACHE_DIR, is_cache_enabled

logger = logging.getLogger(__name__)


class MetricCacheManager:
    def __init__(self, storage_base_path: str = CACHE_DIR):
        self.storage_base_path = storage_base_path

    def generate_cache_key(self, activity_id: str, metric_key: str, version: int) -> str:
        cache_input = f"activity_{activity_id}_metric={metric_key}&version={version}"
        return hashlib.md5(cache_input.encode()).hexdigest()

    def _file_path(self, activity_id: str, cache_key: str) -> str:
        safe_id = str(activity_id).replace(os.sep, '_')
        return os.path.join(self.storage_base_path, f"{safe_id}_{cache_key}.json")

    def get_cache(self, activity_id: str, cache_key: str) -> Optional[Dict[str, Any]]:
        file_path = self._file_path(activity_id, cache_key)
        if not os.path.exists(file_path):
            return None
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                cached_data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"获取缓存失败: activity_id={activity_id}, cache_key={cache_key}, error: {e}")
            return None
        logger.debug(f"[metric-cache][hit] activity_id={activity_id}, cache_key={cache_key}")
        return cached_data

    def set_cache(self, activity_id: str, cache_key: str, data: Dict[str, Any]) -> bool:
        file_path = self._file_path(activity_id, cache_key)
        try:
            os.makedirs(self.storage_base_path, exist_ok=True)
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"设置缓存失败: activity_id={activity_id}, cache_key={cache_key}, error: {e}")
            return False
        logger.debug(f"缓存设置成功: activity_id={activity_id}, cache_key={cache_key}, file_path={file_path}")
        return True

    def invalidate_cache(self, activity_id: str) -> int:
        """删除某活动的全部缓存文件，返回删除数量。"""
        safe_id = str(activity_id).replace(os.sep, '_')
        removed = 0
        for path in glob.glob(os.path.join(glob.escape(self.storage_base_path), f"{glob.escape(safe_id)}_{'?' * 32}.json")):
            try:
                os.remove(path)
                removed += 1
            except OSError as e:
                logger.warning(f"删除缓存文件失败: {path}, error: {e}")
        logger.info(f"缓存失效成功: activity_id={activity_id}, removed={removed}")
        return removed

    def has_cache(self, activity_id: str, cache_key: str) -> bool:
        return os.path.exists(self._file_path(activity_id, cache_key))


def get_default_cache() -> Optional[MetricCacheManager]:
    """按配置返回默认缓存；缓存被关闭时返回 None。"""
    if not is_cache_enabled():
        return None
    return MetricCacheManager()
