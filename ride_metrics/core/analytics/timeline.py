"""按 UTC 自然日聚合的时间线工具

说明：
- to_date_key：活动开始时间 → UTC 日期（无时区信息视为 UTC）；
- build_dense_timeline：从首个到最后一个有活动的日期逐日展开，空白日由 empty_factory 补齐；
- find_best_window：固定长度滑动窗口最大和（前缀和），并列时取最早开始的窗口；
- trailing_moving_average：尾随滑动平均，窗口未填满前为 None。
"""

from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

import numpy as np
import pandas as pd

T = TypeVar("T")

# 窗口和需超出当前最佳值该量才算更优，浮点累加误差不影响“最早者优先”
WINDOW_EPSILON = 1e-6


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_date_key(value: datetime) -> date:
    return as_utc(value).date()


def build_dense_timeline(day_map: Dict[date, T], empty_factory: Callable[[date], T]) -> List[T]:
    if not day_map:
        return []
    keys = sorted(day_map)
    timeline: List[T] = []
    for ts in pd.date_range(start=keys[0], end=keys[-1], freq="D"):
        day = ts.date()
        entry = day_map.get(day)
        timeline.append(entry if entry is not None else empty_factory(day))
    return timeline


def find_best_window(values: Sequence[float], length: int) -> Optional[Tuple[int, float]]:
    """返回 (start_index, total)；序列短于窗口或最佳和不为正时返回 None。"""
    if length <= 0:
        raise ValueError(f"window length must be positive, got {length}")
    if len(values) < length:
        return None

    arr = np.asarray(values, dtype=np.float64)
    prefix = np.concatenate(([0.0], arr.cumsum()))
    window_sums = prefix[length:] - prefix[:-length]

    best_start = -1
    best_total = float("-inf")
    for start, total in enumerate(window_sums.tolist()):
        if total > best_total + WINDOW_EPSILON:
            best_total = total
            best_start = start

    if best_start < 0 or best_total <= WINDOW_EPSILON:
        return None
    return best_start, best_total


def trailing_moving_average(values: Sequence[float], window: int, digits: int = 2) -> List[Optional[float]]:
    if window <= 0:
        return [None] * len(values)
    if not values:
        return []
    rolling = pd.Series(values, dtype="float64").rolling(window=window, min_periods=window).mean()
    return [None if pd.isna(v) else round(float(v), digits) for v in rolling]
