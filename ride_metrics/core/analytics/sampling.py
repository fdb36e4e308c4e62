"""采样率推断与序列抽稀工具。

- infer_sample_rate：活动声明的采样率缺失或 <=0 时，依次用首尾时间戳差、样本数/时长推断，最后回退 1Hz；
- resolve_sample_duration：按相邻采样间隔确定单个样本代表的秒数（支持变采样率数据）；
- downsample：图表抽稀，始终保留最后一个元素且不超过 max_points。
"""

import math
from typing import Any, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def is_finite_number(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def round_half_up(value: float) -> int:
    """四舍五入到整数（.5 向上进位），用于窗口长度与下标；内置 round() 为银行家舍入。"""
    return int(math.floor(value + 0.5))


def fallback_interval_seconds(sample_rate_hz: Optional[float]) -> float:
    if is_finite_number(sample_rate_hz) and sample_rate_hz > 0:
        return 1.0 / sample_rate_hz
    return 1.0


def infer_sample_rate(sample_rate_hz: Optional[float], duration_sec: float, samples: Sequence[Any]) -> float:
    """Effective sampling rate in Hz for ``samples`` (objects with a ``t`` attribute, sorted)."""
    if is_finite_number(sample_rate_hz) and sample_rate_hz > 0:
        return float(sample_rate_hz)

    if len(samples) >= 2:
        delta = samples[-1].t - samples[0].t
        if is_finite_number(delta) and delta > 0:
            return (len(samples) - 1) / delta

    if is_finite_number(duration_sec) and duration_sec > 0 and len(samples) > 0:
        return len(samples) / duration_sec

    return 1.0


def resolve_sample_duration(samples: Sequence[Any], index: int, default_interval: float) -> float:
    current = samples[index]
    if index < len(samples) - 1:
        delta = samples[index + 1].t - current.t
        if is_finite_number(delta) and delta > 0:
            return float(delta)

    if index > 0:
        delta = current.t - samples[index - 1].t
        if is_finite_number(delta) and delta > 0:
            return float(delta)

    return default_interval


def downsample(values: Sequence[T], max_points: int) -> List[T]:
    """Stride-thin ``values`` to at most ``max_points`` elements, keeping the last one."""
    if max_points <= 0:
        return []
    if len(values) <= max_points:
        return list(values)
    if max_points == 1:
        return [values[-1]]
    # 预留最后一个位置给末尾元素
    step = math.ceil((len(values) - 1) / (max_points - 1))
    sampled = list(values[:-1:step])
    sampled.append(values[-1])
    return sampled
