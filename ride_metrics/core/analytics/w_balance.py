"""W′ 平衡（临界功率模型）

说明：
- 高于 CP 时按 (P - CP)·dt 线性消耗，下限 0；
- 低于 CP 时按指数趋近满容量恢复，时间常数 τ = W′容量 / (CP - P)，离 CP 越远恢复越快；
- 每个采样点的功率作用于它与上一个采样点之间的时间段；
- 本模块是唯一存在前后依赖的算法，实现为携带单个标量状态的顺序扫描。
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from ...schemas.samples import MetricSample
from .sampling import is_finite_number
from .statistics import percentile

DEFAULT_CP_WATTS = 250.0
MIN_W_PRIME_CAPACITY_J = 10000.0
UNKNOWN_CP_CAPACITY_J = 15000.0
CP_PERCENTILE = 0.9


@dataclass(frozen=True)
class WPrimePoint:
    t: float
    balance_j: float


def estimate_critical_power(samples: Iterable[MetricSample]) -> Optional[float]:
    """第 90 百分位功率作为 CP 估算（最近秩），无功率时返回 None。"""
    powers = [float(s.power) for s in samples if is_finite_number(s.power)]
    return percentile(powers, CP_PERCENTILE)


def default_w_prime_capacity(cp_watts: Optional[float]) -> float:
    if cp_watts is None or not is_finite_number(cp_watts):
        return UNKNOWN_CP_CAPACITY_J
    return max(MIN_W_PRIME_CAPACITY_J, cp_watts * 60)


def _step(balance: float, power: float, dt: float, cp: float, capacity: float) -> float:
    if power > cp:
        return max(0.0, balance - (power - cp) * dt)
    if power < cp:
        tau = capacity / (cp - power)
        if tau > 0:
            recovered = (capacity - balance) * (1 - math.exp(-dt / tau))
            return min(capacity, balance + recovered)
    return balance


def compute_w_prime_balance(
    samples: Sequence[MetricSample],
    cp_watts: Optional[float],
    capacity_j: float,
) -> List[WPrimePoint]:
    """W′ 平衡时间序列，每个输入采样输出一个点（balance 保留两位小数）。

    cp_watts 为 None 时按 250W 处理。
    """
    if not samples:
        return []

    cp = DEFAULT_CP_WATTS if cp_watts is None else float(cp_watts)
    balance = float(capacity_j)
    previous_t = samples[0].t
    points: List[WPrimePoint] = []

    for sample in samples:
        dt = max(0.0, sample.t - previous_t)
        if is_finite_number(sample.power) and dt > 0:
            balance = _step(balance, float(sample.power), dt, cp, capacity_j)
        points.append(WPrimePoint(t=sample.t, balance_j=round(balance, 2)))
        previous_t = sample.t

    return points
