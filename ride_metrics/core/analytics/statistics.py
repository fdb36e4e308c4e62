"""统计内核：中位数、分位数、最小二乘回归、Theil-Sen 稳健拟合与 R²。

说明：
- 输入为简单的数值列表或 (x, y) 点列表，不依赖数据库或网络，便于单元测试与复用；
- median / quantile / linear_regression 对空输入抛出 EmptyInputError（调用方应先判断长度）；
- 零方差时 R² 约定为 1，避免 NaN 向下游传播。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .sampling import round_half_up

Point = Tuple[float, float]


class EmptyInputError(ValueError):
    """Raised when a statistic is requested over an empty sequence."""


@dataclass(frozen=True)
class RegressionResult:
    slope: float
    intercept: float
    r2: float
    ss_res: float
    ss_tot: float


@dataclass(frozen=True)
class R2Result:
    r2: float
    ss_res: float
    ss_tot: float


def median(values: Sequence[float]) -> float:
    if len(values) == 0:
        raise EmptyInputError("Cannot compute median of empty sequence")
    ordered = np.sort(np.asarray(values, dtype=np.float64))
    mid = ordered.size // 2
    if ordered.size % 2 == 0:
        return float((ordered[mid - 1] + ordered[mid]) / 2)
    return float(ordered[mid])


def quantile(values: Sequence[float], q: float) -> float:
    """Linear interpolation between the order statistics bracketing ``(n-1)·q``."""
    if len(values) == 0:
        raise EmptyInputError("Cannot compute quantile of empty sequence")
    q = min(1.0, max(0.0, float(q)))
    ordered = np.sort(np.asarray(values, dtype=np.float64))
    index = (ordered.size - 1) * q
    lower = int(np.floor(index))
    upper = int(np.ceil(index))
    if lower == upper:
        return float(ordered[lower])
    weight = index - lower
    return float(ordered[lower] * (1 - weight) + ordered[upper] * weight)


def percentile(values: Sequence[float], ratio: float) -> Optional[float]:
    """Nearest-rank percentile (index ``ratio·(n-1)`` rounded half-up); ``None`` for empty input."""
    if len(values) == 0:
        return None
    ordered = sorted(values)
    index = round_half_up(ratio * (len(ordered) - 1))
    index = min(len(ordered) - 1, max(0, index))
    return float(ordered[index])


def _as_arrays(points: Sequence[Point]) -> Tuple[np.ndarray, np.ndarray]:
    arr = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    return arr[:, 0], arr[:, 1]


def _residuals(xs: np.ndarray, ys: np.ndarray, slope: float, intercept: float) -> Tuple[float, float, float]:
    predicted = slope * xs + intercept
    ss_tot = float(np.sum((ys - ys.mean()) ** 2))
    ss_res = float(np.sum((ys - predicted) ** 2))
    r2 = 1.0 if ss_tot == 0 else 1.0 - ss_res / ss_tot
    return r2, ss_res, ss_tot


def linear_regression(points: Sequence[Point]) -> RegressionResult:
    """Ordinary least squares on (x, y) pairs.

    All-equal x values make the normal-equation denominator zero; the slope is
    then reported as 0 and the intercept as the mean of y.
    """
    if len(points) == 0:
        raise EmptyInputError("Cannot compute regression of empty points")
    xs, ys = _as_arrays(points)
    n = xs.size
    sum_x = xs.sum()
    sum_y = ys.sum()
    denominator = n * np.dot(xs, xs) - sum_x * sum_x
    slope = 0.0 if denominator == 0 else float((n * np.dot(xs, ys) - sum_x * sum_y) / denominator)
    intercept = float((sum_y - slope * sum_x) / n)
    r2, ss_res, ss_tot = _residuals(xs, ys, slope, intercept)
    return RegressionResult(slope=slope, intercept=intercept, r2=r2, ss_res=ss_res, ss_tot=ss_tot)


def theil_sen_slope(points: Sequence[Point]) -> Optional[Tuple[float, float]]:
    """Median of pairwise slopes, then median of ``y - slope·x`` as intercept.

    O(n²) in the number of points; callers pass bucketed inputs (a handful of points).
    """
    if len(points) < 2:
        return None
    xs, ys = _as_arrays(points)
    i, j = np.triu_indices(xs.size, k=1)
    dx = xs[j] - xs[i]
    mask = dx != 0
    if not mask.any():
        return None
    slopes: List[float] = ((ys[j] - ys[i])[mask] / dx[mask]).tolist()
    slope = median(slopes)
    intercept = median((ys - slope * xs).tolist())
    return slope, intercept


def compute_r2(points: Sequence[Point], slope: float, intercept: float) -> R2Result:
    """Score a given linear model against the points (used for Theil-Sen fits)."""
    if len(points) == 0:
        return R2Result(r2=0.0, ss_res=0.0, ss_tot=0.0)
    xs, ys = _as_arrays(points)
    r2, ss_res, ss_tot = _residuals(xs, ys, slope, intercept)
    return R2Result(r2=r2, ss_res=ss_res, ss_tot=ss_tot)


__all__ = [
    "EmptyInputError",
    "RegressionResult",
    "R2Result",
    "median",
    "quantile",
    "percentile",
    "linear_regression",
    "theil_sen_slope",
    "compute_r2",
]
