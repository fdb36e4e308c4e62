"""功率滚动窗口工具：滚动均值、标准化功率（4 次方均值）与最佳滚动均值。"""
from collections import deque
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ...schemas.samples import MetricSample
from .sampling import is_finite_number


@dataclass(frozen=True)
class PowerSample:
    t: float
    power: float


@dataclass(frozen=True)
class RollingPoint:
    t: float
    rolling_avg: float


def extract_power_samples(samples: Iterable[MetricSample]) -> List[PowerSample]:
    """Finite power readings only, sorted by ``t``."""
    return sorted(
        (PowerSample(t=s.t, power=float(s.power)) for s in samples if is_finite_number(s.power)),
        key=lambda p: p.t,
    )


def compute_average_power(samples: Sequence[PowerSample]) -> Optional[float]:
    if not samples:
        return None
    return sum(p.power for p in samples) / len(samples)



def compute_rolling_averages(samples: Sequence[PowerSample], window_size: int) -> List[RollingPoint]:
    """Fixed-size sliding mean, one output per position once the window has filled.

    Produces ``len(samples) - window_size + 1`` points stamped with the trailing
    sample's ``t``. Samples are treated as equally spaced; gaps are not interpolated.
    """
    if window_size <= 1:
        return [RollingPoint(t=p.t, rolling_avg=p.power) for p in samples]

    q = deque()
    s = 0.0
    rolling: List[RollingPoint] = []
    for p in samples:
        q.append(p.power)
        s += p.power
        if len(q) > window_size:
            s -= q.popleft()
        if len(q) == window_size:
            rolling.append(RollingPoint(t=p.t, rolling_avg=s / window_size))
    return rolling


def compute_normalized_power(
    samples: Sequence[PowerSample], window_size: int
) -> Tuple[Optional[float], List[RollingPoint]]:
    """Compute normalized power using an O(n) rolling average and 4th-power mean.

    Returns ``(None, [])`` when the window never fills; NP is 0 when the mean of
    fourth powers is non-positive.
    """
    rolling = compute_rolling_averages(samples, window_size)
    if not rolling:
        return None, rolling
    fourth = np.asarray([r.rolling_avg for r in rolling], dtype=np.float64) ** 4
    mean_fourth = float(fourth.mean())
    normalized = mean_fourth ** 0.25 if mean_fourth > 0 else 0.0
    return normalized, rolling


def compute_best_rolling_average(samples: Sequence[PowerSample], window_size: int) -> Optional[float]:
    if window_size <= 0 or len(samples) < window_size:
        return None
    rolling = compute_rolling_averages(samples, window_size)
    if not rolling:
        return None
    return max(r.rolling_avg for r in rolling)


def best_power_curve(samples: Sequence[PowerSample], window_sizes: Dict[str, int]) -> Dict[str, Optional[float]]:
    """Best mean power for several windows at once using numpy prefix sums.

    ``window_sizes`` maps a label (e.g. "1200") to a window length in samples.
    """
    arr = np.asarray([p.power for p in samples], dtype=np.float64)
    prefix = np.concatenate(([0.0], arr.cumsum()))
    best: Dict[str, Optional[float]] = {}
    for label, window in window_sizes.items():
        if window <= 0 or arr.size < window:
            best[label] = None
            continue
        window_sums = prefix[window:] - prefix[:-window]
        best[label] = float(window_sums.max() / window)
    return best
