"""
基于活动历史的 FTP 估算工具。

设计说明：
----------------------------------------
- 主估计：所有活动中最佳 20 分钟滚动平均功率的最大值 × 0.95（P20 快速估算法）；
- 回退：没有任何活动满 20 分钟有效功率时，取各活动平均功率的最大值；
- 20 分钟窗口按样本数计算：round(1200 × 采样率)，采样率由活动元数据或时间戳推断；
- 通过 source 字段提示下游当前估算来自哪种估计器。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from ...schemas.samples import ActivityHistoryEntry
from .power import compute_average_power, compute_best_rolling_average, extract_power_samples
from .sampling import infer_sample_rate, is_finite_number, round_half_up

BEST_WINDOW_SECONDS = 20 * 60
P20_FACTOR = 0.95


@dataclass
class FTPEstimate:
    ftp: Optional[float]
    source: Optional[str]
    best_twenty_min_watts: Optional[float] = None
    max_average_power_watts: Optional[float] = None


def _stored_average_power(entry: ActivityHistoryEntry) -> Optional[float]:
    summary = entry.metric_summaries.get("normalized-power") or {}
    value = summary.get("average_power_w")
    return float(value) if is_finite_number(value) else None


def estimate_ftp(entries: Iterable[ActivityHistoryEntry]) -> FTPEstimate:
    best_twenty: Optional[float] = None
    max_average: Optional[float] = None

    for entry in entries:
        power_samples = extract_power_samples(entry.samples)
        if power_samples:
            rate = infer_sample_rate(entry.activity.sample_rate_hz, entry.activity.duration_sec, entry.samples)
            window = max(1, round_half_up(BEST_WINDOW_SECONDS * rate))
            best = compute_best_rolling_average(power_samples, window)
            if best is not None and (best_twenty is None or best > best_twenty):
                best_twenty = best
            average = compute_average_power(power_samples)
        else:
            average = _stored_average_power(entry)

        if average is not None and (max_average is None or average > max_average):
            max_average = average

    if best_twenty is not None and best_twenty > 0:
        return FTPEstimate(
            ftp=best_twenty * P20_FACTOR,
            source="best-20min",
            best_twenty_min_watts=best_twenty,
            max_average_power_watts=max_average,
        )
    if max_average is not None and max_average > 0:
        return FTPEstimate(ftp=max_average, source="max-average-power", max_average_power_watts=max_average)
    return FTPEstimate(ftp=None, source=None, best_twenty_min_watts=best_twenty, max_average_power_watts=max_average)
