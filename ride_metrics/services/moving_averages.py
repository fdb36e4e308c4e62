"""
移动平均输入（每日做功与最佳功率）

按 UTC 自然日汇总总做功（kJ）与 60s/5min/20min/1h/3h/4h 的当日最佳平均功率，
输出从首个到最后一个活动日的连续时间线，供上层计算 CTL/ATL 类移动平均。
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence

from ..core.analytics.power import best_power_curve, extract_power_samples
from ..core.analytics.sampling import infer_sample_rate, round_half_up
from ..core.analytics.timeline import build_dense_timeline, to_date_key
from ..schemas.analysis import MovingAverageDay
from ..schemas.samples import ActivityHistoryEntry

logger = logging.getLogger(__name__)

POWER_DURATIONS_SECONDS = (60, 300, 1200, 3600, 10800, 14400)


def _empty_best_power() -> Dict[str, Optional[float]]:
    return {str(duration): None for duration in POWER_DURATIONS_SECONDS}


@dataclass
class _DayInputs:
    day: date
    total_kj: float = 0.0
    best_power: Dict[str, Optional[float]] = field(default_factory=_empty_best_power)


def merge_activity(day_map: Dict[date, _DayInputs], entry: ActivityHistoryEntry) -> None:
    activity = entry.activity
    samples = sorted(entry.samples, key=lambda s: s.t)
    power_samples = extract_power_samples(samples)
    sample_rate = infer_sample_rate(activity.sample_rate_hz, activity.duration_sec, samples)

    day = to_date_key(activity.start_time)
    record = day_map.setdefault(day, _DayInputs(day=day))
    record.total_kj += sum(p.power for p in power_samples) / sample_rate / 1000

    windows = {str(d): max(1, round_half_up(d * sample_rate)) for d in POWER_DURATIONS_SECONDS}
    for key, best in best_power_curve(power_samples, windows).items():
        if best is None:
            continue
        best = round(best, 1)
        current = record.best_power[key]
        if current is None or best > current:
            record.best_power[key] = best


def compute_moving_average_inputs(entries: Sequence[ActivityHistoryEntry]) -> List[MovingAverageDay]:
    day_map: Dict[date, _DayInputs] = {}
    for entry in sorted(entries, key=lambda e: e.activity.start_time):
        try:
            merge_activity(day_map, entry)
        except (ValueError, ArithmeticError) as e:
            logger.warning(f"[moving-averages][activity-failed] activity_id={entry.activity.id}, error: {e}")

    timeline = build_dense_timeline(day_map, lambda day: _DayInputs(day=day))
    return [
        MovingAverageDay(date=d.day, total_kj=round(d.total_kj, 2), best_power=dict(d.best_power))
        for d in timeline
    ]
