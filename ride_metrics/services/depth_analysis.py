"""
深度做功（Depth）分析服务

逐样本累计能量；累计做功超过阈值（kJ）且瞬时功率不低于最低功率时，阈值之后的做功计为“深度做功”。
跨越阈值的那个样本只计入阈值以上的部分。结果按 UTC 自然日聚合为连续时间线，
并计算每日深度做功的 90 天尾随滑动平均（空白日按 0 计）。
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from .. import config
from ..core.analytics.sampling import infer_sample_rate, is_finite_number
from ..core.analytics.timeline import build_dense_timeline, to_date_key, trailing_moving_average
from ..schemas.analysis import DepthActivitySummary, DepthAnalysisResponse, DepthDaySummary
from ..schemas.samples import ActivityHistoryEntry, MetricSample

logger = logging.getLogger(__name__)

MOVING_AVERAGE_DAYS = 90


@dataclass
class _DepthDay:
    day: date
    total_kj: float = 0.0
    depth_kj: float = 0.0
    activities: List[DepthActivitySummary] = field(default_factory=list)


def compute_activity_depth(
    samples: Sequence[MetricSample],
    sample_rate_hz: Optional[float],
    duration_sec: float,
    threshold_kj: float,
    min_power_watts: float,
) -> Tuple[float, float]:
    """返回 (总做功 J, 深度做功 J)。功率 <=0 或缺失的样本不计入。"""
    if not samples:
        return 0.0, 0.0

    ordered = sorted(samples, key=lambda s: s.t)
    sample_rate = max(1e-6, infer_sample_rate(sample_rate_hz, duration_sec, ordered))
    interval = 1 / sample_rate
    threshold_j = max(0.0, threshold_kj * 1000)
    min_power = max(0.0, min_power_watts)

    cumulative = 0.0
    depth = 0.0
    for sample in ordered:
        power = float(sample.power) if is_finite_number(sample.power) else 0.0
        if power <= 0:
            continue
        previous = cumulative
        cumulative += power * interval
        if power < min_power or cumulative <= threshold_j:
            continue
        depth += cumulative - max(previous, threshold_j)

    return cumulative, depth


def _ratio_pct(part: float, whole: float) -> Optional[float]:
    return round(part / whole * 100, 1) if whole > 0 else None


def compute_depth_analysis(
    entries: Sequence[ActivityHistoryEntry],
    threshold_kj: Optional[float] = None,
    min_power_watts: Optional[float] = None,
) -> DepthAnalysisResponse:
    threshold_kj = config.DEPTH_THRESHOLD_KJ if threshold_kj is None else threshold_kj
    min_power_watts = config.DEPTH_MIN_POWER_W if min_power_watts is None else min_power_watts

    day_map: Dict[date, _DepthDay] = {}
    for entry in sorted(entries, key=lambda e: e.activity.start_time):
        activity = entry.activity
        try:
            total_j, depth_j = compute_activity_depth(
                entry.samples, activity.sample_rate_hz, activity.duration_sec, threshold_kj, min_power_watts
            )
        except (ValueError, ArithmeticError) as e:
            logger.warning(f"[depth][activity-failed] activity_id={activity.id}, error: {e}")
            continue
        if total_j <= 0:
            logger.debug(f"[depth][skip] activity_id={activity.id}, no positive power")
            continue

        day = to_date_key(activity.start_time)
        record = day_map.setdefault(day, _DepthDay(day=day))
        record.total_kj += total_j / 1000
        record.depth_kj += depth_j / 1000
        record.activities.append(DepthActivitySummary(
            activity_id=activity.id,
            start_time=activity.start_time,
            total_kj=round(total_j / 1000, 2),
            depth_kj=round(depth_j / 1000, 2),
            depth_ratio=_ratio_pct(depth_j, total_j),
        ))

    timeline = build_dense_timeline(day_map, lambda day: _DepthDay(day=day))
    moving_average = trailing_moving_average([d.depth_kj for d in timeline], MOVING_AVERAGE_DAYS)

    days = [
        DepthDaySummary(
            date=d.day,
            total_kj=round(d.total_kj, 2),
            depth_kj=round(d.depth_kj, 2),
            depth_ratio=_ratio_pct(d.depth_kj, d.total_kj),
            moving_average90=avg,
            activities=list(d.activities),
        )
        for d, avg in zip(timeline, moving_average)
    ]
    return DepthAnalysisResponse(threshold_kj=threshold_kj, min_power_watts=min_power_watts, days=days)
