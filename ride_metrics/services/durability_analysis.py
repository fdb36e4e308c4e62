"""
耐久性（Durability）分析服务

针对长时间骑行（默认 >= 3 小时）：
1. 按时长切分为前段 [0, 30%)、中段 [30%, 70%)、后段 [70%, 100%]，分别统计 NP、NP%FTP、平均功率、平均心率、心率/功率比；
2. 心率漂移 = (后段心率/功率比 - 前段) / 前段 × 100；
3. 后段最佳 20 分钟平均功率及其占 FTP 百分比；
4. 综合为 0~100 的耐久性评分，并附带抽稀到 600 点以内的功率/心率时间序列。
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from .. import config
from ..core.analytics.power import (
    compute_average_power,
    compute_best_rolling_average,
    compute_normalized_power,
    extract_power_samples,
)
from ..core.analytics.sampling import downsample, infer_sample_rate, is_finite_number, round_half_up
from ..core.analytics.timeline import as_utc
from ..core.analytics.training import calculate_durability_score, intensity_tss
from ..schemas.analysis import (
    DurabilityAnalysisResponse,
    DurabilityPoint,
    DurabilityRideAnalysis,
    DurabilitySegment,
)
from ..schemas.samples import ActivityHistoryEntry, MetricSample


logger = logging.getLogger(__name__)

NORMALIZED_WINDOW_SECONDS = 30
BEST_WINDOW_SECONDS = 20 * 60
MAX_SERIES_POINTS = 600
EARLY_FRACTION = 0.3
LATE_FRACTION = 0.7


def _round(value: Optional[float], digits: int = 1) -> Optional[float]:
    if value is None or not is_finite_number(value):
        return None
    return round(value, digits)


def _pct_of_ftp(value: Optional[float], ftp_watts: Optional[float]) -> Optional[float]:
    if value is None or not ftp_watts or ftp_watts <= 0:
        return None
    return _round(value / ftp_watts * 100, 1)


def _average_heart_rate(samples: Sequence[MetricSample]) -> Optional[float]:
    values = [float(s.heart_rate) for s in samples if is_finite_number(s.heart_rate)]
    return sum(values) / len(values) if values else None


def _normalized_power(samples: Sequence[MetricSample], sample_rate: float) -> Optional[float]:
    window = max(1, round_half_up(NORMALIZED_WINDOW_SECONDS * sample_rate))
    normalized, _ = compute_normalized_power(extract_power_samples(samples), window)
    return normalized


def compute_segment(
    label: str,
    samples: Sequence[MetricSample],
    sample_rate: float,
    ftp_watts: Optional[float],
    start_sec: float,
    end_sec: float,
) -> DurabilitySegment:
    normalized = _normalized_power(samples, sample_rate)
    average_power = compute_average_power(extract_power_samples(samples))
    average_hr = _average_heart_rate(samples)
    ratio = average_hr / average_power if average_power is not None and average_power > 0 and average_hr is not None else None

    return DurabilitySegment(
        label=label,
        start_sec=start_sec,
        end_sec=end_sec,
        duration_sec=max(0.0, end_sec - start_sec),
        normalized_power_watts=_round(normalized, 1),
        normalized_power_pct_ftp=_pct_of_ftp(normalized, ftp_watts),
        average_power_watts=_round(average_power, 1),
        average_heart_rate_bpm=_round(average_hr, 0),
        heart_rate_power_ratio=_round(ratio, 3),
    )


def analyze_ride(entry: ActivityHistoryEntry, ftp_watts: Optional[float]) -> DurabilityRideAnalysis:
    activity = entry.activity
    samples = sorted(entry.samples, key=lambda s: s.t)
    duration = float(activity.duration_sec)
    sample_rate = infer_sample_rate(activity.sample_rate_hz, duration, samples)

    power_samples = extract_power_samples(samples)
    normalized = _normalized_power(samples, sample_rate)
    average_power = compute_average_power(power_samples)
    total_joules = sum(p.power for p in power_samples) / sample_rate if samples and sample_rate > 0 else None
    tss = intensity_tss(normalized, ftp_watts, duration) if normalized is not None and ftp_watts else None

    early_end = duration * EARLY_FRACTION
    middle_end = duration * LATE_FRACTION
    early = [s for s in samples if 0 <= s.t < early_end]
    middle = [s for s in samples if early_end <= s.t < middle_end]
    late = [s for s in samples if middle_end <= s.t < duration + 1]

    segments = {
        'early': compute_segment('early', early, sample_rate, ftp_watts, 0.0, early_end),
        'middle': compute_segment('middle', middle, sample_rate, ftp_watts, early_end, middle_end),
        'late': compute_segment('late', late, sample_rate, ftp_watts, middle_end, duration),
    }

    early_ratio = segments['early'].heart_rate_power_ratio
    late_ratio = segments['late'].heart_rate_power_ratio
    drift = (
        _round((late_ratio - early_ratio) / early_ratio * 100, 1)
        if early_ratio is not None and early_ratio > 0 and late_ratio is not None
        else None
    )

    best_window = max(1, round_half_up(BEST_WINDOW_SECONDS * sample_rate))
    best_late = compute_best_rolling_average(extract_power_samples(late), best_window)
    best_late_pct = _pct_of_ftp(best_late, ftp_watts)

    score = calculate_durability_score(
        segments['early'].normalized_power_pct_ftp,
        segments['late'].normalized_power_pct_ftp,
        drift,
        best_late_pct,
    )

    time_series = [
        DurabilityPoint(
            t=s.t,
            power=s.power if is_finite_number(s.power) else None,
            heart_rate=s.heart_rate if is_finite_number(s.heart_rate) else None,
        )
        for s in downsample(samples, MAX_SERIES_POINTS)
    ]

    return DurabilityRideAnalysis(
        activity_id=activity.id,
        start_time=activity.start_time,
        source=activity.source,
        duration_sec=duration,
        ftp_watts=ftp_watts,
        normalized_power_watts=_round(normalized, 1),
        normalized_power_pct_ftp=_pct_of_ftp(normalized, ftp_watts),
        average_power_watts=_round(average_power, 1),
        average_heart_rate_bpm=_round(_average_heart_rate(samples), 0),
        total_kj=_round(total_joules / 1000, 1) if total_joules is not None else None,
        tss=_round(tss, 1),
        heart_rate_drift_pct=drift,
        best_late_twenty_min_watts=_round(best_late, 1),
        best_late_twenty_min_pct_ftp=best_late_pct,
        durability_score=score,
        segments=segments,
        time_series=time_series,
    )


def compute_durability_analysis(
    entries: Sequence[ActivityHistoryEntry],
    ftp_watts: Optional[float],
    min_duration_sec: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> DurabilityAnalysisResponse:
    """按开始时间倒序返回满足最短时长的骑行分析。"""
    if min_duration_sec is None or min_duration_sec <= 0:
        min_duration_sec = config.DURABILITY_MIN_DURATION_SEC
    ftp = ftp_watts if is_finite_number(ftp_watts) and ftp_watts > 0 else None

    rides: List[DurabilityRideAnalysis] = []
    for entry in sorted(entries, key=lambda e: e.activity.start_time, reverse=True):
        activity = entry.activity
        if not entry.samples or not is_finite_number(activity.duration_sec) or activity.duration_sec < min_duration_sec:
            continue
        if start_date is not None and activity.start_time < as_utc(start_date):
            continue
        if end_date is not None and activity.start_time > as_utc(end_date):
            continue
        try:
            rides.append(analyze_ride(entry, ftp))
        except (ValueError, ArithmeticError) as e:
            logger.warning(f"[durability][activity-failed] activity_id={activity.id}, error: {e}")

    return DurabilityAnalysisResponse(ftp_watts=ftp, min_duration_sec=int(min_duration_sec), rides=rides)
