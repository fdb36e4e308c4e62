"""
Durable TSS 服务

说明：
- 逐样本累计能量，累计做功首次达到阈值（kJ）的样本为“阈值后片段”的起点，该样本只计入超出阈值的部分；
- 片段内计算 NP（窗口 = min(round(30 × 采样率), 片段功率样本数)），NP 无法计算时回退为 片段能量 / 片段时长；
- Durable TSS = (P / FTP)² × 片段小时数 × 100，仅在 FTP > 0 且片段有功率样本时计算；
- FTP 来源：档案中声明的 FTP，其次为适应边界分析的 FTP 估算；都不可用时 durable_tss 为 None，但能量与时长照常输出。
"""

import logging
import math
from datetime import datetime
from typing import Any, Optional, Sequence

from .. import config
from ..core.analytics.power import compute_normalized_power, extract_power_samples
from ..core.analytics.sampling import infer_sample_rate, is_finite_number, round_half_up
from ..core.analytics.timeline import as_utc
from ..core.analytics.training import intensity_tss
from ..schemas.analysis import DurableTssResponse, DurableTssRide
from ..schemas.samples import ActivityHistoryEntry

logger = logging.getLogger(__name__)

NORMALIZED_WINDOW_SECONDS = 30
MIN_THRESHOLD_KJ = 1
MAX_THRESHOLD_KJ = 5000


def _to_positive_number(value: Any) -> Optional[float]:
    if isinstance(value, str) and value.strip():
        try:
            value = float(value)
        except ValueError:
            return None
    if is_finite_number(value) and value > 0:
        return float(value)
    return None


def resolve_ftp_watts(profile_ftp: Any = None, ftp_estimate: Any = None) -> Optional[float]:
    """档案 FTP 优先，其次适应边界 FTP 估算；都不是正数时返回 None。"""
    explicit = _to_positive_number(profile_ftp)
    if explicit is not None:
        return explicit
    return _to_positive_number(ftp_estimate)


def clamp_threshold(value: float) -> int:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return MIN_THRESHOLD_KJ
    if value < MIN_THRESHOLD_KJ:
        return MIN_THRESHOLD_KJ
    if value > MAX_THRESHOLD_KJ:
        return MAX_THRESHOLD_KJ
    return round_half_up(value)


def _round(value: Optional[float], digits: int = 1) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return round(value, digits)


def compute_ride_durable_tss(entry: ActivityHistoryEntry, ftp_watts: Optional[float], threshold_kj: float) -> DurableTssRide:
    activity = entry.activity
    samples = sorted(entry.samples, key=lambda s: s.t)
    ride = DurableTssRide(activity_id=activity.id, start_time=activity.start_time, source=activity.source)
    if not samples:
        return ride

    sample_rate = infer_sample_rate(activity.sample_rate_hz, activity.duration_sec, samples)
    if sample_rate <= 0:
        return ride

    interval = 1 / sample_rate
    threshold_j = threshold_kj * 1000
    cumulative = 0.0
    post_threshold = 0.0
    start_index: Optional[int] = None

    for index, sample in enumerate(samples):
        joules = float(sample.power) * interval if is_finite_number(sample.power) else 0.0
        if start_index is not None:
            post_threshold += joules
        elif cumulative + joules >= threshold_j:
            start_index = index
            post_threshold += max(0.0, cumulative + joules - threshold_j)
        cumulative += joules

    total_kj = _round(cumulative / 1000, 1)
    if start_index is None:
        return ride.model_copy(update={'total_kj': total_kj})

    segment = samples[start_index:]
    segment_duration = len(segment) * interval
    durable_tss = None

    power_samples = extract_power_samples(segment)
    if ftp_watts and ftp_watts > 0 and power_samples:
        nominal_window = max(1, round_half_up(NORMALIZED_WINDOW_SECONDS * sample_rate))
        normalized, _ = compute_normalized_power(power_samples, min(nominal_window, len(power_samples)))
        effective_power = normalized if normalized is not None and math.isfinite(normalized) else None
        if effective_power is None and segment_duration > 0:
            segment_joules = sum(float(s.power) * interval for s in segment if is_finite_number(s.power))
            effective_power = segment_joules / segment_duration
        if effective_power is not None:
            durable_tss = _round(intensity_tss(effective_power, ftp_watts, segment_duration), 1)

    return ride.model_copy(update={
        'total_kj': total_kj,
        'post_threshold_kj': _round(post_threshold / 1000, 1),
        'post_threshold_duration_sec': _round(segment_duration, 0),
        'durable_tss': durable_tss,
    })


def _in_range(start_time: datetime, start_date: Optional[datetime], end_date: Optional[datetime]) -> bool:
    if start_date is not None and start_time < as_utc(start_date):
        return False
    if end_date is not None and start_time > as_utc(end_date):
        return False
    return True


def compute_durable_tss(
    entries: Sequence[ActivityHistoryEntry],
    ftp_watts: Optional[float],
    threshold_kj: Optional[float] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> DurableTssResponse:
    threshold = clamp_threshold(config.DURABLE_TSS_THRESHOLD_KJ if threshold_kj is None else threshold_kj)
    ftp = _to_positive_number(ftp_watts)

    rides = []
    for entry in sorted(entries, key=lambda e: e.activity.start_time):
        if not entry.samples or not _in_range(entry.activity.start_time, start_date, end_date):
            continue
        try:
            rides.append(compute_ride_durable_tss(entry, ftp, threshold))
        except (ValueError, ArithmeticError) as e:
            logger.warning(f"[durable-tss][activity-failed] activity_id={entry.activity.id}, error: {e}")

    return DurableTssResponse(
        ftp_watts=ftp,
        threshold_kj=threshold,
        start_date=start_date,
        end_date=end_date,
        rides=rides,
    )
