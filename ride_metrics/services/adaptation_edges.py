"""
适应边界（Adaptation Edges）分析服务

说明：
- FTP：优先使用调用方提供的 FTP，否则用活动历史估算（最佳 20 分钟 × 0.95，回退最大平均功率）；
- 每次活动的代表功率为 NP（由采样计算，或读取已存储的 normalized-power 指标汇总），缺失时用平均功率；
- 单次 TSS = 时长 × P × (P / FTP) / (FTP × 36)；做功 kJ = 平均功率 × 时长 / 1000；
- 按 UTC 自然日聚合为连续时间线（空白日补 0），对 3~25 天每个窗口长度分别搜索 TSS 最高与 kJ 最高的训练块，
  两者互相独立，可以不重叠；
- 单条活动数据异常时记录警告并跳过，不影响其他活动。
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ..core.analytics.ftp_estimator import estimate_ftp
from ..core.analytics.power import compute_average_power, compute_normalized_power, extract_power_samples
from ..core.analytics.sampling import infer_sample_rate, is_finite_number, round_half_up
from ..core.analytics.timeline import build_dense_timeline, find_best_window, to_date_key
from ..core.analytics.training import calculate_training_load
from ..schemas.analysis import AdaptationEdgesResponse, AdaptationWindowSummary, BlockSummary, DayAggregation
from ..schemas.samples import ActivityHistoryEntry

logger = logging.getLogger(__name__)

MIN_WINDOW_DAYS = 3
MAX_WINDOW_DAYS = 25
NORMALIZED_WINDOW_SECONDS = 30


@dataclass
class ActivityLoad:
    activity_id: str
    day: date
    duration_sec: float
    normalized_power: Optional[float]
    average_power: Optional[float]


@dataclass
class _DayTotals:
    day: date
    tss: float = 0.0
    kj: float = 0.0
    activity_ids: List[str] = field(default_factory=list)


def _stored_number(summary: Dict[str, Any], key: str) -> Optional[float]:
    value = summary.get(key)
    return float(value) if is_finite_number(value) else None


def load_from_entry(entry: ActivityHistoryEntry) -> Optional[ActivityLoad]:
    activity = entry.activity
    duration = activity.duration_sec
    if not is_finite_number(duration) or duration <= 0:
        logger.debug(f"[adaptation][skip] activity_id={activity.id}, duration_sec={duration}")
        return None

    power_samples = extract_power_samples(entry.samples)
    if power_samples:
        rate = infer_sample_rate(activity.sample_rate_hz, duration, entry.samples)
        window = max(1, round_half_up(NORMALIZED_WINDOW_SECONDS * rate))
        normalized, _ = compute_normalized_power(power_samples, window)
        average = compute_average_power(power_samples)
    else:
        summary = entry.metric_summaries.get("normalized-power") or {}
        normalized = _stored_number(summary, "normalized_power_w")
        average = _stored_number(summary, "average_power_w")

    return ActivityLoad(
        activity_id=activity.id,
        day=to_date_key(activity.start_time),
        duration_sec=float(duration),
        normalized_power=normalized,
        average_power=average,
    )


def _build_block(days: Sequence[_DayTotals], start: int, length: int, metric: str) -> BlockSummary:
    window = days[start:start + length]
    total_tss = sum(d.tss for d in window)
    total_kj = sum(d.kj for d in window)
    total = total_tss if metric == "tss" else total_kj

    activity_ids: List[str] = []
    for d in window:
        for activity_id in d.activity_ids:
            if activity_id not in activity_ids:
                activity_ids.append(activity_id)

    return BlockSummary(
        metric=metric,
        start=window[0].day,
        end=window[-1].day,
        total=round(total, 2),
        average_per_day=round(total / length, 2),
        day_count=length,
        total_tss=round(total_tss, 2),
        total_kj=round(total_kj, 2),
        activity_ids=activity_ids,
        contributing_days=[_to_day_aggregation(d) for d in window],
    )


def _to_day_aggregation(d: _DayTotals) -> DayAggregation:
    return DayAggregation(date=d.day, total_tss=round(d.tss, 2), total_kj=round(d.kj, 2), activity_ids=list(d.activity_ids))


def _best_block(days: Sequence[_DayTotals], length: int, metric: str) -> Optional[BlockSummary]:
    values = [d.tss if metric == "tss" else d.kj for d in days]
    best = find_best_window(values, length)
    if best is None:
        return None
    return _build_block(days, best[0], length, metric)


def compute_adaptation_edges(
    entries: Sequence[ActivityHistoryEntry],
    ftp_watts: Optional[float] = None,
    min_window_days: int = MIN_WINDOW_DAYS,
    max_window_days: int = MAX_WINDOW_DAYS,
) -> AdaptationEdgesResponse:
    loads: List[ActivityLoad] = []
    loaded_entries: List[ActivityHistoryEntry] = []
    for entry in entries:
        try:
            load = load_from_entry(entry)
        except (ValueError, ArithmeticError) as e:
            logger.warning(f"[adaptation][activity-failed] activity_id={entry.activity.id}, error: {e}")
            continue
        if load is not None:
            loads.append(load)
            loaded_entries.append(entry)

    if not loads:
        return AdaptationEdgesResponse()

    estimate = estimate_ftp(loaded_entries)
    ftp = ftp_watts if is_finite_number(ftp_watts) and ftp_watts > 0 else estimate.ftp

    day_map: Dict[date, _DayTotals] = {}
    total_kj = 0.0
    total_tss = 0.0
    for load in loads:
        record = day_map.setdefault(load.day, _DayTotals(day=load.day))
        if load.average_power is not None:
            energy = load.average_power * load.duration_sec / 1000
            record.kj += energy
            total_kj += energy
        power = load.normalized_power if load.normalized_power is not None else load.average_power
        tss = calculate_training_load(power, ftp, load.duration_sec)
        if tss is not None:
            record.tss += tss
            total_tss += tss
        record.activity_ids.append(load.activity_id)

    days = build_dense_timeline(day_map, lambda day: _DayTotals(day=day))

    window_summaries = [
        AdaptationWindowSummary(
            window_days=length,
            best_tss=_best_block(days, length, "tss") if ftp else None,
            best_kj=_best_block(days, length, "kj"),
        )
        for length in range(min_window_days, max_window_days + 1)
    ]

    logger.info(f"[adaptation] activities={len(loads)}, days={len(days)}, ftp={ftp}")
    return AdaptationEdgesResponse(
        ftp_estimate=round(estimate.ftp, 1) if estimate.ftp is not None else None,
        ftp_watts=round(ftp, 1) if ftp is not None else None,
        total_activities=len(loads),
        total_kj=round(total_kj, 2),
        total_tss=round(total_tss, 2),
        analyzed_days=len(days),
        window_summaries=window_summaries,
        days=[_to_day_aggregation(d) for d in days],
    )
