"""
训练前沿（Training Frontiers）服务

在最近 window_days 天（默认 90，上限 180）的活动中寻找各维度的个人最佳：
1. 时长-功率前沿：5s ~ 4h 最佳平均功率，及其对数-对数空间上凸包；2~5 小时的 kJ/h 前沿；
2. 疲劳前沿：累计做功达到 1000~3000 kJ 之后的 5/10/20/30 分钟最佳功率，与新鲜状态对比；
3. 长时效率：3/4/5 小时窗口的 W/bpm（需满足踏频、移动、心率覆盖率门槛），每活动每时长保留前 3；
4. 可重复性：VO2max / 阈值区间的连续组（休息 1~1.5 倍组时长），计算衰减斜率；
5. 区间停留：30s 滚动功率在各功率区间内（容忍 5% 越界）的最长连续时长。

依赖 FTP 的部分（可重复性、区间停留）在 FTP 缺失时返回空结果。
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..core.analytics.power import PowerSample, compute_rolling_averages, extract_power_samples
from ..core.analytics.sampling import infer_sample_rate, is_finite_number, round_half_up
from ..core.analytics.statistics import linear_regression
from ..core.analytics.timeline import as_utc
from ..schemas.analysis import (
    DurabilityEffort,
    DurabilityFrontier,
    DurationPowerEntry,
    DurationPowerFrontier,
    EfficiencyFrontier,
    EfficiencyWindow,
    KjFrontierEntry,
    RepeatabilityBest,
    RepeatabilityFrontier,
    RepeatabilitySequence,
    TimeInZoneFrontier,
    TrainingFrontiersResponse,
    ZoneStreak,
)
from ..schemas.samples import Activity, ActivityHistoryEntry, MetricSample

logger = logging.getLogger(__name__)

MAX_WINDOW_DAYS = 180
DEFAULT_WINDOW_DAYS = 90

POWER_DURATIONS_SECONDS = (5, 15, 30, 60, 120, 180, 300, 480, 600, 1200, 1800, 2700, 3600, 5400, 7200, 10800, 14400)
KJ_FRONTIER_DURATIONS_HOURS = (2, 3, 4, 5)

FATIGUE_BINS_KJ = (1000, 1500, 2000, 2500, 3000)
FATIGUE_TARGET_DURATIONS_SECONDS = (300, 600, 1200, 1800)

EFFICIENCY_DURATIONS_SECONDS = (10800, 14400, 18000)
EFFICIENCY_MAX_RESULTS = 3
CADENCE_VALID_THRESHOLD = 0
CADENCE_COVERAGE_MIN = 0.85
MOVING_SPEED_THRESHOLD = 0.5
MOVING_COVERAGE_MIN = 0.98
HEART_RATE_COVERAGE_MIN = 0.9

MIN_INTERVAL_COUNT = 3
REST_MIN_RATIO = 1.0
REST_MAX_RATIO = 1.5
REPEATABILITY_DROP_PCT = 10

TIME_IN_ZONE_TOLERANCE = 0.05
ROLLING_AVG_WINDOW_SECONDS = 30

MIN_SAMPLE_RATE = 1e-6


@dataclass(frozen=True)
class RepeatabilityTarget:
    key         : str
    label       : str
    min_pct     : float
    max_pct     : float
    min_duration: float
    max_duration: float


@dataclass(frozen=True)
class ZoneDefinition:
    key    : str
    label  : str
    min_pct: float
    max_pct: Optional[float]


REPEATABILITY_TARGETS = (
    RepeatabilityTarget('vo2', 'VO2 max intervals', 110, 120, 180, 360),
    RepeatabilityTarget('threshold', 'Threshold intervals', 95, 105, 480, 1200),
)

DEFAULT_ZONES = (
    ZoneDefinition('Z1', 'Active recovery', 0, 55),
    ZoneDefinition('Z2', 'Endurance', 55, 75),
    ZoneDefinition('Z3', 'Tempo', 75, 90),
    ZoneDefinition('Z4', 'Threshold', 90, 105),
    ZoneDefinition('Z5', 'VO2 max', 105, 120),
    ZoneDefinition('Z6', 'Anaerobic', 120, None),
)


@dataclass
class _Ride:
    activity     : Activity
    samples      : List[MetricSample]
    power_samples: List[PowerSample]
    sample_rate  : float

    def power_array(self) -> np.ndarray:
        return np.asarray([p.power for p in self.power_samples], dtype=np.float64)

    def source_fields(self) -> Dict[str, object]:
        return {'activity_id': self.activity.id, 'start_time': self.activity.start_time}


@dataclass(frozen=True)
class _Interval:
    start_sec   : int
    end_sec     : int
    duration_sec: float
    avg_watts   : float
    avg_pct_ftp : float


def clamp_window_days(window_days: Optional[float] = None) -> int:
    """缺失、非有限或 0 时取默认 90 天；否则四舍五入并限制在 [1, 180]"""
    if not is_finite_number(window_days) or window_days == 0:
        return DEFAULT_WINDOW_DAYS
    return max(1, min(MAX_WINDOW_DAYS, round_half_up(window_days)))


def _round(value: Optional[float], digits: int = 1) -> Optional[float]:
    if value is None or not np.isfinite(value):
        return None
    return round(float(value), digits)


def _pct_ftp(watts: float, ftp_watts: Optional[float]) -> Optional[float]:
    return _round(watts / ftp_watts * 100) if ftp_watts else None


def _window_means(values: np.ndarray, window: int) -> np.ndarray:
    prefix = np.concatenate(([0.0], np.cumsum(values)))
    return (prefix[window:] - prefix[:-window]) / window


def _best_window(
    values: np.ndarray, window: int, eligible: Optional[np.ndarray] = None
) -> Optional[Tuple[int, float]]:
    """最佳窗口均值及其起点下标（并列取最早）；窗口超出样本数或无合格起点时返回 None"""
    if window > values.size:
        return None
    means = _window_means(values, window)
    if eligible is not None:
        if not eligible.any():
            return None
        means = np.where(eligible, means, -np.inf)
    index = int(np.argmax(means))
    return index, float(means[index])


def _channel(samples: Sequence[MetricSample], name: str) -> np.ndarray:
    """按通道取值，缺失读数为 NaN"""
    return np.asarray(
        [getattr(s, name) if is_finite_number(getattr(s, name)) else np.nan for s in samples],
        dtype=np.float64,
    )


def _heart_rate_reserve_pct(heart_rate: float, hr_rest: Optional[float], hr_max: Optional[float]) -> Optional[float]:
    if not is_finite_number(hr_rest) or not is_finite_number(hr_max) or hr_max <= hr_rest:
        return None
    return (heart_rate - hr_rest) / (hr_max - hr_rest) * 100


def _prepare_rides(entries: Sequence[ActivityHistoryEntry]) -> List[_Ride]:
    rides: List[_Ride] = []
    # 新活动优先：并列最佳时保留较新的记录
    for entry in sorted(entries, key=lambda e: as_utc(e.activity.start_time), reverse=True):
        if not entry.samples:
            continue
        activity = entry.activity
        samples = sorted(entry.samples, key=lambda s: s.t)
        rides.append(_Ride(
            activity=activity,
            samples=samples,
            power_samples=extract_power_samples(samples),
            sample_rate=infer_sample_rate(activity.sample_rate_hz, activity.duration_sec, samples),
        ))
    return rides


def _for_each_ride(rides: Sequence[_Ride], tag: str, merge: Callable[[_Ride], None]) -> None:
    for ride in rides:
        try:
            merge(ride)
        except (ValueError, ArithmeticError) as e:
            logger.warning(f"[frontiers][{tag}-failed] activity_id={ride.activity.id}, error: {e}")


# ---- 时长-功率 ----

def _log_slope(a: DurationPowerEntry, b: DurationPowerEntry) -> float:
    return (np.log(b.value) - np.log(a.value)) / (np.log(b.duration_sec) - np.log(a.duration_sec))


def compute_convex_hull(entries: Sequence[DurationPowerEntry]) -> List[DurationPowerEntry]:
    """对数-对数空间的上凸包（按时长升序）"""
    points = sorted((e for e in entries if e.value is not None and e.value > 0), key=lambda e: e.duration_sec)
    hull: List[DurationPowerEntry] = []
    for entry in points:
        while len(hull) >= 2 and _log_slope(hull[-1], entry) > _log_slope(hull[-2], hull[-1]):
            hull.pop()
        hull.append(entry)
    return hull


def compute_duration_power_frontier(rides: Sequence[_Ride], ftp_watts: Optional[float]) -> DurationPowerFrontier:
    durations = [DurationPowerEntry(duration_sec=d) for d in POWER_DURATIONS_SECONDS]
    kj_entries = [KjFrontierEntry(duration_hours=h) for h in KJ_FRONTIER_DURATIONS_HOURS]
    peak: Optional[KjFrontierEntry] = None

    def merge(ride: _Ride) -> None:
        nonlocal peak
        if not ride.power_samples:
            return
        rate = max(1, round_half_up(ride.sample_rate))
        powers = ride.power_array()

        for i, entry in enumerate(durations):
            found = _best_window(powers, max(1, round_half_up(entry.duration_sec * rate)))
            if found is None:
                continue
            index, best = found
            if entry.value is None or best > entry.value:
                durations[i] = entry.model_copy(update={
                    'value'           : _round(best),
                    'pct_ftp'         : _pct_ftp(best, ftp_watts),
                    'window_start_sec': round_half_up(ride.power_samples[index].t),
                    **ride.source_fields(),
                })

        for i, entry in enumerate(kj_entries):
            found = _best_window(powers, max(1, round_half_up(entry.duration_hours * 3600 * rate)))
            if found is None:
                continue
            index, best = found
            if entry.average_watts is None or best > entry.average_watts:
                entry = kj_entries[i] = entry.model_copy(update={
                    'value'           : _round(best * 3.6),
                    'average_watts'   : _round(best),
                    'total_kj'        : _round(best * entry.duration_hours * 3.6),
                    'pct_ftp'         : _pct_ftp(best, ftp_watts),
                    'window_start_sec': round_half_up(ride.power_samples[index].t),
                    **ride.source_fields(),
                })
            if entry.value is not None and (peak is None or entry.value > peak.value):
                peak = entry

    _for_each_ride(rides, 'duration-power', merge)
    return DurationPowerFrontier(
        durations=durations,
        convex_hull=compute_convex_hull(durations),
        kj_frontier=kj_entries,
        peak_kj_per_hour=peak,
    )


# ---- 疲劳后功率 ----

def compute_durability_frontier(
    rides: Sequence[_Ride], ftp_watts: Optional[float], fresh: Sequence[DurationPowerEntry]
) -> DurabilityFrontier:
    efforts = [
        DurabilityEffort(fatigue_kj=kj, duration_sec=d)
        for kj in FATIGUE_BINS_KJ for d in FATIGUE_TARGET_DURATIONS_SECONDS
    ]
    fresh_lookup = {e.duration_sec: e.value for e in fresh if e.value is not None}

    def merge(ride: _Ride) -> None:
        if not ride.power_samples:
            return
        rate = max(MIN_SAMPLE_RATE, ride.sample_rate)
        powers = ride.power_array()
        # 每个起点之前的累计做功（J）
        energy_before = np.concatenate(([0.0], np.cumsum(powers / rate)[:-1]))

        for i, effort in enumerate(efforts):
            window = max(1, round_half_up(effort.duration_sec * rate))
            if window > powers.size:
                continue
            eligible = energy_before[:powers.size - window + 1] >= effort.fatigue_kj * 1000
            found = _best_window(powers, window, eligible)
            if found is None:
                continue
            index, best = found
            if effort.value is not None and best <= effort.value:
                continue

            update = {
                'value'           : _round(best),
                'pct_ftp'         : _pct_ftp(best, ftp_watts),
                'window_start_sec': round_half_up(ride.power_samples[index].t),
                **ride.source_fields(),
            }
            fresh_value = fresh_lookup.get(effort.duration_sec)
            if fresh_value is not None:
                update['delta_watts'] = _round(best - fresh_value)
                update['delta_pct'] = _round((best - fresh_value) / fresh_value * 100) if fresh_value > 0 else None
            efforts[i] = effort.model_copy(update=update)

    _for_each_ride(rides, 'durability', merge)
    return DurabilityFrontier(efforts=efforts)


# ---- 长时效率 ----

def compute_efficiency_frontier(
    rides: Sequence[_Ride],
    ftp_watts: Optional[float],
    hr_rest_bpm: Optional[float],
    hr_max_bpm: Optional[float],
) -> EfficiencyFrontier:
    windows: List[EfficiencyWindow] = []

    def merge(ride: _Ride) -> None:
        samples = ride.samples
        rate = max(MIN_SAMPLE_RATE, ride.sample_rate)
        power = np.nan_to_num(_channel(samples, 'power'), nan=0.0)
        heart_rate = _channel(samples, 'heart_rate')
        hr_valid = ~np.isnan(heart_rate)
        cadence_ok = np.nan_to_num(_channel(samples, 'cadence'), nan=0.0) > CADENCE_VALID_THRESHOLD
        moving = np.nan_to_num(_channel(samples, 'speed'), nan=0.0) > MOVING_SPEED_THRESHOLD

        for duration in EFFICIENCY_DURATIONS_SECONDS:
            window = max(1, round_half_up(duration * rate))
            if window > power.size:
                continue
            cadence_coverage = _window_means(cadence_ok.astype(np.float64), window)
            moving_coverage = _window_means(moving.astype(np.float64), window)
            hr_coverage = _window_means(hr_valid.astype(np.float64), window)
            passed = (
                (cadence_coverage >= CADENCE_COVERAGE_MIN)
                & (moving_coverage >= MOVING_COVERAGE_MIN)
                & (hr_coverage >= HEART_RATE_COVERAGE_MIN)
            )
            starts = np.flatnonzero(passed)
            if starts.size == 0:
                continue

            avg_power = _window_means(power, window)[starts]
            hr_sums = _window_means(np.where(hr_valid, heart_rate, 0.0), window)[starts]
            avg_hr = hr_sums / hr_coverage[starts]
            with np.errstate(divide='ignore', invalid='ignore'):
                ratio = np.where(avg_hr > 0, avg_power / avg_hr, np.nan)
            # W/bpm 降序，并列保留较早的窗口
            order = np.argsort(-np.nan_to_num(ratio, nan=0.0), kind='stable')[:EFFICIENCY_MAX_RESULTS]

            for k in order:
                start = int(starts[k])
                watts = float(avg_power[k])
                hr = float(avg_hr[k])
                hrr = _heart_rate_reserve_pct(hr, hr_rest_bpm, hr_max_bpm)
                windows.append(EfficiencyWindow(
                    duration_sec=duration,
                    value=_round(watts),
                    pct_ftp=_pct_ftp(watts, ftp_watts),
                    window_start_sec=round_half_up(samples[start].t),
                    average_watts=_round(watts),
                    average_heart_rate=_round(hr, 0),
                    watts_per_bpm=_round(float(ratio[k]), 2),
                    watts_per_heart_rate_reserve=_round(watts / hrr, 2) if hrr is not None and hrr > 0 else None,
                    cadence_coverage=round(float(cadence_coverage[start]) * 100, 1),
                    moving_coverage=round(float(moving_coverage[start]) * 100, 1),
                    **ride.source_fields(),
                ))

    _for_each_ride(rides, 'efficiency', merge)
    windows.sort(key=lambda w: (w.duration_sec, -(w.watts_per_bpm or 0)))
    return EfficiencyFrontier(windows=windows)


# ---- 可重复性 ----

def find_intervals(
    samples: Sequence[MetricSample], sample_rate: float, target: RepeatabilityTarget, ftp_watts: float
) -> List[_Interval]:
    """连续处于目标 %FTP 区间、且时长落在 [min_duration, max_duration] 的片段"""
    powers = [s.power if is_finite_number(s.power) else 0.0 for s in samples]
    runs: List[Tuple[int, int]] = []
    start: Optional[int] = None
    for index, power in enumerate(powers):
        within = target.min_pct <= power / ftp_watts * 100 <= target.max_pct
        if within and start is None:
            start = index
        elif not within and start is not None:
            runs.append((start, index))
            start = None
    if start is not None:
        runs.append((start, len(powers)))

    intervals: List[_Interval] = []
    for start, end in runs:
        duration = (end - start) / sample_rate
        if not target.min_duration <= duration <= target.max_duration:
            continue
        avg = sum(powers[start:end]) / (end - start)
        intervals.append(_Interval(
            start_sec=round_half_up(samples[start].t),
            end_sec=round_half_up(samples[end - 1].t),
            duration_sec=duration,
            avg_watts=avg,
            avg_pct_ftp=avg / ftp_watts * 100,
        ))
    return intervals


def group_sequences(intervals: Sequence[_Interval]) -> List[List[_Interval]]:
    """按起点排序后切分：相邻两组之间的休息需在上一组时长的 1~1.5 倍之间"""
    ordered = sorted(intervals, key=lambda i: i.start_sec)
    groups: List[List[_Interval]] = []
    cursor = 0
    while cursor < len(ordered):
        index = cursor + 1
        while index < len(ordered):
            previous, current = ordered[index - 1], ordered[index]
            rest = current.start_sec - previous.end_sec
            if rest < previous.duration_sec * REST_MIN_RATIO or rest > previous.duration_sec * REST_MAX_RATIO:
                break
            index += 1
        groups.append(ordered[cursor:index])
        cursor = index
    return groups


def _reps_before_drop(pcts: Sequence[float]) -> int:
    reps = 0
    for pct in pcts:
        if pct < pcts[0] - REPEATABILITY_DROP_PCT:
            break
        reps += 1
    return reps


def compute_repeatability_frontier(rides: Sequence[_Ride], ftp_watts: Optional[float]) -> RepeatabilityFrontier:
    sequences: List[RepeatabilitySequence] = []
    best = {t.key: RepeatabilityBest(target_key=t.key) for t in REPEATABILITY_TARGETS}
    if not ftp_watts:
        return RepeatabilityFrontier(sequences=sequences, best_repeatability=list(best.values()))

    def merge(ride: _Ride) -> None:
        rate = max(MIN_SAMPLE_RATE, ride.sample_rate)
        for target in REPEATABILITY_TARGETS:
            intervals = find_intervals(ride.samples, rate, target, ftp_watts)
            if len(intervals) < MIN_INTERVAL_COUNT:
                continue
            for group in group_sequences(intervals):
                if len(group) < MIN_INTERVAL_COUNT:
                    continue
                pcts = [round(i.avg_pct_ftp, 1) for i in group]
                fit = linear_regression([(rep, pct) for rep, pct in enumerate(pcts, start=1)])
                sequence = RepeatabilitySequence(
                    target_key=target.key,
                    start_sec=group[0].start_sec,
                    reps=len(group),
                    avg_watts_by_rep=[round(i.avg_watts, 1) for i in group],
                    avg_pct_by_rep=pcts,
                    decay_slope=round(fit.slope, 3),
                    drop_from_first_to_last=round(pcts[-1] - pcts[0], 1),
                    **ride.source_fields(),
                )
                sequences.append(sequence)

                reps = _reps_before_drop(pcts)
                if reps > best[target.key].reps:
                    best[target.key] = best[target.key].model_copy(update={
                        'reps'     : reps,
                        'start_sec': sequence.start_sec,
                        **ride.source_fields(),
                    })

    _for_each_ride(rides, 'repeatability', merge)
    sequences.sort(key=lambda s: (s.target_key, s.decay_slope, -s.reps))
    return RepeatabilityFrontier(sequences=sequences, best_repeatability=list(best.values()))


# ---- 区间停留 ----

def longest_zone_streak(
    rolling: Sequence[Tuple[MetricSample, float]], min_watts: float, max_watts: float
) -> Optional[Tuple[int, int, float, List[float]]]:
    """贪心扩展：越界样本占比不超过容忍度；返回最长片段 (start, end, 功率和, 心率列表)"""
    best: Optional[Tuple[int, int, float, List[float]]] = None
    start = 0
    while start < len(rolling):
        end = start
        outside = 0
        power_sum = 0.0
        heart_rates: List[float] = []
        while end < len(rolling):
            sample, watts = rolling[end]
            is_outside = watts < min_watts or watts > max_watts
            if (outside + is_outside) / (end - start + 1) > TIME_IN_ZONE_TOLERANCE:
                break
            outside += is_outside
            power_sum += watts
            if is_finite_number(sample.heart_rate):
                heart_rates.append(sample.heart_rate)
            end += 1
        if end > start and (best is None or end - start > best[1] - best[0]):
            best = (start, end, power_sum, heart_rates)
        start = max(start + 1, end)
    return best


def compute_time_in_zone_frontier(
    rides: Sequence[_Ride], ftp_watts: Optional[float], zones: Sequence[ZoneDefinition] = DEFAULT_ZONES
) -> TimeInZoneFrontier:
    streaks = [ZoneStreak(zone_key=z.key, label=z.label, min_pct=z.min_pct, max_pct=z.max_pct) for z in zones]
    if not ftp_watts:
        return TimeInZoneFrontier(streaks=streaks)

    def merge(ride: _Ride) -> None:
        if not ride.power_samples:
            return
        rate = max(1, round_half_up(ride.sample_rate))
        window = max(1, round_half_up(ROLLING_AVG_WINDOW_SECONDS * rate))
        rolling = compute_rolling_averages(ride.power_samples, window)
        if not rolling:
            return
        # 滚动点对齐到窗口末尾的功率样本
        powered = [s for s in ride.samples if is_finite_number(s.power)]
        offset = len(powered) - len(rolling)
        aligned = [(powered[i + offset], point.rolling_avg) for i, point in enumerate(rolling)]

        for i, zone in enumerate(zones):
            max_watts = zone.max_pct / 100 * ftp_watts if zone.max_pct is not None else float('inf')
            found = longest_zone_streak(aligned, zone.min_pct / 100 * ftp_watts, max_watts)
            if found is None:
                continue
            start, end, power_sum, heart_rates = found
            duration = (end - start) / rate
            if duration <= streaks[i].duration_sec:
                continue
            streaks[i] = streaks[i].model_copy(update={
                'duration_sec'      : duration,
                'value'             : round(duration / 60, 1),
                'window_start_sec'  : round_half_up(aligned[start][0].t),
                'average_watts'     : _round(power_sum / (end - start)),
                'average_heart_rate': _round(sum(heart_rates) / len(heart_rates), 0) if heart_rates else None,
                **ride.source_fields(),
            })

    _for_each_ride(rides, 'time-in-zone', merge)
    return TimeInZoneFrontier(streaks=streaks)


def compute_training_frontiers(
    entries: Sequence[ActivityHistoryEntry],
    ftp_watts: Optional[float] = None,
    weight_kg: Optional[float] = None,
    hr_max_bpm: Optional[float] = None,
    hr_rest_bpm: Optional[float] = None,
    window_days: Optional[float] = None,
    now: Optional[datetime] = None,
) -> TrainingFrontiersResponse:
    """Personal bests across the last ``window_days`` days ending at ``now`` (UTC, default current time)."""
    days = clamp_window_days(window_days)
    reference = as_utc(now) if now is not None else datetime.now(timezone.utc)
    window_start = reference - timedelta(days=days)
    rides = _prepare_rides([e for e in entries if as_utc(e.activity.start_time) >= window_start])
    ftp = float(ftp_watts) if is_finite_number(ftp_watts) and ftp_watts > 0 else None

    duration_power = compute_duration_power_frontier(rides, ftp)
    response = TrainingFrontiersResponse(
        window_days=days,
        ftp_watts=ftp_watts,
        weight_kg=weight_kg,
        hr_max_bpm=hr_max_bpm,
        hr_rest_bpm=hr_rest_bpm,
        duration_power=duration_power,
        durability=compute_durability_frontier(rides, ftp, duration_power.durations),
        efficiency=compute_efficiency_frontier(rides, ftp, hr_rest_bpm, hr_max_bpm),
        repeatability=compute_repeatability_frontier(rides, ftp),
        time_in_zone=compute_time_in_zone_frontier(rides, ftp),
    )
    logger.info(f"[frontiers] window_days={days}, activities={len(rides)}, ftp={ftp}")
    return response
