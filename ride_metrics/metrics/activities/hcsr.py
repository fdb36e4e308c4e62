"""HR-to-Cadence Scaling Ratio（心率/踏频标度）

说明：
- 按 10rpm 踏频分桶（>=20rpm；>=130rpm 合并为开放桶），每桶需累计 >=60s 停留时间；
- 单个样本代表的秒数由相邻采样间隔决定（支持变采样率），而不是固定 1s；
- 桶中位心率对桶中点踏频做 Theil-Sen 稳健拟合（失败时回退 OLS），并计算全局 R²；
- 桶数 >=4 时把桶列表从中间切开分别做 OLS，得到分段 R²，与全局 R² 的差值刻画非线性；
- 另外按骑行前/后半程分别对原始样本做 OLS，斜率差作为独立的疲劳信号。
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ...core.analytics.sampling import fallback_interval_seconds, is_finite_number, resolve_sample_duration
from ...core.analytics.statistics import compute_r2, linear_regression, median, quantile, theil_sen_slope
from ...schemas.samples import MetricComputationResult, MetricContext, MetricDefinition, MetricSample

MIN_CADENCE = 20
BUCKET_SIZE = 10
OPEN_BUCKET_START = 130
REQUIRED_SECONDS_PER_BUCKET = 60

DEFINITION = MetricDefinition(
    key="hcsr",
    name="HR-to-Cadence Scaling Ratio",
    version=1,
    description="Quantifies how heart rate scales with cadence across cadence buckets with fatigue diagnostics.",
    units="bpm/rpm",
    compute_config={
        "cadence_bucket_size": BUCKET_SIZE,
        "min_cadence": MIN_CADENCE,
        "required_seconds_per_bucket": REQUIRED_SECONDS_PER_BUCKET,
    },
)


@dataclass
class _BucketAccumulator:
    heart_rates: List[float] = field(default_factory=list)
    seconds: float = 0.0


@dataclass(frozen=True)
class BucketStats:
    cadence_start: int
    cadence_end: int
    cadence_mid: float
    seconds: float
    median_hr: float
    hr25: float
    hr75: float


def _bucket_key(cadence: float) -> int:
    if cadence >= OPEN_BUCKET_START:
        return OPEN_BUCKET_START
    return int(cadence // BUCKET_SIZE) * BUCKET_SIZE


def _cadence_midpoint(bucket_start: int) -> float:
    if bucket_start >= OPEN_BUCKET_START:
        return OPEN_BUCKET_START + BUCKET_SIZE / 2
    return bucket_start + BUCKET_SIZE / 2


def _is_valid(sample: MetricSample) -> bool:
    return (
        is_finite_number(sample.heart_rate)
        and is_finite_number(sample.cadence)
        and sample.cadence >= MIN_CADENCE
    )


def build_buckets(samples: Sequence[MetricSample], sample_rate_hz: Optional[float]) -> Tuple[List[BucketStats], float]:
    ordered = sorted(samples, key=lambda s: s.t)
    default_interval = fallback_interval_seconds(sample_rate_hz)
    buckets: Dict[int, _BucketAccumulator] = {}
    valid_seconds = 0.0

    for index, sample in enumerate(ordered):
        if not _is_valid(sample):
            continue
        duration = resolve_sample_duration(ordered, index, default_interval)
        valid_seconds += duration
        bucket = buckets.setdefault(_bucket_key(sample.cadence), _BucketAccumulator())
        bucket.heart_rates.append(float(sample.heart_rate))
        bucket.seconds += duration

    stats: List[BucketStats] = []
    for key, acc in buckets.items():
        if acc.seconds + 1e-6 < REQUIRED_SECONDS_PER_BUCKET:
            continue
        stats.append(BucketStats(
            cadence_start=key,
            cadence_end=999 if key >= OPEN_BUCKET_START else key + BUCKET_SIZE - 1,
            cadence_mid=_cadence_midpoint(key),
            seconds=round(acc.seconds, 3),
            median_hr=median(acc.heart_rates),
            hr25=quantile(acc.heart_rates, 0.25),
            hr75=quantile(acc.heart_rates, 0.75),
        ))

    stats.sort(key=lambda b: b.cadence_mid)
    return stats, round(valid_seconds, 3)


def _piecewise_r2(points: List[Tuple[float, float]], global_ss_tot: float) -> Optional[float]:
    if len(points) < 4:
        return None
    mid = len(points) // 2
    first_half, second_half = points[:mid], points[mid:]
    if len(first_half) < 2 or len(second_half) < 2:
        return None
    first_fit = linear_regression(first_half)
    second_fit = linear_regression(second_half)

    ss_res = 0.0
    for i, (x, y) in enumerate(points):
        fit = first_fit if i < len(first_half) else second_fit
        ss_res += (y - (fit.slope * x + fit.intercept)) ** 2
    return 1.0 if global_ss_tot == 0 else 1 - ss_res / global_ss_tot


def _half_slope(samples: Sequence[MetricSample], half: float, first: bool) -> Optional[float]:
    points = [
        (float(s.cadence), float(s.heart_rate))
        for s in samples
        if _is_valid(s) and ((s.t <= half) if first else (s.t > half))
    ]
    if len(points) < 2:
        return None
    return linear_regression(points).slope


def compute(samples: Sequence[MetricSample], context: MetricContext) -> MetricComputationResult:
    bucket_stats, valid_seconds = build_buckets(samples, context.activity.sample_rate_hz)
    points = [(b.cadence_mid, b.median_hr) for b in bucket_stats]

    slope = intercept = r2 = None
    nonlinearity_delta = piecewise_r2 = None

    if len(points) >= 2:
        robust = theil_sen_slope(points)
        if robust is not None:
            raw_slope, raw_intercept = robust
        else:
            ols = linear_regression(points)
            raw_slope, raw_intercept = ols.slope, ols.intercept
        slope = round(raw_slope, 4)
        intercept = round(raw_intercept, 2)

        scored = compute_r2(points, slope, intercept)
        r2 = round(scored.r2, 4)
        piecewise = _piecewise_r2(points, scored.ss_tot)
        if piecewise is not None:
            piecewise_r2 = round(piecewise, 4)
            nonlinearity_delta = round(piecewise_r2 - r2, 4)

    duration = context.activity.duration_sec if is_finite_number(context.activity.duration_sec) else 0.0
    half = float(duration // 2)
    first_slope = _half_slope(samples, half, first=True)
    second_slope = _half_slope(samples, half, first=False)
    delta_slope_half = (
        round(second_slope - first_slope, 4)
        if first_slope is not None and second_slope is not None
        else None
    )

    series = [
        {
            "cadence_mid": b.cadence_mid,
            "median_hr": b.median_hr,
            "seconds": b.seconds,
            "hr25": b.hr25,
            "hr75": b.hr75,
        }
        for b in bucket_stats
    ]

    return MetricComputationResult(
        summary={
            "slope_bpm_per_rpm": slope,
            "intercept_bpm": intercept,
            "r2": r2,
            "nonlinearity_delta": nonlinearity_delta,
            "half_split_delta_slope": delta_slope_half,
            "valid_seconds": valid_seconds,
            "bucket_count": len(bucket_stats),
            "piecewise_r2": piecewise_r2,
        },
        series=series,
    )
