"""
骑行后段有氧效率（Late-ride Aerobic Efficiency）

分析窗口为骑行的最后 35 分钟，但排除最后 5 分钟（冲刺/放松），即 [时长-35min, 时长-5min)，
并裁剪到 [0, 时长]。仅统计窗口内功率与心率同时有效的样本。
"""
from typing import Any, Dict, Sequence, Tuple

from ...core.analytics.sampling import is_finite_number
from ...schemas.samples import MetricComputationResult, MetricContext, MetricDefinition, MetricSample

ANALYSIS_WINDOW_MINUTES = 35
FINAL_BUFFER_MINUTES = 5

ANALYSIS_WINDOW_SECONDS = ANALYSIS_WINDOW_MINUTES * 60
FINAL_BUFFER_SECONDS = FINAL_BUFFER_MINUTES * 60

DEFINITION = MetricDefinition(
    key="late-aerobic-efficiency",
    name="Late-ride Aerobic Efficiency",
    version=1,
    description=(
        "Evaluates aerobic durability by averaging power-to-heart-rate efficiency over the final "
        "35 minutes (excluding the last 5 minutes)."
    ),
    units="W/bpm",
    compute_config={
        "analysis_window_minutes": ANALYSIS_WINDOW_MINUTES,
        "exclusion_buffer_minutes": FINAL_BUFFER_MINUTES,
    },
)


def clamp_window(start: float, end: float) -> Tuple[float, float]:
    if end <= 0:
        return 0.0, 0.0
    return max(0.0, min(start, end)), end


def _resolve_duration(samples: Sequence[MetricSample], context: MetricContext) -> float:
    duration = context.activity.duration_sec
    if is_finite_number(duration):
        return float(duration)
    return float(samples[-1].t) if samples else 0.0


def compute(samples: Sequence[MetricSample], context: MetricContext) -> MetricComputationResult:
    ordered = sorted(samples, key=lambda s: s.t)
    duration = _resolve_duration(ordered, context)
    window_start, window_end = clamp_window(duration - ANALYSIS_WINDOW_SECONDS, duration - FINAL_BUFFER_SECONDS)

    summary: Dict[str, Any] = {
        'watts_per_bpm'            : None,
        'average_power_w'          : None,
        'average_heart_rate_bpm'   : None,
        'valid_sample_count'       : 0,
        'total_window_sample_count': 0,
        'requested_window_seconds' : ANALYSIS_WINDOW_SECONDS,
        'analyzed_window_seconds'  : 0,
        'window_start_offset_sec'  : max(0.0, window_start),
        'window_end_offset_sec'    : max(0.0, window_end),
    }
    if window_end <= window_start:
        return MetricComputationResult(summary=summary)

    window_samples = [s for s in ordered if window_start <= s.t < window_end]
    valid = [s for s in window_samples if is_finite_number(s.power) and is_finite_number(s.heart_rate)]
    summary['total_window_sample_count'] = len(window_samples)
    summary['analyzed_window_seconds'] = window_end - window_start
    summary['valid_sample_count'] = len(valid)
    if not valid:
        return MetricComputationResult(summary=summary)

    average_power = sum(s.power for s in valid) / len(valid)
    average_hr = sum(s.heart_rate for s in valid) / len(valid)

    summary['watts_per_bpm'] = round(average_power / average_hr, 3) if average_hr > 0 else None
    summary['average_power_w'] = round(average_power, 1)
    summary['average_heart_rate_bpm'] = round(average_hr, 1)
    return MetricComputationResult(summary=summary)
