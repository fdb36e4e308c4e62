"""Normalized Power 指标装配（NP/平均功率/VI/滑行占比）。"""
from typing import Any, Dict, Sequence

from ...core.analytics.power import compute_average_power, compute_normalized_power, extract_power_samples
from ...core.analytics.sampling import infer_sample_rate, round_half_up
from ...schemas.samples import MetricComputationResult, MetricContext, MetricDefinition, MetricSample

WINDOW_SECONDS = 30
COASTING_THRESHOLD_WATTS = 5

DEFINITION = MetricDefinition(
    key="normalized-power",
    name="Normalized Power",
    version=1,
    description="Computes normalized power using 30-second rolling averages alongside pacing diagnostics.",
    units="W",
    compute_config={
        "window_seconds": WINDOW_SECONDS,
        "coasting_threshold_watts": COASTING_THRESHOLD_WATTS,
    },
)


def window_sample_count(samples: Sequence[MetricSample], context: MetricContext) -> int:
    activity = context.activity
    rate = infer_sample_rate(activity.sample_rate_hz, activity.duration_sec, samples)
    return max(1, round_half_up(WINDOW_SECONDS * rate))


def compute_windowed_power(
    samples: Sequence[MetricSample], context: MetricContext, power_key: str
) -> MetricComputationResult:
    """30s 滚动均值的 4 次方均值；power_key 为输出中该功率值的字段名。"""
    ordered = sorted(samples, key=lambda s: s.t)
    window_size = window_sample_count(ordered, context)
    power_samples = extract_power_samples(ordered)
    valid_count = len(power_samples)

    summary: Dict[str, Any] = {
        power_key                 : None,
        'average_power_w'         : None,
        'variability_index'       : None,
        'coasting_share'          : None,
        'valid_power_samples'     : valid_count,
        'total_samples'           : len(samples),
        'rolling_window_count'    : 0,
        'window_sample_count'     : window_size,
        'window_seconds'          : WINDOW_SECONDS,
    }
    if valid_count == 0:
        return MetricComputationResult(summary=summary)

    normalized, rolling = compute_normalized_power(power_samples, window_size)
    average_power = compute_average_power(power_samples)
    coasting_count = sum(1 for p in power_samples if p.power <= COASTING_THRESHOLD_WATTS)

    summary[power_key]                = round(normalized, 1) if normalized is not None else None
    summary['average_power_w']        = round(average_power, 1)
    summary['variability_index']      = round(normalized / average_power, 3) if normalized is not None and average_power > 0 else None
    summary['coasting_share']         = round(coasting_count / valid_count, 4)
    summary['rolling_window_count']   = len(rolling)

    series = [{"t": r.t, "rolling_avg_power_w": round(r.rolling_avg, 1)} for r in rolling]
    return MetricComputationResult(summary=summary, series=series or None)


def compute(samples: Sequence[MetricSample], context: MetricContext) -> MetricComputationResult:
    return compute_windowed_power(samples, context, 'normalized_power_w')
