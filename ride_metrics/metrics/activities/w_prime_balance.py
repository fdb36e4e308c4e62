"""W′ 平衡指标装配（CP 估算、容量、最低平衡、最大消耗等）。"""
from typing import Any, Dict, Optional, Sequence

from ...core.analytics.sampling import downsample, is_finite_number
from ...core.analytics.w_balance import compute_w_prime_balance, default_w_prime_capacity, estimate_critical_power
from ...schemas.samples import MetricComputationResult, MetricContext, MetricDefinition, MetricSample

MAX_SERIES_POINTS = 1000

DEFINITION = MetricDefinition(
    key="w-prime-balance",
    name="W′ Balance",
    version=1,
    description="Models anaerobic work capacity depletion above critical power and exponential recovery below it.",
    units="J",
    compute_config={
        "cp_percentile": 0.9,
        "min_capacity_j": 10000,
        "max_series_points": MAX_SERIES_POINTS,
    },
)


def _positive(value: Optional[float]) -> bool:
    return is_finite_number(value) and value > 0


def compute(samples: Sequence[MetricSample], context: MetricContext) -> MetricComputationResult:
    ordered = sorted(samples, key=lambda s: s.t)

    if _positive(context.cp_watts):
        cp, cp_source = float(context.cp_watts), 'provided'
    else:
        cp = estimate_critical_power(ordered)
        cp_source = 'p90-estimate' if cp is not None else None

    if _positive(context.w_prime_capacity_j):
        capacity = float(context.w_prime_capacity_j)
    else:
        capacity = default_w_prime_capacity(cp)

    summary: Dict[str, Any] = {
        'cp_estimate_w'      : round(cp, 1) if cp is not None else None,
        'cp_source'          : cp_source,
        'w_prime_capacity_j' : round(capacity, 1),
        'min_balance_j'      : None,
        'final_balance_j'    : None,
        'max_depletion_j'    : None,
        'max_depletion_pct'  : None,
        'time_below_half_sec': None,
    }
    if cp is None:
        return MetricComputationResult(summary=summary, series=[])

    points = compute_w_prime_balance(ordered, cp, capacity)
    min_balance = min(p.balance_j for p in points)
    below_half = 0.0
    for prev, cur in zip(points, points[1:]):
        if cur.balance_j < capacity / 2:
            below_half += max(0.0, cur.t - prev.t)

    summary['min_balance_j']       = round(min_balance, 2)
    summary['final_balance_j']     = points[-1].balance_j
    summary['max_depletion_j']     = round(capacity - min_balance, 2)
    summary['max_depletion_pct']   = round((capacity - min_balance) / capacity * 100, 1) if capacity > 0 else None
    summary['time_below_half_sec'] = round(below_half, 1)

    series = [{"t": p.t, "balance_j": p.balance_j} for p in downsample(points, MAX_SERIES_POINTS)]
    return MetricComputationResult(summary=summary, series=series)
