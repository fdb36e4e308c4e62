"""按 1 小时区间统计功率/心率/踏频/温度均值与 W/bpm 效率。"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ...core.analytics.sampling import is_finite_number, round_half_up
from ...schemas.samples import MetricComputationResult, MetricContext, MetricDefinition, MetricSample

INTERVAL_SECONDS = 3600

DEFINITION = MetricDefinition(
    key="interval-efficiency",
    name="Interval Efficiency",
    version=1,
    description="Tracks watts-per-heart-rate efficiency across 1-hour ride intervals.",
    units="W/bpm",
    compute_config={"interval_seconds": INTERVAL_SECONDS},
)

_CHANNELS = ('power', 'heart_rate', 'cadence', 'temperature')


@dataclass
class _ChannelMean:
    total: float = 0.0
    count: int = 0

    def add(self, value: Any) -> None:
        if is_finite_number(value):
            self.total += value
            self.count += 1

    def mean(self) -> Optional[float]:
        return self.total / self.count if self.count else None


def _round_half_up(value: Optional[float]) -> Optional[int]:
    if value is None:
        return None
    return round_half_up(value)


def _finalize(index: int, channels: Dict[str, _ChannelMean]) -> Dict[str, Any]:
    avg_power = channels['power'].mean()
    avg_hr = channels['heart_rate'].mean()
    avg_cadence = channels['cadence'].mean()
    avg_temp = channels['temperature'].mean()

    return {
        'interval'   : index + 1,
        'avg_power'  : _round_half_up(avg_power),
        'avg_hr'     : _round_half_up(avg_hr),
        'avg_cadence': _round_half_up(avg_cadence),
        'avg_temp'   : round(avg_temp, 1) if avg_temp is not None else None,
        'w_per_hr'   : round(avg_power / avg_hr, 2) if avg_power is not None and avg_hr is not None and avg_hr > 0 else None,
    }


def build_intervals(samples: Sequence[MetricSample]) -> List[Dict[str, Any]]:
    buckets: Dict[int, Dict[str, _ChannelMean]] = {}
    for sample in samples:
        if not is_finite_number(sample.t):
            continue
        index = int(sample.t // INTERVAL_SECONDS)
        channels = buckets.setdefault(index, {name: _ChannelMean() for name in _CHANNELS})
        for name in _CHANNELS:
            channels[name].add(getattr(sample, name))
    return [_finalize(index, buckets[index]) for index in sorted(buckets)]


def compute(samples: Sequence[MetricSample], context: MetricContext) -> MetricComputationResult:
    intervals = build_intervals(samples)
    return MetricComputationResult(
        summary={
            'interval_seconds'     : INTERVAL_SECONDS,
            'interval_count'       : len(intervals),
            'activity_duration_sec': context.activity.duration_sec,
        },
        series=intervals,
    )
