"""Stabilized Power：与 NP 相同的 30s 滚动 4 次方均值算法，以 stabilized 名义发布。"""
from typing import Sequence

from ...schemas.samples import MetricComputationResult, MetricContext, MetricDefinition, MetricSample
from .normalized_power import COASTING_THRESHOLD_WATTS, WINDOW_SECONDS, compute_windowed_power

DEFINITION = MetricDefinition(
    key="stabilized-power",
    name="Stabilized Power",
    version=1,
    description="Computes stabilized power from 30-second rolling averages (fourth-power mean) with pacing diagnostics.",
    units="W",
    compute_config={
        "window_seconds": WINDOW_SECONDS,
        "coasting_threshold_watts": COASTING_THRESHOLD_WATTS,
    },
)


def compute(samples: Sequence[MetricSample], context: MetricContext) -> MetricComputationResult:
    return compute_windowed_power(samples, context, 'stabilized_power_w')
