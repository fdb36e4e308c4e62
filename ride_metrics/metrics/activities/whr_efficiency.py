"""
W/HR 效率曲线（Watts/HR Efficiency Curve）

说明：
- 按 300s 固定窗口切分骑行，窗口序号 floor(t / 300)；
- 每个窗口内对功率与心率同时有效（均 > 0）的样本计算 W/bpm，并取 p25/p50/p75；
- 只要存在有效样本，series 就覆盖从第 1 个到最后一个窗口的连续序号，无有效样本的窗口以 None/0 覆盖率占位；
- drift_percent：对各有效窗口的 p50 关于窗口序号做 OLS，
  (末窗口预测值 - 首窗口预测值) / 首窗口预测值 × 100，为负表示有氧脱耦（效率下降）。
"""
from typing import Any, Dict, List, Optional, Sequence

from ...core.analytics.sampling import is_finite_number
from ...core.analytics.statistics import linear_regression, median, quantile
from ...schemas.samples import MetricComputationResult, MetricContext, MetricDefinition, MetricSample

WINDOW_SECONDS = 300
PERCENTILES = (0.25, 0.5, 0.75)

DEFINITION = MetricDefinition(
    key="whr-efficiency",
    name="Watts/HR Efficiency Curve",
    version=1,
    description="Profiles aerobic efficiency over time by comparing power-to-heart-rate ratios across 5-minute windows.",
    units="W/bpm",
    compute_config={
        "window_seconds": WINDOW_SECONDS,
        "percentiles": list(PERCENTILES),
    },
)


def _ratio(sample: MetricSample) -> Optional[float]:
    if not (is_finite_number(sample.power) and is_finite_number(sample.heart_rate)):
        return None
    if sample.power <= 0 or sample.heart_rate <= 0:
        return None
    return sample.power / sample.heart_rate


def _window_record(index: int, sample_count: int, ratios: List[float]) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        'window_index'      : index + 1,
        'start_sec'         : index * WINDOW_SECONDS,
        'end_sec'           : (index + 1) * WINDOW_SECONDS,
        'sample_count'      : sample_count,
        'valid_sample_count': len(ratios),
        'coverage_ratio'    : round(len(ratios) / sample_count, 4) if sample_count else 0.0,
        'p25_w_per_bpm'     : None,
        'p50_w_per_bpm'     : None,
        'p75_w_per_bpm'     : None,
    }
    if ratios:
        record['p25_w_per_bpm'] = round(quantile(ratios, 0.25), 3)
        record['p50_w_per_bpm'] = round(median(ratios), 3)
        record['p75_w_per_bpm'] = round(quantile(ratios, 0.75), 3)
    return record


def _drift_percent(series: List[Dict[str, Any]]) -> Optional[float]:
    points = [(float(w['window_index']), w['p50_w_per_bpm']) for w in series if w['p50_w_per_bpm'] is not None]
    if len(points) < 2:
        return None
    fit = linear_regression(points)
    first = fit.slope * points[0][0] + fit.intercept
    last = fit.slope * points[-1][0] + fit.intercept
    if first <= 0:
        return None
    return round((last - first) / first * 100, 2)


def compute(samples: Sequence[MetricSample], context: MetricContext) -> MetricComputationResult:
    counts: Dict[int, int] = {}
    ratios_by_window: Dict[int, List[float]] = {}
    all_ratios: List[float] = []

    for sample in samples:
        if not is_finite_number(sample.t) or sample.t < 0:
            continue
        index = int(sample.t // WINDOW_SECONDS)
        counts[index] = counts.get(index, 0) + 1
        ratio = _ratio(sample)
        if ratio is not None:
            ratios_by_window.setdefault(index, []).append(ratio)
            all_ratios.append(ratio)

    total = len(samples)
    summary: Dict[str, Any] = {
        'window_seconds'    : WINDOW_SECONDS,
        'window_count'      : (max(counts) + 1) if counts else 0,
        'valid_window_count': len(ratios_by_window),
        'valid_sample_count': len(all_ratios),
        'total_sample_count': total,
        'coverage_ratio'    : round(len(all_ratios) / total, 4) if total else 0.0,
        'median_w_per_bpm'  : None,
        'p25_w_per_bpm'     : None,
        'p75_w_per_bpm'     : None,
        'drift_percent'     : None,
    }
    if not all_ratios:
        return MetricComputationResult(summary=summary, series=[])

    series = [
        _window_record(index, counts.get(index, 0), ratios_by_window.get(index, []))
        for index in range(summary['window_count'])
    ]
    summary['median_w_per_bpm'] = round(median(all_ratios), 3)
    summary['p25_w_per_bpm'] = round(quantile(all_ratios, 0.25), 3)
    summary['p75_w_per_bpm'] = round(quantile(all_ratios, 0.75), 3)
    summary['drift_percent'] = _drift_percent(series)
    return MetricComputationResult(summary=summary, series=series)
