import pytest

from ride_metrics.metrics.activities import hcsr
from ride_metrics.schemas import MetricSample


def _stepped_ride():
    """60/80/100/120rpm 各 120s，心率 ≈ 95 + 0.45 × 踏频"""
    samples = []
    t = 0
    for cadence in (60, 80, 100, 120):
        for i in range(120):
            noise = (i % 3) - 1
            samples.append(MetricSample(t=float(t), cadence=cadence, heart_rate=round(95 + 0.45 * cadence) + noise))
            t += 1
    return samples


def test_linear_scaling(make_context):
    context = make_context(duration_sec=480)
    result = hcsr.compute(_stepped_ride(), context)
    summary = result.summary

    assert summary["bucket_count"] == 4
    assert summary["slope_bpm_per_rpm"] == pytest.approx(0.45, abs=0.02)
    assert summary["r2"] > 0.9
    assert summary["valid_seconds"] == 480
    assert summary["piecewise_r2"] is not None
    assert summary["nonlinearity_delta"] is not None
    assert summary["half_split_delta_slope"] is not None

    mids = [b["cadence_mid"] for b in result.series]
    assert mids == [65, 85, 105, 125]
    assert all(b["seconds"] == 120 for b in result.series)
    assert all(b["hr25"] <= b["median_hr"] <= b["hr75"] for b in result.series)


def test_bucket_seconds_follow_sample_spacing(make_context):
    # 0.5Hz：30 个样本，每个代表 2s
    samples = [MetricSample(t=float(t), cadence=90, heart_rate=140) for t in range(0, 60, 2)]
    result = hcsr.compute(samples, make_context(duration_sec=60, sample_rate_hz=0.5))
    assert result.summary["valid_seconds"] == 60
    assert result.summary["bucket_count"] == 1
    # 单个桶无法拟合
    assert result.summary["slope_bpm_per_rpm"] is None
    assert result.summary["r2"] is None


def test_short_buckets_and_low_cadence_are_dropped(make_context):
    samples = [MetricSample(t=float(t), cadence=15, heart_rate=100) for t in range(100)]
    samples += [MetricSample(t=float(100 + t), cadence=95, heart_rate=150) for t in range(30)]
    result = hcsr.compute(samples, make_context(duration_sec=130))
    assert result.summary["bucket_count"] == 0
    assert result.series == []
    assert result.summary["valid_seconds"] == 30


def test_open_bucket_merges_high_cadence():
    samples = [MetricSample(t=float(t), cadence=130 + (t % 40), heart_rate=170) for t in range(90)]
    buckets, _ = hcsr.build_buckets(samples, 1.0)
    assert len(buckets) == 1
    assert buckets[0].cadence_start == 130
    assert buckets[0].cadence_mid == 135


def test_no_valid_samples(make_context):
    samples = [MetricSample(t=float(t), power=200) for t in range(100)]
    result = hcsr.compute(samples, make_context(duration_sec=100))
    assert result.summary["valid_seconds"] == 0
    assert result.summary["slope_bpm_per_rpm"] is None
    assert result.summary["half_split_delta_slope"] is None
