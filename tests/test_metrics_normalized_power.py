import pytest

from ride_metrics.metrics.activities import normalized_power, stabilized_power
from ride_metrics.schemas import MetricSample


def test_constant_power(make_context, constant_ride):
    samples = constant_ride(119, 200)
    result = normalized_power.compute(samples, make_context(duration_sec=119))
    summary = result.summary
    assert summary["normalized_power_w"] == 200
    assert summary["average_power_w"] == 200
    assert summary["variability_index"] == 1
    assert summary["rolling_window_count"] == 91
    assert summary["window_sample_count"] == 30
    assert len(result.series) == 91
    assert result.series[0] == {"t": 29.0, "rolling_avg_power_w": 200}


def test_coasting_share(make_context):
    samples = [MetricSample(t=float(t), power=0 if t < 15 else 250) for t in range(60)]
    summary = normalized_power.compute(samples, make_context(duration_sec=60)).summary
    assert summary["coasting_share"] == 0.25
    assert summary["variability_index"] > 1


def test_window_follows_sample_rate(make_context):
    samples = [MetricSample(t=t * 0.5, power=220) for t in range(200)]
    summary = normalized_power.compute(samples, make_context(duration_sec=100, sample_rate_hz=2.0)).summary
    assert summary["window_sample_count"] == 60
    assert summary["rolling_window_count"] == 141


def test_too_short_for_window(make_context, constant_ride):
    result = normalized_power.compute(constant_ride(9, 200), make_context(duration_sec=9))
    assert result.summary["normalized_power_w"] is None
    assert result.summary["variability_index"] is None
    assert result.summary["average_power_w"] == 200
    assert result.summary["rolling_window_count"] == 0
    assert result.series is None


def test_no_power(make_context):
    samples = [MetricSample(t=float(t), heart_rate=130) for t in range(100)]
    result = normalized_power.compute(samples, make_context(duration_sec=100))
    summary = result.summary
    assert summary["normalized_power_w"] is None
    assert summary["average_power_w"] is None
    assert summary["coasting_share"] is None
    assert summary["valid_power_samples"] == 0
    assert summary["total_samples"] == 100


def test_stabilized_power_matches_normalized(make_context):
    samples = [MetricSample(t=float(t), power=150 + (t % 20) * 10) for t in range(300)]
    context = make_context(duration_sec=300)
    np_summary = normalized_power.compute(samples, context).summary
    sp_summary = stabilized_power.compute(samples, context).summary
    assert "normalized_power_w" not in sp_summary
    assert sp_summary["stabilized_power_w"] == pytest.approx(np_summary["normalized_power_w"])
    assert sp_summary["variability_index"] == np_summary["variability_index"]
