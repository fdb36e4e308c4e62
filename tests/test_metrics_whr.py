from ride_metrics.metrics.activities import whr_efficiency
from ride_metrics.schemas import MetricSample


def _drifting_ride():
    """60 分钟，每 30s 一个点；功率恒定、心率缓慢上升"""
    samples = []
    for minute in range(60):
        heart_rate = 130 + minute * 0.5
        samples.append(MetricSample(t=minute * 60.0, power=200, heart_rate=heart_rate))
        samples.append(MetricSample(t=minute * 60.0 + 30, power=200, heart_rate=heart_rate))
    return samples


def test_efficiency_curve(make_context):
    result = whr_efficiency.compute(_drifting_ride(), make_context(duration_sec=3600))
    summary = result.summary

    assert summary["window_count"] == 12
    assert summary["valid_window_count"] == 12
    assert summary["valid_sample_count"] == 120
    assert summary["total_sample_count"] == 120
    assert summary["coverage_ratio"] == 1
    assert 1.2 < summary["median_w_per_bpm"] < 1.6
    assert summary["p25_w_per_bpm"] <= summary["median_w_per_bpm"] <= summary["p75_w_per_bpm"]
    assert summary["drift_percent"] < 0

    first = result.series[0]
    assert first["window_index"] == 1
    assert first["start_sec"] == 0
    assert first["end_sec"] == 300
    assert first["sample_count"] == 10
    assert first["coverage_ratio"] == 1


def test_gap_windows_are_placeholders(make_context):
    samples = [MetricSample(t=float(t), power=200, heart_rate=140) for t in range(0, 300, 30)]
    samples += [MetricSample(t=float(t), power=180, heart_rate=150) for t in range(900, 1200, 30)]
    result = whr_efficiency.compute(samples, make_context(duration_sec=1200))

    assert result.summary["window_count"] == 4
    assert result.summary["valid_window_count"] == 2
    assert [w["window_index"] for w in result.series] == [1, 2, 3, 4]
    gap = result.series[1]
    assert gap["sample_count"] == 0
    assert gap["coverage_ratio"] == 0
    assert gap["p50_w_per_bpm"] is None
    assert result.summary["drift_percent"] < 0


def test_non_positive_readings_are_excluded(make_context):
    samples = [
        MetricSample(t=0, power=0, heart_rate=120),
        MetricSample(t=10, power=200, heart_rate=0),
        MetricSample(t=20, power=210, heart_rate=140),
        MetricSample(t=30, power=None, heart_rate=140),
    ]
    summary = whr_efficiency.compute(samples, make_context(duration_sec=40)).summary
    assert summary["valid_sample_count"] == 1
    assert summary["coverage_ratio"] == 0.25
    assert summary["median_w_per_bpm"] == 1.5
    # 单个有效窗口不足以拟合漂移
    assert summary["drift_percent"] is None


def test_no_paired_samples(make_context):
    samples = [MetricSample(t=float(t), power=200) for t in range(0, 900, 5)]
    result = whr_efficiency.compute(samples, make_context(duration_sec=900))
    assert result.summary["median_w_per_bpm"] is None
    assert result.summary["coverage_ratio"] == 0
    assert result.summary["drift_percent"] is None
    assert result.series == []
