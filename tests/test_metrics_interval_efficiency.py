from ride_metrics.metrics.activities import interval_efficiency
from ride_metrics.schemas import MetricSample


def test_hourly_intervals(make_context):
    samples = [
        MetricSample(t=0, power=180, heart_rate=150, cadence=90, temperature=25),
        MetricSample(t=1800, power=200, heart_rate=148, cadence=91, temperature=26),
        MetricSample(t=3600, power=210, heart_rate=140, cadence=84, temperature=27),
        MetricSample(t=5400, power=220, heart_rate=142, cadence=84, temperature=28),
    ]
    result = interval_efficiency.compute(samples, make_context(duration_sec=7200))

    assert result.summary == {
        "interval_seconds": 3600,
        "interval_count": 2,
        "activity_duration_sec": 7200,
    }
    first, second = result.series
    assert first == {
        "interval": 1, "avg_power": 190, "avg_hr": 149, "avg_cadence": 91, "avg_temp": 25.5, "w_per_hr": 1.28,
    }
    assert second == {
        "interval": 2, "avg_power": 215, "avg_hr": 141, "avg_cadence": 84, "avg_temp": 27.5, "w_per_hr": 1.52,
    }


def test_missing_heart_rate(make_context):
    samples = [MetricSample(t=float(t), power=200) for t in range(0, 600, 10)]
    result = interval_efficiency.compute(samples, make_context(duration_sec=600))
    (interval,) = result.series
    assert interval["avg_power"] == 200
    assert interval["avg_hr"] is None
    assert interval["w_per_hr"] is None
    assert interval["avg_temp"] is None


def test_empty_intervals_are_skipped(make_context):
    samples = [MetricSample(t=10, power=100, heart_rate=100), MetricSample(t=7300, power=300, heart_rate=150)]
    result = interval_efficiency.compute(samples, make_context(duration_sec=7300))
    assert [i["interval"] for i in result.series] == [1, 3]
    assert result.summary["interval_count"] == 2
