from ride_metrics.metrics.activities import w_prime_balance
from ride_metrics.schemas import MetricSample


def test_provided_critical_power(make_context):
    samples = [
        MetricSample(t=0, power=250),
        MetricSample(t=60, power=350),
        MetricSample(t=120, power=150),
        MetricSample(t=180, power=150),
    ]
    result = w_prime_balance.compute(samples, make_context(cp_watts=250, w_prime_capacity_j=15000))
    summary = result.summary

    assert summary["cp_source"] == "provided"
    assert summary["cp_estimate_w"] == 250
    assert summary["w_prime_capacity_j"] == 15000
    assert summary["min_balance_j"] == 9000
    assert summary["max_depletion_j"] == 6000
    assert summary["max_depletion_pct"] == 40
    assert summary["time_below_half_sec"] == 0
    assert 9000 < summary["final_balance_j"] < 15000

    assert len(result.series) == 4
    balances = [p["balance_j"] for p in result.series]
    assert balances[1] < 15000
    assert balances[-1] > balances[1]
    assert all(0 <= b <= 15000 for b in balances)


def test_estimated_critical_power(make_context, constant_ride):
    summary = w_prime_balance.compute(constant_ride(600, 200), make_context(duration_sec=600)).summary
    assert summary["cp_source"] == "p90-estimate"
    assert summary["cp_estimate_w"] == 200
    assert summary["w_prime_capacity_j"] == 12000
    assert summary["max_depletion_j"] == 0


def test_time_below_half(make_context):
    samples = [MetricSample(t=float(t), power=450 if t <= 60 else 250) for t in range(0, 121)]
    summary = w_prime_balance.compute(samples, make_context(cp_watts=250, w_prime_capacity_j=10000)).summary
    # 200W 超出 CP，25s 后降至一半以下，之后功率等于 CP 不再恢复
    assert summary["min_balance_j"] == 0
    assert summary["max_depletion_pct"] == 100
    assert summary["time_below_half_sec"] == 95


def test_series_is_downsampled(make_context, constant_ride):
    result = w_prime_balance.compute(constant_ride(3000, 300), make_context(cp_watts=250, duration_sec=3000))
    assert len(result.series) <= w_prime_balance.MAX_SERIES_POINTS
    assert result.series[-1]["t"] == 3000


def test_no_power(make_context):
    samples = [MetricSample(t=float(t), heart_rate=120) for t in range(100)]
    result = w_prime_balance.compute(samples, make_context(duration_sec=100))
    assert result.summary["cp_estimate_w"] is None
    assert result.summary["cp_source"] is None
    assert result.summary["w_prime_capacity_j"] == 15000
    assert result.summary["min_balance_j"] is None
    assert result.series == []
