from ride_metrics.core.analytics.w_balance import (
    UNKNOWN_CP_CAPACITY_J,
    compute_w_prime_balance,
    default_w_prime_capacity,
    estimate_critical_power,
)
from ride_metrics.schemas import MetricSample


def test_default_capacity():
    assert default_w_prime_capacity(None) == UNKNOWN_CP_CAPACITY_J
    assert default_w_prime_capacity(100) == 10000
    assert default_w_prime_capacity(300) == 18000


def test_estimate_critical_power_is_p90():
    samples = [MetricSample(t=i, power=p) for i, p in enumerate(range(100, 1100, 100))]
    # 10 个点，round(0.9 * 9) = 8
    assert estimate_critical_power(samples) == 900
    assert estimate_critical_power([MetricSample(t=0)]) is None


def test_estimate_critical_power_tie_takes_upper_rank():
    samples = [MetricSample(t=i, power=p) for i, p in enumerate([100, 200, 300, 400, 500, 600])]
    assert estimate_critical_power(samples) == 600


def test_depletion_and_recovery():
    samples = [
        MetricSample(t=0, power=250),
        MetricSample(t=60, power=350),
        MetricSample(t=120, power=150),
        MetricSample(t=180, power=150),
    ]
    points = compute_w_prime_balance(samples, 250, 15000)
    assert len(points) == 4
    balances = [p.balance_j for p in points]
    assert balances[0] == 15000
    # 60s × 100W 超出 CP
    assert balances[1] == 9000
    assert balances[2] > balances[1]
    assert balances[3] > balances[2]
    assert all(0 <= b <= 15000 for b in balances)


def test_balance_floors_at_zero():
    samples = [MetricSample(t=t, power=1000) for t in range(0, 100, 10)]
    points = compute_w_prime_balance(samples, 250, 10000)
    assert min(p.balance_j for p in points) == 0


def test_missing_power_and_repeated_timestamps_hold_balance():
    samples = [
        MetricSample(t=0, power=400),
        MetricSample(t=10, power=400),
        MetricSample(t=10, power=1000),
        MetricSample(t=20, power=None),
    ]
    points = compute_w_prime_balance(samples, 250, 20000)
    assert [p.balance_j for p in points] == [20000, 18500, 18500, 18500]


def test_empty_input():
    assert compute_w_prime_balance([], 250, 15000) == []
