import math
from datetime import datetime, timezone

import pytest

from ride_metrics.schemas import MetricSample
from ride_metrics.services import clamp_window_days, compute_training_frontiers
from ride_metrics.services.training_frontiers import (
    DEFAULT_ZONES,
    POWER_DURATIONS_SECONDS,
    compute_convex_hull,
    longest_zone_streak,
)

NOW = datetime(2024, 1, 2, tzinfo=timezone.utc)


def _ride(seconds, power_at, heart_rate=None, cadence=None, speed=None):
    """1Hz 骑行，power_at(t) 给出每秒功率"""
    return [
        MetricSample(t=float(t), power=power_at(t), heart_rate=heart_rate, cadence=cadence, speed=speed)
        for t in range(seconds)
    ]


def _durations(response):
    return {e.duration_sec: e for e in response.duration_power.durations}


@pytest.mark.parametrize("raw, expected", [
    (None, 90),
    (0, 90),
    (float("nan"), 90),
    (float("inf"), 90),
    (30, 30),
    (45.5, 46),
    (0.4, 1),
    (-5, 1),
    (500, 180),
])
def test_clamp_window_days(raw, expected):
    assert clamp_window_days(raw) == expected


def test_duration_power_frontier(make_entry):
    sprint = _ride(600, lambda t: 800 if 100 <= t < 110 else 200)
    entries = [
        make_entry("steady", 0, 1200, 250),
        make_entry("sprint", -1, 599, None, samples=sprint),
    ]
    response = compute_training_frontiers(entries, ftp_watts=250, now=NOW)
    durations = _durations(response)

    assert list(durations) == list(POWER_DURATIONS_SECONDS)

    five = durations[5]
    assert five.value == 800
    assert five.pct_ftp == 320
    assert five.activity_id == "sprint"
    assert five.window_start_sec == 100

    # 10s 冲刺 + 5s 200W，最早的起点为 95
    assert durations[15].value == 600
    assert durations[15].window_start_sec == 95
    assert durations[60].value == 300

    # 并列时保留先处理的较新活动
    assert durations[120].value == 250
    assert durations[120].activity_id == "steady"
    assert durations[600].activity_id == "steady"
    assert durations[1200].value == 250
    assert durations[1800].value is None
    assert durations[1800].activity_id is None

    assert response.window_days == 90
    assert response.ftp_watts == 250


def test_convex_hull_is_concave_in_log_space(make_entry):
    sprint = _ride(600, lambda t: 800 if 100 <= t < 110 else 200)
    entries = [make_entry("steady", 0, 1200, 250), make_entry("sprint", -1, 599, None, samples=sprint)]
    frontier = compute_training_frontiers(entries, now=NOW).duration_power
    hull = frontier.convex_hull

    assert hull[0].duration_sec == 5
    assert hull[-1].duration_sec == 1200
    assert all(a.duration_sec < b.duration_sec for a, b in zip(hull, hull[1:]))
    assert set(e.duration_sec for e in hull) <= set(e.duration_sec for e in frontier.durations)

    slopes = [
        (math.log(b.value) - math.log(a.value)) / (math.log(b.duration_sec) - math.log(a.duration_sec))
        for a, b in zip(hull, hull[1:])
    ]
    assert all(s1 >= s2 - 1e-12 for s1, s2 in zip(slopes, slopes[1:]))


def test_convex_hull_skips_empty_entries():
    assert compute_convex_hull([]) == []


def test_kj_frontier(make_entry):
    response = compute_training_frontiers([make_entry("long", 0, 7200, 200)], ftp_watts=250, now=NOW)
    frontier = response.duration_power
    two_hours, three_hours = frontier.kj_frontier[0], frontier.kj_frontier[1]

    assert two_hours.duration_hours == 2
    assert two_hours.value == pytest.approx(720.0)
    assert two_hours.average_watts == 200
    assert two_hours.total_kj == pytest.approx(1440.0)
    assert two_hours.pct_ftp == 80
    assert two_hours.activity_id == "long"
    assert three_hours.value is None

    assert frontier.peak_kj_per_hour == two_hours


def test_durability_frontier_after_fatigue(make_entry):
    # 300s@400W (120kJ) → 4000s@250W (1000kJ) → 300s@350W
    def power_at(t):
        if t < 300:
            return 400
        if t < 4300:
            return 250
        return 350

    entry = make_entry("fatigue", 0, 4599, None, samples=_ride(4600, power_at))
    response = compute_training_frontiers([entry], ftp_watts=350, now=NOW)
    efforts = {(e.fatigue_kj, e.duration_sec): e for e in response.durability.efforts}

    assert len(efforts) == 20
    five_min = efforts[(1000, 300)]
    assert five_min.value == 350
    assert five_min.window_start_sec == 4300
    assert five_min.pct_ftp == 100
    assert five_min.delta_watts == -50
    assert five_min.delta_pct == -12.5

    # 可用起点 >= 3820，最佳为 4000：300s@250W + 300s@350W
    ten_min = efforts[(1000, 600)]
    assert ten_min.value == 300
    assert ten_min.delta_watts == -25
    assert ten_min.delta_pct == pytest.approx(-7.7)

    # 总做功约 1225kJ，未达到 1500kJ
    assert efforts[(1500, 300)].value is None
    assert efforts[(1500, 300)].delta_watts is None


def test_efficiency_frontier(make_entry):
    samples = _ride(10801, lambda t: 200, heart_rate=140, cadence=90, speed=8.0)
    entry = make_entry("endurance", 0, 10800, None, samples=samples)
    response = compute_training_frontiers([entry], ftp_watts=250, hr_max_bpm=190, hr_rest_bpm=40, now=NOW)
    windows = response.efficiency.windows

    assert [w.window_start_sec for w in windows] == [0, 1]
    first = windows[0]
    assert first.duration_sec == 10800
    assert first.average_watts == 200
    assert first.average_heart_rate == 140
    assert first.watts_per_bpm == pytest.approx(1.43)
    # 心率储备 (140-40)/(190-40) = 66.7%
    assert first.watts_per_heart_rate_reserve == pytest.approx(3.0)
    assert first.cadence_coverage == 100
    assert first.moving_coverage == 100
    assert first.pct_ftp == 80


@pytest.mark.parametrize("gap", ["heart_rate", "speed", "cadence"])
def test_efficiency_requires_coverage(make_entry, gap):
    def sample(t):
        values = {'heart_rate': 140, 'cadence': 90, 'speed': 8.0}
        # 每 5 秒缺失一个读数：覆盖率 80%
        if t % 5 == 0:
            values[gap] = None
        return MetricSample(t=float(t), power=200, **values)

    entry = make_entry("gappy", 0, 10800, None, samples=[sample(t) for t in range(10801)])
    response = compute_training_frontiers([entry], hr_max_bpm=190, hr_rest_bpm=40, now=NOW)
    assert response.efficiency.windows == []


def _vo2_session(rep_watts):
    """300s 热身，随后每组 240s、组间 300s@150W"""
    starts = [300 + k * 540 for k in range(len(rep_watts))]

    def power_at(t):
        for start, watts in zip(starts, rep_watts):
            if start <= t < start + 240:
                return watts
        return 150

    return _ride(300 + 540 * len(rep_watts), power_at)


def test_repeatability_sequence(make_entry):
    entry = make_entry("vo2", 0, 2460, None, samples=_vo2_session([345, 345, 340, 333]))
    frontier = compute_training_frontiers([entry], ftp_watts=300, now=NOW).repeatability

    assert len(frontier.sequences) == 1
    sequence = frontier.sequences[0]
    assert sequence.target_key == "vo2"
    assert sequence.activity_id == "vo2"
    assert sequence.start_sec == 300
    assert sequence.reps == 4
    assert sequence.avg_watts_by_rep == [345, 345, 340, 333]
    assert sequence.avg_pct_by_rep == [115, 115, 113.3, 111]
    assert sequence.decay_slope == pytest.approx(-1.37)
    assert sequence.drop_from_first_to_last == pytest.approx(-4.0)

    best = {b.target_key: b for b in frontier.best_repeatability}
    assert best["vo2"].reps == 4
    assert best["vo2"].start_sec == 300
    assert best["threshold"].reps == 0
    assert best["threshold"].activity_id is None


def test_repeatability_needs_three_reps(make_entry):
    entry = make_entry("short", 0, 1380, None, samples=_vo2_session([345, 345]))
    frontier = compute_training_frontiers([entry], ftp_watts=300, now=NOW).repeatability
    assert frontier.sequences == []
    assert all(b.reps == 0 for b in frontier.best_repeatability)


def test_time_in_zone_streak(make_entry):
    entry = make_entry("tempo", 0, 1200, 200, heart_rate=150)
    streaks = {s.zone_key: s for s in compute_training_frontiers([entry], ftp_watts=250, now=NOW).time_in_zone.streaks}

    assert list(streaks) == [z.key for z in DEFAULT_ZONES]
    tempo = streaks["Z3"]
    # 1201 个样本，30s 滚动后剩 1172 个点
    assert tempo.duration_sec == 1172
    assert tempo.value == 19.5
    assert tempo.window_start_sec == 29
    assert tempo.average_watts == 200
    assert tempo.average_heart_rate == 150
    assert tempo.activity_id == "tempo"

    assert streaks["Z2"].duration_sec == 0
    assert streaks["Z2"].value is None
    assert streaks["Z6"].max_pct is None


def test_zone_streak_tolerates_brief_excursions():
    aligned = [(MetricSample(t=float(i), heart_rate=140), 200.0 if i < 100 or i >= 120 else 300.0) for i in range(220)]
    start, end, power_sum, heart_rates = longest_zone_streak(aligned, 150, 250)

    # 第 6 个越界点使越界占比超过 5%
    assert (start, end) == (0, 105)
    assert power_sum == 100 * 200 + 5 * 300
    assert len(heart_rates) == 105


def test_without_ftp(make_entry):
    entry = make_entry("vo2", 0, 2460, None, samples=_vo2_session([345, 345, 340, 333]))
    response = compute_training_frontiers([entry], weight_kg=70, now=NOW)

    assert response.ftp_watts is None
    assert response.weight_kg == 70
    assert all(e.pct_ftp is None for e in response.duration_power.durations)
    assert response.repeatability.sequences == []
    assert all(s.duration_sec == 0 for s in response.time_in_zone.streaks)
    assert _durations(response)[5].value == 345


def test_window_excludes_old_activities(make_entry):
    entries = [make_entry("recent", 0, 600, 200), make_entry("old", -100, 600, 400)]
    response = compute_training_frontiers(entries, window_days=90, now=NOW)
    assert _durations(response)[60].activity_id == "recent"

    widened = compute_training_frontiers(entries, window_days=180, now=NOW)
    assert _durations(widened)[60].activity_id == "old"
    assert widened.window_days == 180


def test_empty_history():
    response = compute_training_frontiers([], now=NOW)
    assert response.window_days == 90
    assert all(e.value is None for e in response.duration_power.durations)
    assert response.duration_power.convex_hull == []
    assert response.duration_power.peak_kj_per_hour is None
    assert response.efficiency.windows == []
    assert response.durability.efforts[0].value is None
