"""
pytest配置文件，定义共享的测试夹具（fixtures）。

主要功能：
1. 构造活动元数据（Activity）与指标上下文（MetricContext）
2. 构造按秒采样的合成骑行数据
"""

from datetime import datetime, timedelta, timezone

import pytest

from ride_metrics.schemas import Activity, ActivityHistoryEntry, MetricContext, MetricSample

BASE_START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_activity():
    """活动工厂：make_activity(duration_sec=..., sample_rate_hz=..., day_offset=...)"""
    def _make(activity_id="act_1", duration_sec=3600.0, sample_rate_hz=1.0, day_offset=0, source="test"):
        return Activity(
            id=activity_id,
            start_time=BASE_START + timedelta(days=day_offset),
            duration_sec=duration_sec,
            sample_rate_hz=sample_rate_hz,
            source=source,
        )
    return _make


@pytest.fixture
def make_context(make_activity):
    def _make(**kwargs):
        cp_watts = kwargs.pop("cp_watts", None)
        capacity = kwargs.pop("w_prime_capacity_j", None)
        return MetricContext(activity=make_activity(**kwargs), cp_watts=cp_watts, w_prime_capacity_j=capacity)
    return _make


@pytest.fixture
def constant_ride():
    """恒定功率的 1Hz 骑行：constant_ride(seconds, power, heart_rate=None)，t 从 0 到 seconds（含）"""
    def _make(seconds, power, heart_rate=None):
        return [MetricSample(t=float(t), power=power, heart_rate=heart_rate) for t in range(int(seconds) + 1)]
    return _make


@pytest.fixture
def make_entry(make_activity, constant_ride):
    """历史条目工厂：按天偏移生成恒定功率活动"""
    def _make(activity_id, day_offset, duration_sec, power, heart_rate=None, samples=None, metric_summaries=None):
        activity = make_activity(activity_id=activity_id, duration_sec=duration_sec, day_offset=day_offset)
        if samples is None:
            samples = constant_ride(duration_sec, power, heart_rate) if power is not None else []
        return ActivityHistoryEntry(activity=activity, samples=samples, metric_summaries=metric_summaries or {})
    return _make

