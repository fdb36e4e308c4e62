"""
流数据规范化模块

功能：
- 将按列组织的流数据（本地 FIT 解析结果或 Strava key_by_type=true 的返回）转换为按 t 排序的 MetricSample 列表；
- 支持常见别名：elapsed_time/time/timestamp、power/watts、heart_rate/heartrate、
  speed/velocity_smooth、altitude/enhanced_altitude、temperature/temp；
- 缺失的列为 None，非数值或非有限数值的条目为 None（不会被当作 0）；
- timestamp 列（datetime 或 epoch 秒）会转换为相对第一个采样点的秒数。

输入格式示例：
    {'time': [0, 1, 2], 'power': [200, None, 210], 'heart_rate': [120, 121, 122]}
    {'time': {'data': [0, 1, 2]}, 'watts': {'data': [200, 205, 210]}}
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..core.analytics.sampling import infer_sample_rate
from ..schemas.samples import Activity, MetricSample

logger = logging.getLogger(__name__)

TIME_KEYS = ('elapsed_time', 'time', 'timestamp')
FIELD_ALIASES: Dict[str, Sequence[str]] = {
    'power': ('power', 'watts'),
    'heart_rate': ('heart_rate', 'heartrate'),
    'cadence': ('cadence',),
    'speed': ('speed', 'velocity_smooth', 'enhanced_speed'),
    'elevation': ('altitude', 'enhanced_altitude', 'elevation'),
    'temperature': ('temperature', 'temp'),
}


def _column(stream_data: Dict[str, Any], key: str) -> Optional[List[Any]]:
    value = stream_data.get(key)
    if isinstance(value, dict):
        value = value.get('data')
    if value is None:
        return None
    return list(value)


def _first_column(stream_data: Dict[str, Any], keys: Sequence[str]) -> Optional[List[Any]]:
    for key in keys:
        column = _column(stream_data, key)
        if column is not None:
            return column
    return None


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _relative_times(stream_data: Dict[str, Any], length: int) -> List[Optional[float]]:
    for key in TIME_KEYS:
        column = _column(stream_data, key)
        if column is None:
            continue
        if key == 'timestamp':
            raw = [v.timestamp() if isinstance(v, datetime) else _to_float(v) for v in column]
            origin = next((v for v in raw if v is not None), None)
            return [None if v is None or origin is None else v - origin for v in raw]
        return [_to_float(v) for v in column]
    # 无时间列时按 1Hz 序号处理
    return [float(i) for i in range(length)]


def normalize_stream(stream_data: Dict[str, Any]) -> List[MetricSample]:
    columns = {name: _first_column(stream_data, aliases) for name, aliases in FIELD_ALIASES.items()}
    lengths = [len(c) for c in columns.values() if c is not None]
    time_column = _first_column(stream_data, TIME_KEYS)
    length = len(time_column) if time_column is not None else max(lengths, default=0)
    times = _relative_times(stream_data, length)

    samples: List[MetricSample] = []
    skipped = 0
    for index, t in enumerate(times):
        if t is None:
            skipped += 1
            continue
        values = {
            name: _to_float(column[index]) if column is not None and index < len(column) else None
            for name, column in columns.items()
        }
        samples.append(MetricSample(t=t, **values))

    if skipped:
        logger.debug(f"[normalizer] 跳过 {skipped} 个无有效时间戳的采样点")
    samples.sort(key=lambda s: s.t)
    return samples


def build_activity(
    activity_id: str,
    start_time: datetime,
    samples: Sequence[MetricSample],
    duration_sec: Optional[float] = None,
    sample_rate_hz: Optional[float] = None,
    source: Optional[str] = None,
) -> Activity:
    """由流元数据构建 Activity；时长缺失时取末尾样本的 t，采样率缺失时由时间戳推断。"""
    if duration_sec is None:
        duration_sec = samples[-1].t if samples else 0.0
    if sample_rate_hz is None and samples:
        sample_rate_hz = infer_sample_rate(None, duration_sec, samples)
    return Activity(
        id=activity_id,
        start_time=start_time,
        duration_sec=duration_sec,
        sample_rate_hz=sample_rate_hz,
        source=source,
    )
