"""
单次活动的输入/输出数据模型

包含：
1. MetricSample - 单个采样点（t 为相对活动开始的秒数）
2. Activity - 活动元数据（开始时间、时长、采样率）
3. MetricDefinition / MetricContext / MetricComputationResult - 指标模块的定义、上下文与结果
4. ActivityHistoryEntry - 聚合分析（多活动）所需的单条活动输入

所有模型均为不可变（frozen），重新计算时整体替换旧结果。
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MetricSample(BaseModel):
    """单个采样点；可选字段为 None 表示"无读数"，而非 0"""
    model_config = ConfigDict(frozen=True)

    t          : float           = Field(..., description="相对活动开始的秒数（单调不减）")
    heart_rate : Optional[float] = Field(None, description="心率（bpm）")
    cadence    : Optional[float] = Field(None, description="踏频（rpm）")
    power      : Optional[float] = Field(None, description="功率（W）")
    speed      : Optional[float] = Field(None, description="速度（m/s）")
    elevation  : Optional[float] = Field(None, description="海拔（米）")
    temperature: Optional[float] = Field(None, description="温度（°C）")

    @field_validator('t')
    @classmethod
    def _ensure_finite_t(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("t must be a finite number of seconds")
        return value


class Activity(BaseModel):
    """活动元数据"""
    model_config = ConfigDict(frozen=True)

    id            : str             = Field(..., description="活动 ID")
    start_time    : datetime        = Field(..., description="活动开始时间（无时区信息时按 UTC 处理）")
    duration_sec  : float           = Field(0.0, description="活动时长（秒）")
    sample_rate_hz: Optional[float] = Field(None, description="采样率（Hz），缺失或 <=0 时由采样时间戳推断")
    source        : Optional[str]   = Field(None, description="数据来源（garmin-fit / strava 等）")

    @field_validator('start_time')
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class MetricDefinition(BaseModel):
    """指标静态元数据；结果通过 key + version 引用，计算后不再修改"""
    model_config = ConfigDict(frozen=True)

    key           : str            = Field(..., description="指标唯一键")
    name          : str            = Field(..., description="指标名称")
    version       : int            = Field(1, description="算法版本")
    description   : str            = Field(..., description="指标说明")
    units         : Optional[str]  = Field(None, description="单位")
    compute_config: Dict[str, Any] = Field(default_factory=dict, description="算法参数")


class MetricContext(BaseModel):
    """指标模块的计算上下文"""
    model_config = ConfigDict(frozen=True)

    activity          : Activity        = Field(..., description="所属活动")
    cp_watts          : Optional[float] = Field(None, description="外部提供的临界功率（W′ 平衡使用）")
    w_prime_capacity_j: Optional[float] = Field(None, description="外部提供的 W′ 容量（J）")


class MetricComputationResult(BaseModel):
    """指标计算结果：summary 为标量汇总，series 为按桶/窗口的序列"""
    model_config = ConfigDict(frozen=True)

    summary: Dict[str, Any]                  = Field(..., description="命名标量输出，数据不足时为 None")
    series : Optional[List[Dict[str, Any]]]  = Field(None, description="按桶/窗口的有序记录")


class ActivityHistoryEntry(BaseModel):
    """聚合分析的单条活动输入：原始采样或已计算的指标汇总（二者至少其一）"""
    model_config = ConfigDict(frozen=True)

    activity        : Activity                  = Field(...)
    samples         : List[MetricSample]        = Field(default_factory=list)
    metric_summaries: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="按指标键索引的已计算 summary")
