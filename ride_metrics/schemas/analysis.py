"""
聚合分析（多活动、按天）的响应模式

定义适应窗口、深度分析、Durable TSS、耐久性分析、移动平均输入与训练前沿的输出数据结构。
"""

from datetime import date as Date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class DayAggregation(_Frozen):
    """按 UTC 自然日汇总的负荷（含零活动日）"""
    date        : Date      = Field(..., description="UTC 日期")
    total_tss   : float     = Field(0.0, description="当日 TSS 合计（保留两位小数）")
    total_kj    : float     = Field(0.0, description="当日做功合计（kJ，保留两位小数）")
    activity_ids: List[str] = Field(default_factory=list, description="当日活动 ID 列表")


class BlockSummary(_Frozen):
    """连续 day_count 天内按某一指标（TSS 或 kJ）累计最高的训练块"""
    metric           : str                  = Field(..., description="排序指标：tss 或 kj")
    start            : Date                 = Field(..., description="起始日期")
    end              : Date                 = Field(..., description="结束日期（含）")
    total            : float                = Field(..., description="排序指标的累计值")
    average_per_day  : float                = Field(..., description="排序指标的日均值")
    day_count        : int                  = Field(..., description="块长度（天）")
    total_tss        : float                = Field(..., description="块内 TSS 合计")
    total_kj         : float                = Field(..., description="块内做功合计（kJ）")
    activity_ids     : List[str]            = Field(default_factory=list)
    contributing_days: List[DayAggregation] = Field(default_factory=list)


class AdaptationWindowSummary(_Frozen):
    window_days: int                    = Field(..., description="窗口长度（天）")
    best_tss   : Optional[BlockSummary] = Field(None, description="TSS 最高的块")
    best_kj    : Optional[BlockSummary] = Field(None, description="做功最高的块")


class AdaptationEdgesResponse(_Frozen):
    ftp_estimate    : Optional[float]               = Field(None, description="FTP 估算（W）")
    ftp_watts       : Optional[float]               = Field(None, description="计算 TSS 实际使用的 FTP")
    total_activities: int                           = Field(0)
    total_kj        : float                         = Field(0.0)
    total_tss       : float                         = Field(0.0)
    analyzed_days   : int                           = Field(0)
    window_summaries: List[AdaptationWindowSummary] = Field(default_factory=list)
    days            : List[DayAggregation]          = Field(default_factory=list, description="连续日时间线")


class DepthActivitySummary(_Frozen):
    activity_id: str
    start_time : datetime
    total_kj   : float
    depth_kj   : float
    depth_ratio: Optional[float] = Field(None, description="深度做功占比（%，保留一位小数）")


class DepthDaySummary(_Frozen):
    date            : Date
    total_kj        : float
    depth_kj        : float
    depth_ratio     : Optional[float]            = Field(None, description="深度做功占比（%）")
    moving_average90: Optional[float]            = Field(None, description="深度做功 90 天滑动均值（kJ）")
    activities      : List[DepthActivitySummary] = Field(default_factory=list)


class DepthAnalysisResponse(_Frozen):
    threshold_kj   : float
    min_power_watts: float
    days           : List[DepthDaySummary] = Field(default_factory=list)


class DurableTssRide(_Frozen):
    activity_id                 : str
    start_time                  : datetime
    source                      : Optional[str]   = None
    total_kj                    : Optional[float] = None
    post_threshold_kj           : Optional[float] = None
    post_threshold_duration_sec : Optional[float] = None
    durable_tss                 : Optional[float] = None


class DurableTssResponse(_Frozen):
    ftp_watts   : Optional[float]
    threshold_kj: float
    start_date  : Optional[datetime] = None
    end_date    : Optional[datetime] = None
    rides       : List[DurableTssRide] = Field(default_factory=list)


class DurabilitySegment(_Frozen):
    label                  : str
    start_sec              : float
    end_sec                : float
    duration_sec           : float
    normalized_power_watts : Optional[float] = None
    normalized_power_pct_ftp: Optional[float] = None
    average_power_watts    : Optional[float] = None
    average_heart_rate_bpm : Optional[float] = None
    heart_rate_power_ratio : Optional[float] = None


class DurabilityPoint(_Frozen):
    t         : float
    power     : Optional[float] = None
    heart_rate: Optional[float] = None


class DurabilityRideAnalysis(_Frozen):
    activity_id                   : str
    start_time                    : datetime
    source                        : Optional[str] = None
    duration_sec                  : float
    ftp_watts                     : Optional[float] = None
    normalized_power_watts        : Optional[float] = None
    normalized_power_pct_ftp      : Optional[float] = None
    average_power_watts           : Optional[float] = None
    average_heart_rate_bpm        : Optional[float] = None
    total_kj                      : Optional[float] = None
    tss                           : Optional[float] = None
    heart_rate_drift_pct          : Optional[float] = None
    best_late_twenty_min_watts    : Optional[float] = None
    best_late_twenty_min_pct_ftp  : Optional[float] = None
    durability_score              : int
    segments                      : Dict[str, DurabilitySegment]
    time_series                   : List[DurabilityPoint] = Field(default_factory=list)


class DurabilityAnalysisResponse(_Frozen):
    ftp_watts       : Optional[float]
    min_duration_sec: int
    rides           : List[DurabilityRideAnalysis] = Field(default_factory=list)


class MovingAverageDay(_Frozen):
    date      : Date
    total_kj  : float
    best_power: Dict[str, Optional[float]] = Field(default_factory=dict, description="时长（秒，字符串键）→ 当日最佳平均功率")


# ---- 训练前沿 ----

class FrontierWindow(_Frozen):
    """前沿记录的公共字段：最佳值及其来源活动、窗口起点"""
    value           : Optional[float]    = Field(None, description="前沿值（保留一位小数）")
    pct_ftp         : Optional[float]    = Field(None, description="占 FTP 百分比，无 FTP 时为 None")
    activity_id     : Optional[str]      = Field(None, description="来源活动 ID")
    start_time      : Optional[datetime] = Field(None, description="来源活动开始时间")
    window_start_sec: Optional[int]      = Field(None, description="窗口起点（相对活动开始的秒数，取整）")


class DurationPowerEntry(FrontierWindow):
    duration_sec: int


class KjFrontierEntry(FrontierWindow):
    """value 为 kJ/h"""
    duration_hours: int
    average_watts : Optional[float] = None
    total_kj      : Optional[float] = None


class DurabilityEffort(FrontierWindow):
    """累计做功达到 fatigue_kj 之后的最佳 duration_sec 平均功率，与新鲜状态前沿对比"""
    fatigue_kj  : int
    duration_sec: int
    delta_watts : Optional[float] = None
    delta_pct   : Optional[float] = None


class EfficiencyWindow(FrontierWindow):
    duration_sec                : int
    average_watts               : Optional[float] = None
    average_heart_rate          : Optional[float] = None
    watts_per_bpm               : Optional[float] = None
    watts_per_heart_rate_reserve: Optional[float] = None
    cadence_coverage            : float           = Field(0.0, description="踏频有效覆盖率（%）")
    moving_coverage             : float           = Field(0.0, description="移动覆盖率（%）")


class RepeatabilitySequence(_Frozen):
    target_key             : str
    activity_id            : str
    start_time             : datetime
    start_sec              : int
    reps                   : int
    avg_watts_by_rep       : List[float] = Field(default_factory=list)
    avg_pct_by_rep         : List[float] = Field(default_factory=list)
    decay_slope            : float       = Field(0.0, description="每组 %FTP 的线性衰减斜率")
    drop_from_first_to_last: float       = Field(0.0, description="末组与首组 %FTP 之差")


class RepeatabilityBest(_Frozen):
    target_key : str
    reps       : int                = Field(0, description="未跌破首组 -10%FTP 的连续组数")
    activity_id: Optional[str]      = None
    start_time : Optional[datetime] = None
    start_sec  : Optional[int]      = None


class ZoneStreak(FrontierWindow):
    """value 为分钟数"""
    zone_key          : str
    label             : str
    min_pct           : float
    max_pct           : Optional[float]
    duration_sec      : float           = 0.0
    average_watts     : Optional[float] = None
    average_heart_rate: Optional[float] = None


class DurationPowerFrontier(_Frozen):
    durations       : List[DurationPowerEntry]  = Field(default_factory=list)
    convex_hull     : List[DurationPowerEntry]  = Field(default_factory=list, description="对数-对数空间的上凸包")
    kj_frontier     : List[KjFrontierEntry]     = Field(default_factory=list)
    peak_kj_per_hour: Optional[KjFrontierEntry] = None


class DurabilityFrontier(_Frozen):
    efforts: List[DurabilityEffort] = Field(default_factory=list)


class EfficiencyFrontier(_Frozen):
    windows: List[EfficiencyWindow] = Field(default_factory=list)


class RepeatabilityFrontier(_Frozen):
    sequences         : List[RepeatabilitySequence] = Field(default_factory=list)
    best_repeatability: List[RepeatabilityBest]     = Field(default_factory=list)


class TimeInZoneFrontier(_Frozen):
    streaks: List[ZoneStreak] = Field(default_factory=list)


class TrainingFrontiersResponse(_Frozen):
    window_days   : int
    ftp_watts     : Optional[float] = None
    weight_kg     : Optional[float] = None
    hr_max_bpm    : Optional[float] = None
    hr_rest_bpm   : Optional[float] = None
    duration_power: DurationPowerFrontier
    durability    : DurabilityFrontier
    efficiency    : EfficiencyFrontier
    repeatability : RepeatabilityFrontier
    time_in_zone  : TimeInZoneFrontier
