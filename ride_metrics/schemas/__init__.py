from .samples import (
    Activity,
    ActivityHistoryEntry,
    MetricComputationResult,
    MetricContext,
    MetricDefinition,
    MetricSample,
)
from .analysis import (
    AdaptationEdgesResponse,
    AdaptationWindowSummary,
    BlockSummary,
    DayAggregation,
    DepthActivitySummary,
    DepthAnalysisResponse,
    DepthDaySummary,
    DurabilityAnalysisResponse,
    DurabilityPoint,
    DurabilityRideAnalysis,
    DurabilitySegment,
    DurableTssResponse,
    DurableTssRide,
    DurabilityEffort,
    DurabilityFrontier,
    DurationPowerEntry,
    DurationPowerFrontier,
    EfficiencyFrontier,
    EfficiencyWindow,
    FrontierWindow,
    KjFrontierEntry,
    MovingAverageDay,
    RepeatabilityBest,
    RepeatabilityFrontier,
    RepeatabilitySequence,
    TimeInZoneFrontier,
    TrainingFrontiersResponse,
    ZoneStreak,
)
