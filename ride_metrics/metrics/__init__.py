from .registry import METRIC_REGISTRY, MetricKey, UnknownMetricError, get_metric_module, list_metric_definitions
from .runner import run_metrics
