"""
指标注册表

指标键为封闭枚举（MetricKey），通过分发表映射到各指标模块；
每个模块暴露 DEFINITION 与 compute(samples, context)。未知键抛出 UnknownMetricError。
"""
from enum import Enum
from types import ModuleType
from typing import Dict, List, Union

from ..schemas.samples import MetricDefinition
from .activities import (
    hcsr,
    interval_efficiency,
    late_aerobic_efficiency,
    normalized_power,
    stabilized_power,
    w_prime_balance,
    whr_efficiency,
)


class UnknownMetricError(KeyError):
    """Raised when a metric key is not registered."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Unknown metric key: {self.key}"


class MetricKey(str, Enum):
    HCSR = "hcsr"
    NORMALIZED_POWER = "normalized-power"
    STABILIZED_POWER = "stabilized-power"
    INTERVAL_EFFICIENCY = "interval-efficiency"
    WHR_EFFICIENCY = "whr-efficiency"
    LATE_AEROBIC_EFFICIENCY = "late-aerobic-efficiency"
    W_PRIME_BALANCE = "w-prime-balance"


METRIC_REGISTRY: Dict[MetricKey, ModuleType] = {
    MetricKey.HCSR: hcsr,
    MetricKey.NORMALIZED_POWER: normalized_power,
    MetricKey.STABILIZED_POWER: stabilized_power,
    MetricKey.INTERVAL_EFFICIENCY: interval_efficiency,
    MetricKey.WHR_EFFICIENCY: whr_efficiency,
    MetricKey.LATE_AEROBIC_EFFICIENCY: late_aerobic_efficiency,
    MetricKey.W_PRIME_BALANCE: w_prime_balance,
}


def resolve_metric_key(key: Union[str, MetricKey]) -> MetricKey:
    try:
        return MetricKey(key)
    except ValueError:
        raise UnknownMetricError(str(key)) from None


def get_metric_module(key: Union[str, MetricKey]) -> ModuleType:
    return METRIC_REGISTRY[resolve_metric_key(key)]


def list_metric_definitions() -> List[MetricDefinition]:
    return [module.DEFINITION for module in METRIC_REGISTRY.values()]
