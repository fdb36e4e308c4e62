"""
单次活动的指标批量计算

流程：
1. 预先解析全部指标键（任一未知键在计算前直接失败）；
2. 采样按 t 排序后依次交给各指标模块；
3. 单个模块抛出异常时记录日志，该指标结果为 {"error": message}，其余指标照常计算；
4. 传入 cache 时先按 活动 ID + 指标键 + 版本 读取缓存，计算成功后写回。
"""
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Union

from ..infrastructure.cache_manager import MetricCacheManager
from ..schemas.samples import Activity, MetricComputationResult, MetricContext, MetricSample
from .registry import METRIC_REGISTRY, MetricKey, get_metric_module, resolve_metric_key

logger = logging.getLogger(__name__)


def select_metric_keys(metric_keys: Optional[Iterable[Union[str, MetricKey]]] = None) -> List[MetricKey]:
    if metric_keys is None:
        return list(METRIC_REGISTRY)
    return [resolve_metric_key(key) for key in metric_keys]


def run_metrics(
    activity: Activity,
    samples: Sequence[MetricSample],
    metric_keys: Optional[Iterable[Union[str, MetricKey]]] = None,
    cache: Optional[MetricCacheManager] = None,
    cp_watts: Optional[float] = None,
    w_prime_capacity_j: Optional[float] = None,
) -> Dict[str, MetricComputationResult]:
    keys = select_metric_keys(metric_keys)
    ordered = sorted(samples, key=lambda s: s.t)
    context = MetricContext(activity=activity, cp_watts=cp_watts, w_prime_capacity_j=w_prime_capacity_j)
    results: Dict[str, MetricComputationResult] = {}

    for key in keys:
        module = get_metric_module(key)
        definition = module.DEFINITION
        cache_key = cache.generate_cache_key(activity.id, definition.key, definition.version) if cache else None

        if cache is not None:
            cached = cache.get_cache(activity.id, cache_key)
            if cached is not None:
                results[definition.key] = MetricComputationResult.model_validate(cached)
                continue

        try:
            computation = module.compute(ordered, context)
        except Exception as e:
            logger.exception(f"[metrics][failed] activity_id={activity.id}, metric={definition.key}, error: {e}")
            results[definition.key] = MetricComputationResult(summary={"error": str(e)})
            continue

        results[definition.key] = computation
        if cache is not None:
            cache.set_cache(activity.id, cache_key, computation.model_dump(mode='json'))

    logger.debug(f"[metrics][done] activity_id={activity.id}, metrics={list(results)}")
    return results
