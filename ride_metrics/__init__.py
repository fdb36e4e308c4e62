"""ride_metrics：骑行指标与训练分析引擎（纯计算，无 I/O 依赖）。"""

__version__ = "0.1.0"
