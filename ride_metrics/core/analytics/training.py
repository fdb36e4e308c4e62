"""训练负荷与耐久性评分核心算法

说明：
- 本模块提供训练负荷（TSS）与耐久性评分等通用算法，输入为简单的标量；
- 不依赖数据库或网络，便于单元测试与复用；
- 输入不合法（FTP 缺失、时长为 0 等）时返回 None，而非抛出异常。
"""

import math
from typing import Optional

from .sampling import is_finite_number, round_half_up


def calculate_training_load(power: Optional[float], ftp: Optional[float], duration_seconds: float) -> Optional[float]:
    """计算训练负荷（TSS）：duration × P × (P / FTP) / (FTP × 36)。

    参数：
        power: 代表功率（W），通常为 NP，缺失时用平均功率
        ftp: 功能阈值功率（W）
        duration_seconds: 训练时长（秒）

    返回：
        未取整的 TSS，输入不合法时返回 None
    """
    if not is_finite_number(ftp) or ftp <= 0:
        return None
    if not is_finite_number(power) or power <= 0 or not duration_seconds or duration_seconds <= 0:
        return None
    return duration_seconds * power * (power / ftp) / (ftp * 36)


def intensity_tss(power: float, ftp: float, duration_seconds: float) -> Optional[float]:
    """IF² × 小时数 × 100；与 calculate_training_load 等价，仅用于片段（段内时长）计算。"""
    if not ftp or ftp <= 0 or duration_seconds <= 0:
        return None
    intensity_factor = power / ftp
    return intensity_factor * intensity_factor * (duration_seconds / 3600.0) * 100


def _clamp_score(value: float) -> int:
    if math.isnan(value):
        return 0
    return round_half_up(min(100.0, max(0.0, value)))


def calculate_durability_score(
    early_np_pct: Optional[float],
    late_np_pct: Optional[float],
    heart_rate_drift_pct: Optional[float],
    best_late_twenty_min_pct_ftp: Optional[float],
) -> int:
    """耐久性评分（0~100）。

    规则：
        - 后段 NP%FTP 相对前段每下降 1 个百分点扣 0.5 分；若不降反升，每升 1 点加 0.2 分（最多 +5）；
        - 心率/功率比漂移为正时，每 1% 扣 0.75 分；
        - 后段最佳 20 分钟功率超过 FTP 的部分，每 1% 加 0.5 分。
    """
    score = 100.0

    if early_np_pct is not None and late_np_pct is not None:
        drop = early_np_pct - late_np_pct
        if drop > 0:
            score -= drop * 0.5
        else:
            score += min(abs(drop) * 0.2, 5)

    if heart_rate_drift_pct is not None and heart_rate_drift_pct > 0:
        score -= heart_rate_drift_pct * 0.75

    if best_late_twenty_min_pct_ftp is not None:
        bonus = best_late_twenty_min_pct_ftp - 100
        if bonus > 0:
            score += bonus * 0.5

    return _clamp_score(score)
