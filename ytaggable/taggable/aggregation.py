"""热度聚合

标签云权重按最小-最大归一化到 0-10：

    weight = round_half_up(10 * (count - min) / (max - min))

所有计数相同（且非空）时权重均为 10，空集合返回空列表。
"""

import math
from typing import Any, Iterable, List, Sequence, Tuple

MAX_WEIGHT = 10


def round_half_up(value: float) -> int:
    """四舍五入（0.5 向上取整，不使用银行家舍入）"""
    return int(math.floor(value + 0.5))


def compute_weights(counts: Sequence[int]) -> List[int]:
    """按使用次数计算权重

    Examples:
        >>> compute_weights([10, 5, 1])
        [10, 4, 0]
        >>> compute_weights([3, 3])
        [10, 10]
    """
    counts = list(counts)
    if not counts:
        return []

    max_count = max(counts)
    min_count = min(counts)
    if max_count == min_count:
        return [MAX_WEIGHT] * len(counts)

    span = max_count - min_count
    return [round_half_up(MAX_WEIGHT * (c - min_count) / span) for c in counts]


def build_tag_cloud(rows: Iterable[Tuple[Any, int]]) -> List[Any]:
    """构建标签云

    Args:
        rows: (tag, count) 序列

    Returns:
        标签列表，每个标签附加 taggables_count 与 weight 属性（不持久化）
    """
    rows = list(rows)
    weights = compute_weights([count or 0 for _, count in rows])

    tags = []
    for (tag, count), weight in zip(rows, weights):
        tag.taggables_count = count or 0
        tag.weight = weight
        tags.append(tag)
    return tags


def rank_by_count(rows: Iterable[Tuple[Any, int]], limit: int = None) -> List[Any]:
    """按使用次数降序排列已加载的 (tag, count) 行

    次数相同时按 id 升序，结果稳定。标签会附加 taggables_count 属性。
    """
    ranked = sorted(rows, key=lambda row: (-(row[1] or 0), getattr(row[0], "id", 0) or 0))
    if limit is not None:
        ranked = ranked[:limit]

    tags = []
    for tag, count in ranked:
        tag.taggables_count = count or 0
        tags.append(tag)
    return tags
