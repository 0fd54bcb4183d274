"""
小时分桶

把不规则的在线快照折叠为每小时一个点，供前端绘图：
- 人数取小时内最大值（体现峰值）
- 延迟取有值样本的平均值并取整
- 没有样本的小时不输出，前端显示为断点而不是 0
"""

from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List

from .models import HourlyBucket, Snapshot
from .utils import floor_hour, round_half_up, to_utc


def bucket_hourly(
    snapshots: Iterable[Snapshot],
    start: datetime,
    end: datetime
) -> List[HourlyBucket]:
    """
    按小时聚合在线快照

    Args:
        snapshots: 快照（可包含离线快照，离线快照被忽略）
        start: 窗口开始（含）
        end: 窗口结束（含）

    Returns:
        按时间升序的 HourlyBucket 列表
    """
    start = to_utc(start)
    end = to_utc(end)

    groups: Dict[datetime, List[Snapshot]] = defaultdict(list)
    for snapshot in snapshots:
        if not snapshot.online:
            continue
        key = floor_hour(snapshot.timestamp)
        if start <= key <= end:
            groups[key].append(snapshot)

    buckets = []
    for key in sorted(groups):
        members = groups[key]
        latencies = [s.latency for s in members if s.latency is not None]
        buckets.append(HourlyBucket(
            timestamp=key,
            player_count=max(s.player_count for s in members),
            latency=int(round_half_up(sum(latencies) / len(latencies), 0)) if latencies else None,
            online=True,
        ))
    return buckets
