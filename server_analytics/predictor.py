"""
人数预测

朴素季节性预测：用最近 30 天的在线快照按（星期, 小时）求平均人数，
再把这张查找表投影到请求范围对应的时间窗口上（80% 过去 + 20% 未来）。
"""

import logging
import math
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from .config import get_config
from .database import Database, get_db
from .models import (
    PredictionPoint, PredictionResponse, PredictionStats, Snapshot,
    normalize_range, range_to_hours
)
from .utils import ceil_int, day_of_week, hour_of_day, hours, round_half_up, to_utc, utcnow

logger = logging.getLogger(__name__)


def slot_key(dt: datetime) -> str:
    """查找表键："{星期}-{小时}"，星期 0=周日"""
    return f"{day_of_week(dt)}-{hour_of_day(dt)}"


def build_prediction_table(snapshots: Iterable[Snapshot]) -> Dict[str, float]:
    """
    构建（星期, 小时）-> 平均人数 查找表

    只统计在线快照；没有样本的格子不出现在表中（查询时按 0 处理）。
    平均值保留 1 位小数（half-up）。
    """
    groups: Dict[str, List[int]] = defaultdict(list)
    for snapshot in snapshots:
        if snapshot.online:
            groups[slot_key(snapshot.timestamp)].append(snapshot.player_count)

    return {
        key: round_half_up(sum(counts) / len(counts), 1)
        for key, counts in sorted(groups.items())
    }


def prediction_window(
    range_value: Optional[str],
    now: datetime,
    past_ratio: float = 0.8
) -> Tuple[datetime, datetime]:
    """
    计算预测窗口 [now - past_hours, now + future_hours]

    past_hours = floor(lookback × 0.8)，future_hours = ceil(lookback × 0.2)
    """
    lookback = range_to_hours(range_value)
    ratio = Decimal(str(past_ratio))
    past_hours = math.floor(lookback * ratio)
    future_hours = math.ceil(lookback * (1 - ratio))
    now = to_utc(now)
    return now - hours(past_hours), now + hours(future_hours)


def project_predictions(
    table: Dict[str, float],
    start: datetime,
    end: datetime
) -> List[PredictionPoint]:
    """按小时遍历窗口（两端都包含），每个点取查找表的值并向上取整"""
    points = []
    current = to_utc(start)
    end = to_utc(end)
    step = timedelta(hours=1)
    while current <= end:
        points.append(PredictionPoint(
            timestamp=current,
            predicted_players=ceil_int(table.get(slot_key(current), 0)),
        ))
        current += step
    return points


def calculate_overall_stats(
    snapshots: Iterable[Snapshot],
    table: Dict[str, float],
    min_data_points: int = 12
) -> PredictionStats:
    """
    30 天整体统计

    data_points 为有样本的（星期, 小时）格子数，前端据此判断预测是否可信。
    """
    player_counts = [s.player_count for s in snapshots if s.online]
    data_points = len(table)
    if not player_counts:
        return PredictionStats(data_points=data_points, reliable=data_points >= min_data_points)

    return PredictionStats(
        overall_avg=round_half_up(sum(player_counts) / len(player_counts), 1),
        peak_players=max(player_counts),
        data_points=data_points,
        reliable=data_points >= min_data_points,
    )


def get_prediction(
    server_id: str,
    range_value: Optional[str] = None,
    db: Optional[Database] = None,
    now: Optional[datetime] = None
) -> PredictionResponse:
    """
    查询单台服务器的预测曲线和整体统计

    没有任何历史时所有预测为 0，统计为 0，不报错。

    Raises:
        StoreError: 数据库读取失败
    """
    config = get_config().prediction
    db = db or get_db()
    range_value = normalize_range(range_value)
    now = to_utc(now) if now is not None else utcnow()

    history = db.query_snapshots(
        server_id,
        now - timedelta(days=config.history_days),
        online_only=True
    )
    table = build_prediction_table(history)

    start, end = prediction_window(range_value, now, config.past_ratio)
    predictions = project_predictions(table, start, end)

    logger.debug(
        f"Prediction for server {server_id} ({range_value}): "
        f"{len(history)} samples, {len(table)} slots, {len(predictions)} points"
    )

    return PredictionResponse(
        server_id=server_id,
        range=range_value,
        predictions=predictions,
        stats=calculate_overall_stats(history, table, config.min_data_points),
    )
