"""
区间统计

按时间范围计算单台服务器的在线率、平均/峰值人数，以及所有服务器的最新状态总览。
所有统计均在查询时实时计算，不做缓存。
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from .bucketing import bucket_hourly
from .config import get_config
from .database import Database, get_db
from .models import (
    HourlySeriesResponse, OverviewResponse, OverviewTotals, ServerOverview, ServerSummaryResponse,
    Snapshot, SummaryStats, normalize_range, range_to_hours
)
from .predictor import prediction_window
from .utils import hours, parse_ts, round_half_up, to_utc, utcnow

logger = logging.getLogger(__name__)


def calculate_summary(snapshots: Sequence[Snapshot]) -> SummaryStats:
    """
    计算汇总指标

    Args:
        snapshots: 区间内的快照列表

    Returns:
        SummaryStats（空列表时全部为 0）
    """
    total = len(snapshots)
    if not total:
        return SummaryStats()

    player_counts = [s.player_count for s in snapshots if s.online]
    uptime = len(player_counts) / total * 100
    avg_players = sum(player_counts) / len(player_counts) if player_counts else 0

    return SummaryStats(
        uptime_percent=round_half_up(uptime, 1),
        avg_players=round_half_up(avg_players, 1),
        peak_players=max(player_counts) if player_counts else 0,
        total_snapshots=total,
    )


def get_server_summary(
    server_id: str,
    range_value: Optional[str] = None,
    db: Optional[Database] = None,
    now: Optional[datetime] = None
) -> ServerSummaryResponse:
    """
    查询单台服务器在时间范围内的统计和原始快照

    未知服务器不报错，返回全 0 统计和空数据。

    Raises:
        StoreError: 数据库读取失败
    """
    db = db or get_db()
    range_value = normalize_range(range_value)
    now = to_utc(now) if now is not None else utcnow()

    since = now - hours(range_to_hours(range_value))
    snapshots = db.query_snapshots(server_id, since)

    return ServerSummaryResponse(
        server_id=server_id,
        range=range_value,
        summary=calculate_summary(snapshots),
        data=snapshots,
    )


def get_hourly_series(
    server_id: str,
    range_value: Optional[str] = None,
    db: Optional[Database] = None,
    now: Optional[datetime] = None
) -> HourlySeriesResponse:
    """
    按小时分桶的人数/延迟曲线

    窗口与预测窗口一致，方便前端把两条曲线叠加。
    """
    db = db or get_db()
    range_value = normalize_range(range_value)
    now = to_utc(now) if now is not None else utcnow()

    start, end = prediction_window(range_value, now, get_config().prediction.past_ratio)
    snapshots = db.query_snapshots(server_id, start)

    return HourlySeriesResponse(
        server_id=server_id,
        range=range_value,
        start=start,
        end=end,
        data=bucket_hourly(snapshots, start, end),
    )


def get_overview(db: Optional[Database] = None) -> OverviewResponse:
    """所有启用服务器的最新快照及合计"""
    db = db or get_db()
    rows = db.get_latest_snapshots()

    servers: List[ServerOverview] = []
    for row in rows:
        has_snapshot = row["timestamp"] is not None
        servers.append(ServerOverview(
            id=row["id"],
            name=row["name"],
            online=bool(row["online"]) if has_snapshot else None,
            player_count=row["player_count"],
            max_players=row["max_players"],
            timestamp=parse_ts(row["timestamp"]) if has_snapshot else None,
        ))

    online = [s for s in servers if s.online]
    return OverviewResponse(
        summary=OverviewTotals(
            total_servers=len(servers),
            online_servers=len(online),
            total_players=sum(s.player_count or 0 for s in online),
        ),
        servers=servers,
    )
