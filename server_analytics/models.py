"""
数据模型定义

包括：
- 快照与探测结果
- 采集报告
- 统计 / 预测 / 分桶的 Pydantic 响应模型
- 时间范围枚举
"""

from datetime import datetime
from typing import Dict, List, Optional, Literal

from pydantic import BaseModel, Field


# =============================================================================
# 时间范围
# =============================================================================

DEFAULT_RANGE = "24h"

# 范围 -> 回看小时数
RANGE_HOURS: Dict[str, int] = {
    "24h": 24,
    "7d": 24 * 7,
    "30d": 24 * 30,
    "90d": 24 * 90,
}


def normalize_range(range_value: Optional[str]) -> str:
    """未知范围按 24h 处理，不报错"""
    if range_value in RANGE_HOURS:
        return range_value
    return DEFAULT_RANGE


def range_to_hours(range_value: Optional[str]) -> int:
    """范围字符串 -> 回看小时数"""
    return RANGE_HOURS[normalize_range(range_value)]


# =============================================================================
# 探测与快照
# =============================================================================

class StatusReading(BaseModel):
    """一次成功探测的结果"""
    player_count: int = Field(ge=0)
    max_players: int = Field(ge=0)
    latency: Optional[int] = Field(default=None, ge=0)  # 毫秒，旧协议为空
    version: Optional[str] = None


class Snapshot(BaseModel):
    """单台服务器在某一时刻的状态快照（写入后不可变）"""
    model_config = {"frozen": True}

    server_id: str
    timestamp: datetime
    online: bool
    player_count: int = Field(default=0, ge=0)
    max_players: int = Field(default=0, ge=0)
    latency: Optional[int] = Field(default=None, ge=0)
    version: Optional[str] = None

    @classmethod
    def from_reading(cls, server_id: str, timestamp: datetime, reading: StatusReading) -> "Snapshot":
        """在线快照"""
        return cls(
            server_id=server_id,
            timestamp=timestamp,
            online=True,
            player_count=reading.player_count,
            max_players=reading.max_players,
            latency=reading.latency,
            version=reading.version,
        )

    @classmethod
    def offline(cls, server_id: str, timestamp: datetime) -> "Snapshot":
        """离线快照：人数清零，延迟/版本为空"""
        return cls(server_id=server_id, timestamp=timestamp, online=False)


class ServerInfo(BaseModel):
    """注册表中的服务器（只读）"""
    id: str
    name: Optional[str] = None
    host: str
    port: int = 25565


# =============================================================================
# 采集报告
# =============================================================================

class CollectionOutcome(BaseModel):
    """单台服务器的采集结果"""
    server_id: str
    status: Literal["online", "offline", "error"]
    players: Optional[int] = None
    error: Optional[str] = None


class CollectionReport(BaseModel):
    """一次采集的汇总（调用层面始终视为成功）"""
    success: bool = True
    collected: int = 0
    timestamp: datetime
    results: List[CollectionOutcome] = Field(default_factory=list)


# =============================================================================
# 统计
# =============================================================================

class SummaryStats(BaseModel):
    """区间汇总统计（每次查询实时计算，不入库）"""
    uptime_percent: float = 0
    avg_players: float = 0
    peak_players: int = 0
    total_snapshots: int = 0


class ServerSummaryResponse(BaseModel):
    """GET /api/analytics/server/{id} 响应"""
    server_id: str
    range: str
    summary: SummaryStats
    data: List[Snapshot] = Field(default_factory=list)


class HourlyBucket(BaseModel):
    """按小时聚合后的数据点（空小时不出现）"""
    timestamp: datetime
    player_count: int
    latency: Optional[int] = None
    online: bool = True


class HourlySeriesResponse(BaseModel):
    """GET /api/analytics/server/{id}/hourly 响应"""
    server_id: str
    range: str
    start: datetime
    end: datetime
    data: List[HourlyBucket] = Field(default_factory=list)


# =============================================================================
# 预测
# =============================================================================

class PredictionPoint(BaseModel):
    """预测点"""
    timestamp: datetime
    predicted_players: int


class PredictionStats(BaseModel):
    """30 天整体统计"""
    overall_avg: float = 0
    peak_players: int = 0
    data_points: int = 0
    reliable: bool = False


class PredictionResponse(BaseModel):
    """GET /api/analytics/predictions/{id} 响应"""
    server_id: str
    range: str
    predictions: List[PredictionPoint] = Field(default_factory=list)
    stats: PredictionStats


# =============================================================================
# 总览
# =============================================================================

class ServerOverview(BaseModel):
    """单台服务器的最新状态"""
    id: str
    name: Optional[str] = None
    online: Optional[bool] = None
    player_count: Optional[int] = None
    max_players: Optional[int] = None
    timestamp: Optional[datetime] = None


class OverviewTotals(BaseModel):
    total_servers: int = 0
    online_servers: int = 0
    total_players: int = 0


class OverviewResponse(BaseModel):
    """GET /api/analytics/summary 响应"""
    summary: OverviewTotals
    servers: List[ServerOverview] = Field(default_factory=list)
