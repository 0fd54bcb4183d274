"""
统计分析 API

提供单台服务器的区间统计、小时分桶曲线，以及全部服务器的总览。
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...aggregator import get_hourly_series, get_overview, get_server_summary
from ...database import Database
from ...exceptions import StoreError
from ...models import HourlySeriesResponse, OverviewResponse, ServerSummaryResponse
from ..dependencies import get_database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/server/{server_id}", response_model=ServerSummaryResponse)
async def server_analytics(
    server_id: str,
    range_value: Optional[str] = Query("24h", alias="range", description="时间范围：24h, 7d, 30d, 90d"),
    db: Database = Depends(get_database)
):
    """
    单台服务器区间统计

    返回在线率、平均/峰值人数和区间内的原始快照（按时间升序）。
    未知范围按 24h 处理；没有数据的服务器返回全 0。
    """
    try:
        return get_server_summary(server_id, range_value, db=db)
    except StoreError as e:
        logger.error(f"Error fetching analytics for server {server_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch analytics"
        )


@router.get("/server/{server_id}/hourly", response_model=HourlySeriesResponse)
async def server_hourly(
    server_id: str,
    range_value: Optional[str] = Query("24h", alias="range", description="时间范围：24h, 7d, 30d, 90d"),
    db: Database = Depends(get_database)
):
    """按小时分桶的人数曲线（空小时不返回）"""
    try:
        return get_hourly_series(server_id, range_value, db=db)
    except StoreError as e:
        logger.error(f"Error fetching hourly series for server {server_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch analytics"
        )


@router.get("/summary", response_model=OverviewResponse)
async def analytics_summary(db: Database = Depends(get_database)):
    """所有启用服务器的最新状态与合计"""
    try:
        return get_overview(db=db)
    except StoreError as e:
        logger.error(f"Error fetching analytics summary: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch analytics summary"
        )
