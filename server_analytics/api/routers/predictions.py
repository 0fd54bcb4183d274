"""
预测 API
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...database import Database
from ...exceptions import StoreError
from ...models import PredictionResponse
from ...predictor import get_prediction
from ..dependencies import get_database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics/predictions", tags=["predictions"])


@router.get("/{server_id}", response_model=PredictionResponse)
async def server_predictions(
    server_id: str,
    range_value: Optional[str] = Query("24h", alias="range", description="时间范围：24h, 7d, 30d, 90d"),
    db: Database = Depends(get_database)
):
    """
    预测人数

    基于最近 30 天同一（星期, 小时）的平均人数，覆盖范围的 80% 过去 + 20% 未来。
    stats.data_points 较少时（reliable=false）前端应隐藏预测曲线。
    """
    try:
        return get_prediction(server_id, range_value, db=db)
    except StoreError as e:
        logger.error(f"Error fetching predictions for server {server_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch predictions"
        )
