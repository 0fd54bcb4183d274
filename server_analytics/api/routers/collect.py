"""
采集触发 API

供外部调度器（cron）每 5 分钟调用一次，也可手动触发。
GET 和 POST 行为一致。
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...collector import Prober, collect_once
from ...database import Database
from ...exceptions import CollectionInProgressError, StoreError
from ...models import CollectionReport
from ..dependencies import get_database, get_prober, verify_cron_secret

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["collect"])


async def _collect(db: Database, prober: Prober) -> CollectionReport:
    try:
        return await collect_once(db=db, prober=prober)
    except CollectionInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StoreError as e:
        logger.error(f"Analytics collection error: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Collection failed: {e}"
        )


@router.get("/collect", response_model=CollectionReport, dependencies=[Depends(verify_cron_secret)])
async def collect_get(
    db: Database = Depends(get_database),
    prober: Prober = Depends(get_prober)
):
    """执行一次采集（调度器使用 GET）"""
    return await _collect(db, prober)


@router.post("/collect", response_model=CollectionReport, dependencies=[Depends(verify_cron_secret)])
async def collect_post(
    db: Database = Depends(get_database),
    prober: Prober = Depends(get_prober)
):
    """执行一次采集"""
    return await _collect(db, prober)
