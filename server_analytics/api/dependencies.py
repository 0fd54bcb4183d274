"""
依赖注入模块

提供 FastAPI 依赖项。
"""

from typing import Optional
from fastapi import Header, HTTPException, status

from ..collector import Prober
from ..config import get_config
from ..database import get_db, Database
from ..prober import probe


async def get_database() -> Database:
    """获取数据库实例"""
    return get_db()


async def get_prober() -> Prober:
    """获取服务器探测函数（测试中可替换）"""
    return probe


async def verify_cron_secret(authorization: Optional[str] = Header(None)):
    """
    验证采集触发方

    未配置 cron_secret 时跳过验证（开发环境），
    否则要求 Authorization: Bearer <cron_secret>。
    """
    config = get_config()
    cron_secret = config.api.cron_secret

    if not cron_secret:
        return
    if authorization == f"Bearer {cron_secret}":
        return

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized"
    )
