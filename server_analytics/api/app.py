"""
FastAPI 应用配置

配置 CORS、路由注册、健康检查。
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import get_config
from .routers import analytics, collect, predictions

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    创建 FastAPI 应用实例

    配置：
    - CORS 中间件
    - API 路由
    """
    config = get_config()

    app = FastAPI(
        title="Server Analytics",
        description="游戏服务器状态采集、统计与人数预测",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )

    # CORS 中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册路由
    app.include_router(collect.router)
    app.include_router(analytics.router)
    app.include_router(predictions.router)

    @app.get("/api/health", tags=["health"])
    async def health():
        return {"status": "ok", "version": __version__}

    return app
