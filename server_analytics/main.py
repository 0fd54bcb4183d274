"""
主程序入口

子命令：
- serve（默认）：REST API 服务 + 进程内 5 分钟采集循环
- collect：执行一次采集并输出 JSON 报告（供系统 cron 调用）
- poll：本地开发用，每隔 interval 秒调用一次 HTTP 采集接口
- add-server：登记一台服务器
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Dict

import httpx
import uvicorn

from . import __version__
from .collector import collect_once, run_collector
from .config import get_config, init_config
from .database import get_db
from .exceptions import AnalyticsError
from .utils import lock_file

logger = logging.getLogger(__name__)


def setup_logging():
    """配置日志"""
    config = get_config()

    # 日志格式
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # 获取日志级别
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    # 配置根日志
    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # 如果配置了文件日志
    if config.logging.file:
        log_path = Path(config.logging.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(str(log_path), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(log_format))
        logging.getLogger().addHandler(file_handler)

    # 降低第三方库日志级别
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def acquire_single_instance_lock(lock_path: Path):
    """
    防止同一数据库上启动多个服务实例（多实例会导致重复采集）。

    通过文件锁实现：同一路径下只能有一个进程持锁。
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    handle = open(lock_path, "a+b")

    try:
        lock_file(handle)
    except OSError as e:
        handle.close()
        raise RuntimeError(f"Another Server Analytics instance is already running (lock: {lock_path})") from e

    handle.seek(0)
    handle.truncate()
    handle.write(str(os.getpid()).encode("utf-8"))
    handle.flush()
    return handle


async def run_api_server():
    """运行 API 服务器"""
    from .api.app import create_app

    config = get_config()
    app = create_app()

    server_config = uvicorn.Config(
        app=app,
        host=config.api.host,
        port=config.api.port,
        log_level="info",
        access_log=False
    )
    server = uvicorn.Server(server_config)
    await server.serve()


async def serve():
    """启动 API 服务和采集循环"""
    config = get_config()
    logger.info("=" * 60)
    logger.info(f"Server Analytics v{__version__}")
    logger.info("=" * 60)
    logger.info(f"Config loaded: API={config.api.host}:{config.api.port}")

    db = get_db()
    logger.info(f"Database initialized: {db.db_path}")

    try:
        lock_handle = acquire_single_instance_lock(db.db_path.parent / "server-analytics.lock")
    except RuntimeError as e:
        logger.error(str(e))
        return

    tasks = [run_api_server()]
    if config.collector.enabled:
        tasks.append(run_collector())
    else:
        logger.info("In-process collector disabled, expecting an external scheduler")

    try:
        await asyncio.gather(*tasks)
    except asyncio.CancelledError:
        logger.info("Tasks cancelled, shutting down...")
    finally:
        lock_handle.close()


async def collect():
    """执行一次采集并以 JSON 输出报告"""
    report = await collect_once()
    print(report.model_dump_json(indent=2))


async def trigger_collection(client: httpx.AsyncClient, url: str, headers: Dict[str, str]) -> bool:
    """
    调用一次 HTTP 采集接口并记录结果

    请求失败或响应格式不对时只记录日志，不中断轮询。

    Returns:
        是否成功
    """
    try:
        response = await client.get(url, headers=headers)
        response.raise_for_status()
        data = response.json()
        summary = ", ".join(f"{r['server_id']}: {r['status']}" for r in data["results"])
        logger.info(f"Collected {data['collected']} server(s): {summary}")
    except httpx.HTTPError as e:
        logger.error(f"Collection request failed: {e}")
        return False
    except (ValueError, KeyError, TypeError) as e:
        logger.error(f"Unexpected collection response: {e!r}")
        return False
    return True


async def poll():
    """
    本地采集轮询

    每隔 interval 秒调用一次 HTTP 采集接口，先立即执行一次。
    """
    config = get_config()
    url = config.collector.collect_url
    interval = config.collector.interval
    headers = {}
    if config.api.cron_secret:
        headers["Authorization"] = f"Bearer {config.api.cron_secret}"

    logger.info(f"Starting local analytics collection against {url} (every {interval}s)")

    async with httpx.AsyncClient(timeout=60) as client:
        while True:
            await trigger_collection(client, url, headers)
            await asyncio.sleep(interval)


def add_server(args: argparse.Namespace):
    """登记一台服务器"""
    db = get_db()
    db.register_server(args.server_id, args.host, port=args.port, name=args.name)
    print(f"Registered server {args.server_id} ({args.host}:{args.port})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="server-analytics", description="游戏服务器状态采集与分析")
    parser.add_argument("--config", help="配置文件路径（默认 ANALYTICS_CONFIG_PATH 或 config.yaml）")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("serve", help="启动 API 服务和采集循环")
    subparsers.add_parser("collect", help="执行一次采集")
    subparsers.add_parser("poll", help="定时调用 HTTP 采集接口")

    add = subparsers.add_parser("add-server", help="登记服务器")
    add.add_argument("server_id")
    add.add_argument("host")
    add.add_argument("--port", type=int, default=25565)
    add.add_argument("--name")

    return parser


def cli(argv=None):
    """命令行入口"""
    args = build_parser().parse_args(argv)

    if args.config:
        init_config(args.config)

    setup_logging()

    try:
        if args.command == "collect":
            asyncio.run(collect())
        elif args.command == "poll":
            asyncio.run(poll())
        elif args.command == "add-server":
            add_server(args)
        else:
            asyncio.run(serve())
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")
        sys.exit(0)
    except AnalyticsError as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
