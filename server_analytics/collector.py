"""
采集任务

每次运行探测所有启用的服务器，每台服务器追加一条快照。
同一次运行的所有快照共享运行开始时捕获的同一个 UTC 时间戳。
"""

import asyncio
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .config import get_config
from .database import Database, get_db
from .exceptions import CollectionInProgressError, StoreError
from .models import CollectionOutcome, CollectionReport, ServerInfo, Snapshot, StatusReading
from .prober import probe
from .utils import lock_file, to_utc, utcnow

logger = logging.getLogger(__name__)

Prober = Callable[[str, int, float], Awaitable[StatusReading]]


class SingleFlight:
    """
    防止两次采集同时运行

    非阻塞获取：已有运行时直接拒绝，而不是排队。
    """

    def __init__(self):
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def __enter__(self):
        if not self._lock.acquire(blocking=False):
            raise CollectionInProgressError("A collection run is already in progress")
        return self

    def __exit__(self, exc_type, exc, tb):
        self._lock.release()
        return False


# 全局运行锁
run_guard = SingleFlight()


def collection_lock_path(db: Database) -> Path:
    """跨进程采集锁文件，与数据库文件放在一起"""
    return db.db_path.with_name(db.db_path.name + ".collect.lock")


@contextmanager
def collection_lock(lock_path: Path):
    """
    跨进程采集锁

    同一数据库上的 collect 命令、serve 采集循环和 HTTP 触发共用这把锁，
    已被其他进程持有时直接拒绝。

    Raises:
        CollectionInProgressError: 锁已被持有
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    handle = open(lock_path, "a+b")
    try:
        try:
            lock_file(handle)
        except OSError as e:
            raise CollectionInProgressError(
                f"A collection run is already in progress (lock: {lock_path})"
            ) from e
        yield
    finally:
        handle.close()


def _describe_error(error: Exception, waited: float) -> str:
    if isinstance(error, asyncio.TimeoutError) and not str(error):
        return f"Timed out after {waited}s"
    return str(error) or type(error).__name__


async def collect_single_server(
    db: Database,
    server: ServerInfo,
    run_ts: datetime,
    prober: Prober,
    timeout: float
) -> CollectionOutcome:
    """
    采集单台服务器并写入快照

    探测失败记为离线快照；只有写库失败才记为 error。
    """
    # 外层超时覆盖新旧两种协议各自的尝试
    bound = timeout * 2
    try:
        reading = await asyncio.wait_for(
            prober(server.host, server.port, timeout),
            timeout=bound
        )
        snapshot = Snapshot.from_reading(server.id, run_ts, reading)
        outcome = CollectionOutcome(
            server_id=server.id,
            status="online",
            players=reading.player_count
        )
    except Exception as e:
        message = _describe_error(e, bound)
        logger.warning(f"Server {server.id} ({server.host}:{server.port}) is offline: {message}")
        snapshot = Snapshot.offline(server.id, run_ts)
        outcome = CollectionOutcome(server_id=server.id, status="offline", error=message)

    try:
        db.append_snapshot(snapshot)
    except StoreError as e:
        logger.error(f"Failed to store snapshot for server {server.id}: {e}", exc_info=True)
        return CollectionOutcome(
            server_id=server.id,
            status="error",
            error=f"Failed to store snapshot: {e}"
        )

    return outcome


async def collect_once(
    db: Optional[Database] = None,
    prober: Prober = probe,
    now: Optional[datetime] = None,
    timeout: Optional[float] = None,
    max_concurrency: Optional[int] = None
) -> CollectionReport:
    """
    执行一次采集

    Args:
        db: 数据库实例，不指定则使用全局实例
        prober: 探测函数 (host, port, timeout) -> StatusReading
        now: 本次运行的时间戳，不指定则取当前 UTC 时间
        timeout: 单次探测超时（秒）
        max_concurrency: 并发探测上限

    Returns:
        CollectionReport

    Raises:
        CollectionInProgressError: 已有采集在运行（本进程或其他进程）
        StoreError: 无法读取服务器列表
    """
    config = get_config()
    db = db or get_db()
    timeout = timeout if timeout is not None else config.collector.timeout
    max_concurrency = max_concurrency or config.collector.max_concurrency

    with run_guard, collection_lock(collection_lock_path(db)):
        # 整个运行只取一次时间
        run_ts = to_utc(now) if now is not None else utcnow()
        servers = db.get_active_servers()

        logger.info(f"Collecting {len(servers)} servers at {run_ts.isoformat()}")

        semaphore = asyncio.Semaphore(max_concurrency)

        async def _bounded(server: ServerInfo) -> CollectionOutcome:
            async with semaphore:
                return await collect_single_server(db, server, run_ts, prober, timeout)

        outcomes = await asyncio.gather(*[_bounded(server) for server in servers])

    online = sum(1 for o in outcomes if o.status == "online")
    errors = sum(1 for o in outcomes if o.status == "error")
    logger.info(
        f"Collection finished: {online} online, "
        f"{len(outcomes) - online - errors} offline, {errors} errors"
    )

    return CollectionReport(
        collected=len(outcomes),
        timestamp=run_ts,
        results=list(outcomes)
    )


async def run_collector():
    """
    运行采集循环

    每隔 interval 秒执行一次采集。
    """
    config = get_config()
    interval = config.collector.interval

    logger.info(f"Starting collector loop (interval={interval}s, timeout={config.collector.timeout}s)")

    while True:
        try:
            await collect_once()
        except asyncio.CancelledError:
            logger.info("Collector task cancelled")
            raise
        except CollectionInProgressError:
            logger.warning("Previous collection still running, skipping this tick")
        except Exception as e:
            logger.error(f"Collector loop error: {e}", exc_info=True)

        await asyncio.sleep(interval)
