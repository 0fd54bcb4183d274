"""
服务器状态探测

先尝试新版 Java 状态协议，失败后回退到旧版（1.6 及以前）协议。
旧版协议不提供延迟。
使用默认端口登记的服务器会先查询 _minecraft._tcp SRV 记录。
"""

import asyncio
import logging
from typing import Tuple

from mcstatus import JavaServer, LegacyServer

from .exceptions import ProbeError
from .models import StatusReading

logger = logging.getLogger(__name__)

DEFAULT_PORT = 25565


async def resolve_address(host: str, port: int, timeout: float) -> Tuple[str, int]:
    """
    解析实际连接地址

    只有默认端口才查询 SRV 记录（显式端口按原样连接）；
    没有 SRV 记录时 mcstatus 回退到 host:25565。
    """
    if port != DEFAULT_PORT:
        return host, port

    try:
        server = await JavaServer.async_lookup(host, timeout=timeout)
    except Exception as e:
        logger.debug(f"SRV lookup failed for {host}: {e!r}, connecting directly")
        return host, port

    return server.address.host, server.address.port


async def probe_modern(host: str, port: int, timeout: float) -> StatusReading:
    """新版状态协议（带往返延迟）"""
    server = JavaServer(host, port, timeout=timeout)
    status = await asyncio.wait_for(server.async_status(), timeout=timeout)
    return StatusReading(
        player_count=max(status.players.online, 0),
        max_players=max(status.players.max, 0),
        latency=max(int(round(status.latency)), 0),
        version=status.version.name,
    )


async def probe_legacy(host: str, port: int, timeout: float) -> StatusReading:
    """旧版状态协议（无延迟）"""
    server = LegacyServer(host, port, timeout=timeout)
    status = await asyncio.wait_for(server.async_status(), timeout=timeout)
    return StatusReading(
        player_count=max(status.players.online, 0),
        max_players=max(status.players.max, 0),
        latency=None,
        version=status.version.name or "Unknown",
    )


async def probe(host: str, port: int, timeout: float = 5.0) -> StatusReading:
    """
    探测单台服务器

    Args:
        host: 服务器地址
        port: 服务器端口
        timeout: 每种协议各自的超时时间（秒）

    Returns:
        StatusReading

    Raises:
        ProbeError: 两种协议都失败时抛出
    """
    host, port = await resolve_address(host, port, timeout)

    try:
        return await probe_modern(host, port, timeout)
    except Exception as modern_error:
        logger.debug(f"Modern status failed for {host}:{port}: {modern_error!r}, trying legacy")
        try:
            return await probe_legacy(host, port, timeout)
        except asyncio.TimeoutError as e:
            raise ProbeError(f"Timed out after {timeout}s") from e
        except Exception as e:
            raise ProbeError(str(e) or type(e).__name__) from e
