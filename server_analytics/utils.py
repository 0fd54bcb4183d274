"""
工具函数模块

时间统一使用 UTC：存储、分桶、星期/小时键全部基于 UTC，避免夏令时歧义。
"""

import math
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import BinaryIO, Union

TS_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utcnow() -> datetime:
    """当前 UTC 时间（带时区，秒精度）"""
    return datetime.now(timezone.utc).replace(microsecond=0)


def to_utc(dt: datetime) -> datetime:
    """naive 时间视为 UTC，aware 时间转换到 UTC"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_ts(dt: datetime) -> str:
    """格式化为存储用的 ISO 8601 字符串（字典序即时间序）"""
    return to_utc(dt).strftime(TS_FORMAT)


def parse_ts(value: Union[str, datetime]) -> datetime:
    """解析存储的时间戳，兼容带 Z 后缀和带偏移量的格式"""
    if isinstance(value, datetime):
        return to_utc(value)
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(value))


def floor_hour(dt: datetime) -> datetime:
    """截断到整点"""
    return to_utc(dt).replace(minute=0, second=0, microsecond=0)


def day_of_week(dt: datetime) -> int:
    """星期几：0=周日 ... 6=周六"""
    return (to_utc(dt).weekday() + 1) % 7


def hour_of_day(dt: datetime) -> int:
    return to_utc(dt).hour


def round_half_up(value: float, digits: int = 1) -> float:
    """
    四舍五入（half-up），避免 Python round() 的银行家舍入

    Args:
        value: 原始值
        digits: 保留小数位数
    """
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def ceil_int(value: float) -> int:
    return int(math.ceil(value))


def hours(n: int) -> timedelta:
    return timedelta(hours=n)


def lock_file(handle: BinaryIO):
    """
    对已打开的文件加非阻塞排他锁（跨进程）

    锁随文件句柄关闭而释放。

    Raises:
        OSError: 锁已被其他句柄持有
    """
    if os.name == "nt":
        import msvcrt  # type: ignore

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
    else:
        import fcntl  # type: ignore

        fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
