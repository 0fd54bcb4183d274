"""
数据库操作抽象层

封装所有 SQLite 操作：
- 服务器注册表（只读为主）
- 快照时序表（只追加，不更新、不删除）
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Dict, Any

from .config import get_config
from .exceptions import StoreError
from .models import Snapshot, ServerInfo
from .utils import format_ts, parse_ts

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS servers (
    id TEXT PRIMARY KEY,
    name TEXT,
    host TEXT NOT NULL,
    port INTEGER NOT NULL DEFAULT 25565,
    is_active INTEGER NOT NULL DEFAULT 1,
    display_order INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS server_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    server_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    online INTEGER NOT NULL,
    player_count INTEGER NOT NULL DEFAULT 0,
    max_players INTEGER NOT NULL DEFAULT 0,
    latency INTEGER,
    version TEXT
);

CREATE INDEX IF NOT EXISTS idx_snapshots_server_ts ON server_snapshots(server_id, timestamp);
"""


def _row_to_snapshot(row: sqlite3.Row) -> Snapshot:
    return Snapshot(
        server_id=row["server_id"],
        timestamp=parse_ts(row["timestamp"]),
        online=bool(row["online"]),
        player_count=row["player_count"],
        max_players=row["max_players"],
        latency=row["latency"],
        version=row["version"],
    )


class Database:
    """数据库操作类"""

    def __init__(self, db_path: Optional[str] = None, timeout: Optional[int] = None):
        """
        初始化数据库

        Args:
            db_path: 数据库文件路径，不指定则从配置加载
            timeout: 连接超时（秒），不指定则从配置加载
        """
        config = get_config()
        if db_path is None:
            db_path = config.database.path
        if timeout is None:
            timeout = config.database.timeout

        self.db_path = Path(db_path)
        self.timeout = timeout

        # 确保目录存在
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def get_conn(self):
        """
        获取数据库连接（上下文管理器）

        sqlite3 异常统一转换为 StoreError。

        使用方式：
            with db.get_conn() as conn:
                cursor = conn.execute("SELECT ...")
        """
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self):
        """建表（幂等）。WAL 模式下追加写入与区间读取互不阻塞"""
        with self.get_conn() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA)
        logger.debug(f"Schema ready at {self.db_path}")

    # =========================================================================
    # 服务器注册表
    # =========================================================================

    def get_active_servers(self) -> List[ServerInfo]:
        """获取所有启用的服务器"""
        with self.get_conn() as conn:
            cursor = conn.execute("""
                SELECT id, name, host, port
                FROM servers
                WHERE is_active = 1
                ORDER BY display_order ASC, id ASC
            """)
            return [ServerInfo(**dict(row)) for row in cursor.fetchall()]

    def register_server(
        self,
        server_id: str,
        host: str,
        port: int = 25565,
        name: Optional[str] = None,
        is_active: bool = True,
        display_order: int = 0
    ):
        """登记服务器（仅用于初始化数据，不提供完整 CRUD）"""
        with self.get_conn() as conn:
            conn.execute("""
                INSERT INTO servers (id, name, host, port, is_active, display_order)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (server_id, name or server_id, host, port, 1 if is_active else 0, display_order))

    # =========================================================================
    # 快照操作
    # =========================================================================

    def append_snapshot(self, snapshot: Snapshot) -> int:
        """
        追加一条快照

        Returns:
            新记录 ID
        """
        with self.get_conn() as conn:
            cursor = conn.execute("""
                INSERT INTO server_snapshots (
                    server_id, timestamp, online, player_count, max_players, latency, version
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                snapshot.server_id,
                format_ts(snapshot.timestamp),
                1 if snapshot.online else 0,
                snapshot.player_count,
                snapshot.max_players,
                snapshot.latency,
                snapshot.version,
            ))
            return cursor.lastrowid

    def query_snapshots(
        self,
        server_id: str,
        since: datetime,
        online_only: bool = False
    ) -> List[Snapshot]:
        """
        查询某服务器 since 之后（不含）的快照，按时间升序

        Args:
            server_id: 服务器 ID
            since: 起始时间（开区间）
            online_only: 只返回在线快照（用于构建预测表）
        """
        sql = """
            SELECT server_id, timestamp, online, player_count, max_players, latency, version
            FROM server_snapshots
            WHERE server_id = ? AND timestamp > ?
        """
        if online_only:
            sql += " AND online = 1"
        sql += " ORDER BY timestamp ASC, id ASC"

        with self.get_conn() as conn:
            cursor = conn.execute(sql, (server_id, format_ts(since)))
            return [_row_to_snapshot(row) for row in cursor.fetchall()]

    def get_latest_snapshots(self) -> List[Dict[str, Any]]:
        """
        获取所有启用服务器的最新快照（无快照的服务器字段为 NULL）

        “最新”按时间戳而不是写入顺序，时间戳相同时取后写入的一条。

        Returns:
            [{id, name, online, player_count, max_players, timestamp}, ...]
        """
        with self.get_conn() as conn:
            cursor = conn.execute("""
                SELECT s.id, s.name, ls.online, ls.player_count, ls.max_players, ls.timestamp
                FROM servers s
                LEFT JOIN server_snapshots ls ON ls.id = (
                    SELECT id FROM server_snapshots WHERE server_id = s.id
                    ORDER BY timestamp DESC, id DESC LIMIT 1
                )
                WHERE s.is_active = 1
                ORDER BY s.display_order ASC, s.name ASC
            """)
            return [dict(row) for row in cursor.fetchall()]


# 全局数据库实例（延迟加载）
_db: Optional[Database] = None


def get_db() -> Database:
    """获取全局数据库实例"""
    global _db
    if _db is None:
        _db = Database()
        _db.init_schema()
    return _db


def reset_db():
    """重置数据库实例（主要用于测试）"""
    global _db
    _db = None
