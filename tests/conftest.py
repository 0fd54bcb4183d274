"""
公共测试夹具

- 每个测试使用独立配置（不读取工作目录下的 config.yaml）
- 临时 SQLite 数据库
- 快照构造工厂
"""

from datetime import datetime

import pytest

from server_analytics.config import reset_config
from server_analytics.database import Database, reset_db
from server_analytics.models import Snapshot
from server_analytics.utils import parse_ts


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """隔离全局配置和数据库单例"""
    monkeypatch.setenv("ANALYTICS_CONFIG_PATH", str(tmp_path / "missing-config.yaml"))
    for var in ("ANALYTICS_CRON_SECRET", "ANALYTICS_DATABASE_PATH", "ANALYTICS_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    reset_config()
    reset_db()
    yield
    reset_config()
    reset_db()


@pytest.fixture
def db(tmp_path) -> Database:
    """创建临时测试数据库"""
    database = Database(str(tmp_path / "test_analytics.db"))
    database.init_schema()
    return database


@pytest.fixture
def make_snapshot():
    """快照工厂：make_snapshot("s1", "2023-01-01T10:05:00Z", players=3)"""

    def _make(
        server_id: str,
        ts,
        online: bool = True,
        players: int = 0,
        max_players: int = 20,
        latency=None,
        version="1.20.4"
    ) -> Snapshot:
        timestamp = ts if isinstance(ts, datetime) else parse_ts(ts)
        if not online:
            return Snapshot.offline(server_id, timestamp)
        return Snapshot(
            server_id=server_id,
            timestamp=timestamp,
            online=True,
            player_count=players,
            max_players=max_players,
            latency=latency,
            version=version,
        )

    return _make
