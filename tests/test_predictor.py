"""
单元测试：人数预测

测试覆盖：
- （星期, 小时）查找表构建
- 预测窗口长度（80% 过去 + 20% 未来，两端都包含）
- 无历史数据时全部为 0
- 30 天整体统计
"""

from datetime import timedelta

import pytest

from server_analytics.predictor import (
    build_prediction_table, calculate_overall_stats, get_prediction,
    prediction_window, project_predictions, slot_key
)
from server_analytics.utils import day_of_week, parse_ts

# 2023-01-31 是周二
NOW = parse_ts("2023-01-31T12:00:00Z")


class TestSlotKey:
    """星期 / 小时键"""

    def test_sunday_is_zero(self):
        assert day_of_week(parse_ts("2023-01-01T00:00:00Z")) == 0  # 周日
        assert day_of_week(parse_ts("2023-01-02T00:00:00Z")) == 1  # 周一
        assert day_of_week(parse_ts("2023-01-07T23:59:59Z")) == 6  # 周六

    def test_key_format(self):
        assert slot_key(parse_ts("2023-01-02T14:30:00Z")) == "1-14"
        assert slot_key(parse_ts("2023-01-07T00:00:00Z")) == "6-0"


class TestPredictionTable:
    """查找表构建"""

    def test_average_per_slot(self, make_snapshot):
        snapshots = [
            make_snapshot("s1", "2023-01-02T14:00:00Z", players=10),
            make_snapshot("s1", "2023-01-09T14:30:00Z", players=5),
            make_snapshot("s1", "2023-01-09T15:00:00Z", players=3),
        ]

        table = build_prediction_table(snapshots)

        assert table == {"1-14": 7.5, "1-15": 3.0}

    def test_offline_excluded(self, make_snapshot):
        snapshots = [
            make_snapshot("s1", "2023-01-02T14:00:00Z", players=10),
            make_snapshot("s1", "2023-01-02T14:05:00Z", online=False),
        ]

        assert build_prediction_table(snapshots) == {"1-14": 10.0}

    def test_one_decimal_half_up(self, make_snapshot):
        snapshots = [
            make_snapshot("s1", "2023-01-02T14:00:00Z", players=1),
            make_snapshot("s1", "2023-01-02T14:05:00Z", players=1),
            make_snapshot("s1", "2023-01-02T14:10:00Z", players=1),
            make_snapshot("s1", "2023-01-02T14:15:00Z", players=2),
        ]

        # 1.25 -> 1.3
        assert build_prediction_table(snapshots) == {"1-14": 1.3}

    def test_deterministic(self, make_snapshot):
        """测试：相同输入得到完全相同的表（与输入顺序无关）"""
        snapshots = [
            make_snapshot("s1", NOW - timedelta(hours=h, minutes=5 * m), players=(h * 7 + m) % 13)
            for h in range(0, 200, 3)
            for m in range(3)
        ]

        first = build_prediction_table(snapshots)
        second = build_prediction_table(list(reversed(snapshots)))

        assert first == second
        assert list(first) == list(second)


class TestPredictionWindow:
    """预测窗口"""

    @pytest.mark.parametrize("range_value, past, future", [
        ("24h", 19, 5),
        ("7d", 134, 34),
        ("30d", 576, 144),
        ("90d", 1728, 432),
        ("unknown", 19, 5),
    ])
    def test_window_hours(self, range_value, past, future):
        start, end = prediction_window(range_value, NOW)

        assert start == NOW - timedelta(hours=past)
        assert end == NOW + timedelta(hours=future)

    def test_seven_day_point_count(self):
        """测试：7d -> 134 + 34 + 1 个小时点"""
        start, end = prediction_window("7d", NOW)
        points = project_predictions({}, start, end)

        assert len(points) == 134 + 34 + 1
        assert points[0].timestamp == NOW - timedelta(hours=134)
        assert points[-1].timestamp == NOW + timedelta(hours=34)
        assert all(
            b.timestamp - a.timestamp == timedelta(hours=1)
            for a, b in zip(points, points[1:])
        )

    def test_ceil_table_values(self):
        start = parse_ts("2023-01-02T14:00:00Z")
        points = project_predictions({"1-14": 2.1, "1-15": 3.0}, start, start + timedelta(hours=2))

        assert [p.predicted_players for p in points] == [3, 3, 0]


class TestOverallStats:

    def test_empty(self):
        stats = calculate_overall_stats([], {})

        assert stats.overall_avg == 0
        assert stats.peak_players == 0
        assert stats.data_points == 0
        assert stats.reliable is False

    def test_reliable_threshold(self, make_snapshot):
        snapshots = [
            make_snapshot("s1", parse_ts("2023-01-02T00:00:00Z") + timedelta(hours=h), players=h)
            for h in range(12)
        ]
        table = build_prediction_table(snapshots)

        stats = calculate_overall_stats(snapshots, table, min_data_points=12)

        assert stats.data_points == 12
        assert stats.reliable is True
        assert stats.peak_players == 11
        assert stats.overall_avg == 5.5


class TestGetPrediction:
    """完整预测流程（使用数据库）"""

    def test_no_history(self, db):
        """测试：没有历史数据时全部预测为 0，不报错"""
        result = get_prediction("nobody", "24h", db=db, now=NOW)

        assert len(result.predictions) == 25
        assert all(p.predicted_players == 0 for p in result.predictions)
        assert result.stats.overall_avg == 0
        assert result.stats.peak_players == 0
        assert result.stats.data_points == 0

    def test_monday_afternoon(self, db, make_snapshot):
        """测试：4 个周一 14:00 都是 10 人 -> (1,14) = 10.0，窗口内所有周一 14:00 预测为 10"""
        for day in (9, 16, 23, 30):
            db.append_snapshot(make_snapshot("s1", f"2023-01-{day:02d}T14:00:00Z", players=10))
            db.append_snapshot(make_snapshot("s1", f"2023-01-{day:02d}T14:30:00Z", online=False))

        result = get_prediction("s1", "90d", db=db, now=NOW)

        mondays = [p for p in result.predictions if slot_key(p.timestamp) == "1-14"]
        others = [p for p in result.predictions if slot_key(p.timestamp) != "1-14"]
        future_mondays = [p for p in mondays if p.timestamp > NOW]

        assert future_mondays
        assert all(p.predicted_players == 10 for p in mondays)
        assert all(p.predicted_players == 0 for p in others)
        assert result.stats.overall_avg == 10.0
        assert result.stats.peak_players == 10
        assert result.stats.data_points == 1
        assert result.stats.reliable is False

    def test_history_limited_to_thirty_days(self, db, make_snapshot):
        """测试：查找表只使用最近 30 天，与请求范围无关"""
        db.append_snapshot(make_snapshot("s1", NOW - timedelta(days=31), players=50))
        db.append_snapshot(make_snapshot("s1", NOW - timedelta(days=2), players=4))

        result = get_prediction("s1", "90d", db=db, now=NOW)

        assert result.stats.peak_players == 4
        assert result.stats.data_points == 1
        assert max(p.predicted_players for p in result.predictions) == 4
