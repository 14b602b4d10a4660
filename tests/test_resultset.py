"""
结果游标代理测试
"""

import sqlite3
from unittest.mock import MagicMock

import pytest

from db_proxy.core.exceptions import InvalidArgumentError
from db_proxy.core.resultset import ResultFilter, ResultSetProxy


class TestResultFilter:
    """ResultFilter测试类"""

    def test_passthrough(self):
        """测试没有规则时不做投影"""
        result_filter = ResultFilter()
        assert result_filter.is_passthrough is True
        assert result_filter.plan((("id", None, None, None, None, None, None),)) is None

    def test_plan(self):
        """测试隐藏列与计算列的投影方案"""
        result_filter = ResultFilter(
            hidden_columns=["Secret"], computed_columns={"upper": lambda row: row["name"].upper()}
        )
        description = (
            ("id", None, None, None, None, None, None),
            ("secret", None, None, None, None, None, None),
            ("name", None, None, None, None, None, None),
        )

        plan = result_filter.plan(description)

        assert plan.kept == (0, 2)
        assert [column[0] for column in plan.description] == ["id", "name", "upper"]
        assert result_filter.project((1, "s", "alice"), plan) == (1, "alice", "ALICE")
        assert result_filter.project(None, plan) is None

    def test_project_mapping_row(self):
        """测试映射行（如 DictCursor 的行）按列名过滤并返回字典"""
        result_filter = ResultFilter(
            hidden_columns=["TOKEN"], computed_columns={"has_token": lambda row: bool(row["token"])}
        )
        description = (
            ("id", None, None, None, None, None, None),
            ("token", None, None, None, None, None, None),
        )
        plan = result_filter.plan(description)
        row = {"id": 1, "token": "t1"}

        assert result_filter.project(row, plan) == {"id": 1, "has_token": True}
        assert row == {"id": 1, "token": "t1"}

    def test_invalid_rules(self):
        """测试无效规则"""
        with pytest.raises(InvalidArgumentError):
            ResultFilter(hidden_columns=[""])
        with pytest.raises(InvalidArgumentError):
            ResultFilter(computed_columns={"x": "not callable"})


class TestResultSetProxy:
    """ResultSetProxy测试类"""

    def setup_method(self):
        """测试方法 setup"""
        self.connection = sqlite3.connect(":memory:")
        self.connection.execute("CREATE TABLE accounts (id INTEGER, email TEXT, token TEXT)")
        self.connection.executemany(
            "INSERT INTO accounts VALUES (?, ?, ?)",
            [(1, "alice@example.com", "t1"), (2, "bob@example.com", "t2")],
        )
        self.raw_cursor = self.connection.cursor()
        self.result_filter = ResultFilter(
            hidden_columns=["token"],
            computed_columns={"has_token": lambda row: row["token"] is not None},
        )
        self.results = ResultSetProxy(self.raw_cursor, self.result_filter)

    def teardown_method(self):
        """测试方法 teardown"""
        self.connection.close()

    def test_fetch(self):
        """测试取数时应用过滤规则"""
        self.raw_cursor.execute("SELECT * FROM accounts ORDER BY id")

        assert [column[0] for column in self.results.description] == ["id", "email", "has_token"]
        assert self.results.fetchone() == (1, "alice@example.com", True)
        assert self.results.fetchall() == [(2, "bob@example.com", True)]

    def test_exhausted_returns_none(self):
        """测试没有更多行时 fetchone 返回 None"""
        self.raw_cursor.execute("SELECT * FROM accounts WHERE id = 1")

        assert self.results.fetchone() is not None
        assert self.results.fetchone() is None
        assert self.results.fetchall() == []

    def test_iteration(self):
        """测试遍历结果"""
        self.raw_cursor.execute("SELECT id, token FROM accounts ORDER BY id")
        assert list(self.results) == [(1, True), (2, True)]

    def test_new_query_new_plan(self):
        """测试同一游标执行新查询后重新计算投影"""
        self.raw_cursor.execute("SELECT id, token FROM accounts ORDER BY id")
        assert self.results.fetchone() == (1, True)

        self.raw_cursor.execute("SELECT email, token, id FROM accounts ORDER BY id")
        assert self.results.fetchone() == ("alice@example.com", 1, True)

    def test_no_description(self):
        """测试没有结果集时 description 为 None"""
        self.raw_cursor.execute("UPDATE accounts SET token = NULL")
        assert self.results.description is None
        assert self.results.rowcount == 2

    def test_forwarding(self):
        """测试定位相关属性原样转发"""
        self.raw_cursor.arraysize = 1
        self.raw_cursor.execute("SELECT * FROM accounts ORDER BY id")

        assert self.results.arraysize == 1
        assert self.results.fetchmany() == [(1, "alice@example.com", True)]
        assert isinstance(self.results, sqlite3.Cursor)

    def test_dict_cursor_rows(self):
        """测试返回字典行的游标同样隐藏列并追加计算列"""
        dict_cursor = MagicMock()
        dict_cursor.description = (
            ("id", None, None, None, None, None, None),
            ("email", None, None, None, None, None, None),
            ("token", None, None, None, None, None, None),
        )
        dict_cursor.fetchone.return_value = {"id": 1, "email": "a@example.com", "token": "t1"}
        dict_cursor.fetchall.return_value = [{"id": 2, "email": "b@example.com", "token": None}]
        results = ResultSetProxy(dict_cursor, self.result_filter)

        assert results.fetchone() == {"id": 1, "email": "a@example.com", "has_token": True}
        assert results.fetchall() == [{"id": 2, "email": "b@example.com", "has_token": False}]

    def test_wrap(self):
        """测试包装空游标"""
        assert ResultSetProxy.wrap(None) is None
        assert ResultSetProxy.wrap(self.raw_cursor).result_filter.is_passthrough
        with pytest.raises(InvalidArgumentError):
            ResultSetProxy(None)


if __name__ == "__main__":
    pytest.main()
