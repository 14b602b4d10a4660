"""
经由代理访问 SQLite 的端到端测试
"""

import os
import shutil
import sqlite3
import tempfile

import pytest

import db_proxy
from db_proxy import (
    CommentTagRewriter,
    ConnectionProxy,
    CursorProxy,
    DriverRegistry,
    NoDriverFoundError,
    ProxyConfig,
    ResultFilter,
    SQLAlchemyDriver,
)


class TestProxySqlite:
    """代理端到端测试类"""

    def setup_method(self):
        """测试方法 setup"""
        self.test_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.test_dir, "app.db")
        self.address = f"proxy:sqlite:///{self.db_path}"

        connection = sqlite3.connect(self.db_path)
        connection.execute(
            "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, password_hash TEXT)"
        )
        connection.executemany(
            "INSERT INTO users (name, password_hash) VALUES (?, ?)",
            [("alice", "h1"), ("bob", "h2")],
        )
        connection.commit()
        connection.close()

    def teardown_method(self):
        """测试方法 teardown"""
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_query_through_proxy(self):
        """测试经由代理查询，SQL带标记且隐藏列不可见"""
        connection = db_proxy.connect(
            self.address,
            registry=DriverRegistry([SQLAlchemyDriver()]),
            config=ProxyConfig(
                rewriter="comment_tag", comment_tag="app=test", hidden_columns=["password_hash"]
            ),
        )
        try:
            assert isinstance(connection, ConnectionProxy)

            cursor = connection.cursor()
            cursor.execute("SELECT * FROM users ORDER BY id")

            assert cursor.last_sql.rewritten == "SELECT * FROM users ORDER BY id /* app=test */"
            assert [column[0] for column in cursor.description] == ["id", "name"]
            assert cursor.fetchall() == [(1, "alice"), (2, "bob")]
        finally:
            connection.close()
            connection.close()

        assert connection.closed is True

    def test_prepared_statement(self):
        """测试预处理语句多次执行"""
        connection = db_proxy.connect(self.address, rewriter=CommentTagRewriter("stmt"))
        try:
            statement = connection.prepare("SELECT name FROM users WHERE id = ?")
            assert statement.sql.rewritten == "SELECT name FROM users WHERE id = ? /* stmt */"

            statement.execute((1,))
            assert statement.fetchone() == ("alice",)
            statement.execute((2,))
            assert statement.fetchone() == ("bob",)
        finally:
            connection.close()

    def test_write_and_commit(self):
        """测试写入并提交，事务操作原样转发"""
        connection = db_proxy.connect(self.address)
        try:
            with connection.cursor() as cursor:
                cursor.executemany(
                    "INSERT INTO users (name, password_hash) VALUES (?, ?)", [("carol", "h3")]
                )
            connection.commit()
        finally:
            connection.close()

        check = sqlite3.connect(self.db_path)
        try:
            assert check.execute("SELECT COUNT(*) FROM users").fetchone() == (3,)
        finally:
            check.close()

    def test_custom_result_filter(self):
        """测试自定义计算列"""
        connection = db_proxy.connect(
            self.address,
            result_filter=ResultFilter(
                hidden_columns=["password_hash"],
                computed_columns={"greeting": lambda row: f"hi {row['name']}"},
            ),
        )
        try:
            cursor = connection.cursor()
            cursor.execute("SELECT * FROM users WHERE id = 1")
            assert cursor.fetchone() == (1, "alice", "hi alice")
        finally:
            connection.close()

    def test_connection_is_native_instance(self):
        """测试代理连接对 sqlite3.Connection 的 isinstance 判断成立"""
        connection = db_proxy.connect(self.address)
        try:
            assert isinstance(connection, ConnectionProxy)
            assert isinstance(connection, sqlite3.Connection)
            assert type(connection.__wrapped__) is sqlite3.Connection
        finally:
            connection.close()

    def test_connection_execute_shortcut(self):
        """测试连接级 execute() 同样改写SQL并过滤结果"""
        connection = db_proxy.connect(
            self.address,
            rewriter=CommentTagRewriter("app=x"),
            result_filter=ResultFilter(hidden_columns=["password_hash"]),
        )
        executed = []
        connection.__wrapped__.set_trace_callback(executed.append)
        try:
            cursor = connection.execute("SELECT * FROM users ORDER BY id")

            assert isinstance(cursor, CursorProxy)
            assert not isinstance(cursor.__wrapped__, CursorProxy)
            assert executed == ["SELECT * FROM users ORDER BY id /* app=x */"]
            assert [column[0] for column in cursor.description] == ["id", "name"]
            assert cursor.fetchall() == [(1, "alice"), (2, "bob")]

            row = connection.execute("SELECT 1 AS a, 2 AS password_hash").fetchone()
            assert row == (1,)
        finally:
            connection.close()

    def test_connection_execute_shortcut_with_parameters(self):
        """测试连接级 execute() 传递参数"""
        connection = db_proxy.connect(self.address, rewriter=CommentTagRewriter("app=x"))
        try:
            cursor = connection.execute("SELECT name FROM users WHERE id = ?", (2,))
            assert cursor.last_sql.rewritten == "SELECT name FROM users WHERE id = ? /* app=x */"
            assert cursor.fetchone() == ("bob",)
        finally:
            connection.close()

    def test_connection_executemany_and_executescript(self):
        """测试连接级 executemany() 与 executescript() 经由游标代理执行"""
        connection = db_proxy.connect(self.address, rewriter=CommentTagRewriter("app=x"))
        executed = []
        connection.__wrapped__.set_trace_callback(executed.append)
        try:
            cursor = connection.executemany(
                "INSERT INTO users (name, password_hash) VALUES (?, ?)",
                [("carol", "h3"), ("dave", "h4")],
            )
            assert isinstance(cursor, CursorProxy)
            assert cursor.last_sql.rewritten.endswith("/* app=x */")

            cursor = connection.executescript(
                "UPDATE users SET name = upper(name) WHERE id = 3;"
            )
            assert isinstance(cursor, CursorProxy)
            assert cursor.last_sql.rewritten == (
                "UPDATE users SET name = upper(name) WHERE id = 3 /* app=x */;"
            )
        finally:
            connection.close()

        inserts = [sql for sql in executed if sql.startswith("INSERT")]
        assert inserts
        assert all(sql.endswith("/* app=x */") for sql in inserts)

        check = sqlite3.connect(self.db_path)
        try:
            rows = check.execute("SELECT name FROM users WHERE id >= 3 ORDER BY id").fetchall()
            assert rows == [("CAROL",), ("dave",)]
        finally:
            check.close()

    def test_sql_error_is_native(self):
        """测试SQL错误以 sqlite3 原生异常抛出"""
        connection = db_proxy.connect(self.address)
        try:
            cursor = connection.cursor()
            with pytest.raises(sqlite3.OperationalError):
                cursor.execute("SELECT * FROM missing_table")
        finally:
            connection.close()

    def test_address_without_prefix(self):
        """测试不带代理前缀的地址"""
        with pytest.raises(NoDriverFoundError):
            db_proxy.connect(f"sqlite:///{self.db_path}")

    def test_no_delegate(self):
        """测试没有委托驱动接受真实地址"""
        with pytest.raises(NoDriverFoundError):
            db_proxy.connect(self.address, registry=DriverRegistry())


if __name__ == "__main__":
    pytest.main()
