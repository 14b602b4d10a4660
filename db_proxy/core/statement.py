"""
语句代理模块

每个语句代理独占一个委托游标：
- CursorProxy: 普通游标，SQL在 execute()/executemany()/executescript()/callproc()
  时传入，每段传入的SQL只改写一次
- PreparedStatementProxy: 预处理语句，SQL在创建时已由连接代理改写，
  执行时原样发送，不会二次改写
- CallableStatementProxy: 存储过程调用，过程名在创建时已改写

执行过程中委托游标抛出的异常原样传播。启用结果包装时，
description 与取数操作经由 ResultSetProxy 返回。
"""

from typing import Any, List, Optional, Sequence

import wrapt

from ..utils.logging_utils import get_logger
from ..utils.text_utils import preview_sql
from .exceptions import InvalidArgumentError
from .resultset import ResultFilter, ResultSetProxy
from .rewriter import RewriteResult, SqlRewriter, StatementKind

logger = get_logger(__name__)


class _StatementProxy(wrapt.ObjectProxy):
    """语句代理公共部分：结果视图、幂等关闭和上下文管理"""

    kind = StatementKind.PLAIN

    def __init__(self, cursor: Any, result_filter: Optional[ResultFilter] = None) -> None:
        if cursor is None:
            raise InvalidArgumentError("委托游标不能为空", argument_name="cursor")
        super().__init__(cursor)
        self._self_results = (
            ResultSetProxy(cursor, result_filter) if result_filter is not None else None
        )
        self._self_closed = False

    def _result_view(self) -> Any:
        if self._self_results is None:
            return self.__wrapped__
        return self._self_results

    def _forward(self, result: Any) -> Any:
        # 部分驱动（如sqlite3）的 execute 返回游标本身，此时返回代理以免泄露原始游标
        if result is self.__wrapped__:
            return self
        return result

    @property
    def results(self) -> Any:
        """当前结果视图：启用包装时为 ResultSetProxy，否则为委托游标"""
        return self._result_view()

    @property
    def description(self) -> Any:
        return self._result_view().description

    def fetchone(self) -> Any:
        return self._result_view().fetchone()

    def fetchmany(self, size: Optional[int] = None) -> List[Any]:
        if size is None:
            return self._result_view().fetchmany()
        return self._result_view().fetchmany(size)

    def fetchall(self) -> List[Any]:
        return self._result_view().fetchall()

    def __iter__(self) -> "_StatementProxy":
        return self

    def __next__(self) -> Any:
        row = self.fetchone()
        if row is None:
            raise StopIteration
        return row

    @property
    def closed(self) -> bool:
        return self._self_closed

    def close(self) -> None:
        """关闭委托游标，重复调用不会再次关闭"""
        if self._self_closed:
            return
        self.__wrapped__.close()
        self._self_closed = True

    def __enter__(self) -> "_StatementProxy":
        return self

    def __exit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> None:
        self.close()


class CursorProxy(_StatementProxy):
    """
    普通游标代理

    PEP 249 游标本身不绑定SQL：每次 execute()/executemany()/executescript()/
    callproc() 传入的SQL各自改写一次后发送，游标没有创建时固定的语句。
    需要固定语句时使用 ConnectionProxy.prepare()。

    Attributes:
        last_sql (Optional[RewriteResult]): 仅用于诊断，记录最近一次执行的原始与
            改写后SQL，每次执行都会被覆盖；它不是游标的固定语句，修改它也不会
            影响任何执行

    Example:
        >>> cursor = connection.cursor()
        >>> cursor.execute("SELECT a FROM t WHERE id = ?", (1,))
        >>> cursor.last_sql.rewritten
        'SELECT a FROM t WHERE id = ? /* app=billing */'
    """

    kind = StatementKind.PLAIN

    def __init__(
        self,
        cursor: Any,
        rewriter: Optional[SqlRewriter] = None,
        result_filter: Optional[ResultFilter] = None,
    ) -> None:
        super().__init__(cursor, result_filter)
        self._self_rewriter = rewriter
        self._self_last_sql: Optional[RewriteResult] = None

    @property
    def last_sql(self) -> Optional[RewriteResult]:
        return self._self_last_sql

    def _rewrite(self, sql: str, kind: StatementKind) -> RewriteResult:
        if self._self_rewriter is None:
            statement = RewriteResult(sql, sql, kind)
        else:
            statement = self._self_rewriter.apply(sql, kind)
        self._self_last_sql = statement
        return statement

    def execute(self, sql: str, parameters: Any = None) -> Any:
        statement = self._rewrite(sql, StatementKind.PLAIN)
        logger.debug(f"执行SQL: {preview_sql(statement.rewritten)}")
        if parameters is None:
            return self._forward(self.__wrapped__.execute(statement.rewritten))
        return self._forward(self.__wrapped__.execute(statement.rewritten, parameters))

    def executemany(self, sql: str, seq_of_parameters: Sequence[Any]) -> Any:
        statement = self._rewrite(sql, StatementKind.PLAIN)
        logger.debug(f"批量执行SQL: {preview_sql(statement.rewritten)}")
        return self._forward(
            self.__wrapped__.executemany(statement.rewritten, seq_of_parameters)
        )

    def executescript(self, sql_script: str) -> Any:
        """执行SQL脚本（sqlite3 扩展），整段脚本改写一次"""
        execute_script = self.__wrapped__.executescript
        statement = self._rewrite(sql_script, StatementKind.PLAIN)
        logger.debug(f"执行SQL脚本: {preview_sql(statement.rewritten)}")
        return self._forward(execute_script(statement.rewritten))

    def callproc(self, procname: str, parameters: Any = None) -> Any:
        statement = self._rewrite(procname, StatementKind.CALLABLE)
        logger.debug(f"调用存储过程: {preview_sql(statement.rewritten)}")
        if parameters is None:
            return self._forward(self.__wrapped__.callproc(statement.rewritten))
        return self._forward(self.__wrapped__.callproc(statement.rewritten, parameters))


class PreparedStatementProxy(_StatementProxy):
    """
    预处理语句代理

    SQL在创建时固定，之后每次执行都把同一段已改写的SQL交给委托游标。

    Example:
        >>> statement = connection.prepare("SELECT a FROM t WHERE id = ?")
        >>> statement.execute((1,))
        >>> statement.fetchall()
    """

    kind = StatementKind.PREPARED

    def __init__(
        self,
        cursor: Any,
        statement: RewriteResult,
        result_filter: Optional[ResultFilter] = None,
    ) -> None:
        if statement is None:
            raise InvalidArgumentError("语句SQL不能为空", argument_name="statement")
        super().__init__(cursor, result_filter)
        self._self_statement = statement

    @property
    def sql(self) -> RewriteResult:
        return self._self_statement

    def execute(self, parameters: Any = None) -> Any:
        if parameters is None:
            return self._forward(self.__wrapped__.execute(self._self_statement.rewritten))
        return self._forward(
            self.__wrapped__.execute(self._self_statement.rewritten, parameters)
        )

    def executemany(self, seq_of_parameters: Sequence[Any]) -> Any:
        return self._forward(
            self.__wrapped__.executemany(self._self_statement.rewritten, seq_of_parameters)
        )


class CallableStatementProxy(_StatementProxy):
    """存储过程调用代理，过程名在创建时固定"""

    kind = StatementKind.CALLABLE

    def __init__(
        self,
        cursor: Any,
        statement: RewriteResult,
        result_filter: Optional[ResultFilter] = None,
    ) -> None:
        if statement is None:
            raise InvalidArgumentError("过程名不能为空", argument_name="statement")
        super().__init__(cursor, result_filter)
        self._self_statement = statement

    @property
    def sql(self) -> RewriteResult:
        return self._self_statement

    def call(self, parameters: Any = None) -> Any:
        """调用存储过程，返回值与委托游标的 callproc() 相同"""
        if parameters is None:
            return self._forward(self.__wrapped__.callproc(self._self_statement.rewritten))
        return self._forward(
            self.__wrapped__.callproc(self._self_statement.rewritten, parameters)
        )

    execute = call
