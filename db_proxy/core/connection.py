"""
连接代理模块

ConnectionProxy 独占一个委托连接，除语句创建和关闭之外的所有操作
（commit、rollback、驱动扩展属性等）都原样转发给委托连接，
返回值和异常保持不变。对委托连接类的 isinstance 判断依然成立。

语句创建入口：
- cursor(): 返回 CursorProxy，SQL在执行时传入并改写
- execute()/executemany()/executescript(): 驱动提供的连接级快捷方法，
  经由 cursor() 执行，返回 CursorProxy
- prepare(sql): 先改写SQL再创建委托游标，返回 PreparedStatementProxy
- prepare_call(procname): 先改写过程名再创建委托游标，返回 CallableStatementProxy

close() 是幂等的：只有第一次调用会关闭委托连接。
"""

from typing import Any, Optional

import wrapt

from ..utils.logging_utils import get_logger
from ..utils.text_utils import mask_address
from .exceptions import InvalidArgumentError
from .resultset import ResultFilter
from .rewriter import RewriteResult, SqlRewriter, StatementKind
from .statement import CallableStatementProxy, CursorProxy, PreparedStatementProxy

logger = get_logger(__name__)


class ConnectionProxy(wrapt.ObjectProxy):
    """
    委托连接的透明代理

    Attributes:
        rewriter (Optional[SqlRewriter]): SQL改写器，None表示不改写
        result_filter (Optional[ResultFilter]): 结果过滤规则，None表示不包装结果游标
        address (Optional[str]): 委托驱动使用的真实地址（掩码后）
        delegate (Any): 建立该连接的委托驱动

    Example:
        >>> proxy = ConnectionProxy(raw_connection, rewriter=CommentTagRewriter("app=x"))
        >>> statement = proxy.prepare("SELECT a FROM t")
        >>> statement.execute()
        >>> proxy.close()
        >>> proxy.close()  # 不会再次关闭委托连接
    """

    def __init__(
        self,
        connection: Any,
        rewriter: Optional[SqlRewriter] = None,
        result_filter: Optional[ResultFilter] = None,
        address: Optional[str] = None,
        delegate: Any = None,
    ) -> None:
        if connection is None:
            raise InvalidArgumentError("委托连接不能为空", argument_name="connection")
        super().__init__(connection)
        self._self_rewriter = rewriter
        self._self_result_filter = result_filter
        self._self_address = mask_address(address) if address is not None else None
        self._self_delegate = delegate
        self._self_closed = False

    @classmethod
    def wrap(cls, connection: Any, **kwargs: Any) -> Optional["ConnectionProxy"]:
        """
        包装委托连接；连接为 None 时返回 None 而不是抛出异常

        Args:
            connection: 委托连接
            **kwargs: 传给构造函数的其余参数

        Returns:
            Optional[ConnectionProxy]: 连接代理，或 None
        """
        if connection is None:
            return None
        return cls(connection, **kwargs)

    @property
    def rewriter(self) -> Optional[SqlRewriter]:
        return self._self_rewriter

    @property
    def result_filter(self) -> Optional[ResultFilter]:
        return self._self_result_filter

    @property
    def address(self) -> Optional[str]:
        return self._self_address

    @property
    def delegate(self) -> Any:
        return self._self_delegate

    @property
    def closed(self) -> bool:
        return self._self_closed

    def _rewrite(self, sql: str, kind: StatementKind) -> RewriteResult:
        if self._self_rewriter is None:
            return RewriteResult(sql, sql, kind)
        return self._self_rewriter.apply(sql, kind)

    def cursor(self, *args: Any, **kwargs: Any) -> CursorProxy:
        """创建普通游标代理，参数原样传给委托连接的 cursor()"""
        return CursorProxy(
            self.__wrapped__.cursor(*args, **kwargs),
            rewriter=self._self_rewriter,
            result_filter=self._self_result_filter,
        )

    def prepare(self, sql: str) -> PreparedStatementProxy:
        """
        创建预处理语句

        SQL在委托游标创建之前改写，改写失败（fail-closed）时不会留下游标。

        Args:
            sql: 原始SQL

        Returns:
            PreparedStatementProxy: 携带原始与改写后SQL的语句代理

        Raises:
            RewriteError: 改写器为 fail-closed 且改写失败时
        """
        statement = self._rewrite(sql, StatementKind.PREPARED)
        cursor = self.__wrapped__.cursor()
        return PreparedStatementProxy(
            cursor, statement, result_filter=self._self_result_filter
        )

    def prepare_call(self, procname: str) -> CallableStatementProxy:
        """创建存储过程调用语句，过程名按 callable 类型改写"""
        statement = self._rewrite(procname, StatementKind.CALLABLE)
        cursor = self.__wrapped__.cursor()
        return CallableStatementProxy(
            cursor, statement, result_filter=self._self_result_filter
        )

    def _require(self, name: str) -> None:
        # 委托连接没有该快捷方法时，抛出与直接调用一致的 AttributeError
        if getattr(self.__wrapped__, name, None) is None:
            raise AttributeError(
                f"{type(self.__wrapped__).__name__!r} object has no attribute {name!r}"
            )

    def execute(self, sql: str, parameters: Any = None) -> CursorProxy:
        """
        连接级执行快捷方法（如 sqlite3 的 Connection.execute）

        经由 cursor() 创建的游标代理执行，SQL同样改写、结果同样过滤，
        返回游标代理而不是原始游标。
        """
        self._require("execute")
        cursor = self.cursor()
        cursor.execute(sql, parameters)
        return cursor

    def executemany(self, sql: str, seq_of_parameters: Any) -> CursorProxy:
        """连接级批量执行快捷方法，SQL只改写一次"""
        self._require("executemany")
        cursor = self.cursor()
        cursor.executemany(sql, seq_of_parameters)
        return cursor

    def executescript(self, sql_script: str) -> CursorProxy:
        """连接级脚本执行快捷方法，整段脚本作为一段SQL改写一次"""
        self._require("executescript")
        cursor = self.cursor()
        cursor.executescript(sql_script)
        return cursor

    def close(self) -> None:
        """
        关闭委托连接

        第一次调用关闭委托连接并记录状态，之后的调用直接返回，
        既不再调用委托连接也不抛出异常。委托连接关闭失败时异常原样传播，
        连接仍视为未关闭。
        """
        if self._self_closed:
            logger.debug("连接已关闭，忽略重复关闭")
            return
        self.__wrapped__.close()
        self._self_closed = True
        logger.debug(f"连接已关闭: {self._self_address}")

    def __enter__(self) -> "ConnectionProxy":
        enter = getattr(self.__wrapped__, "__enter__", None)
        if enter is not None:
            enter()
        return self

    def __exit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> Any:
        # 事务语义（提交/回滚/关闭）由委托连接自己的上下文管理决定
        exit_ = getattr(self.__wrapped__, "__exit__", None)
        if exit_ is None:
            return None
        return exit_(exc_type, exc_value, traceback)
