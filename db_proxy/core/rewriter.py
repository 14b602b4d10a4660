"""
SQL改写模块

在SQL文本到达委托驱动之前对其做纯文本变换。改写器不解析SQL语义，
只把SQL当作不透明字符串处理。

约束：
- 改写器实例创建后不再修改自身状态，可被多个连接、多个线程同时调用
- 相同输入在配置不变时总是得到相同输出；不要求幂等
- 失败策略显式配置：fail-open（默认，记录警告并原样返回输入）
  或 fail-closed（抛出 RewriteError）

使用示例：
    >>> rewriter = CommentTagRewriter("app=billing")
    >>> rewriter.rewrite("SELECT a FROM t", StatementKind.PREPARED)
    'SELECT a FROM t /* app=billing */'
"""

import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterable, NamedTuple, Optional, Pattern, Sequence, Tuple, Union

from ..utils.logging_utils import get_logger
from ..utils.text_utils import preview_sql
from .exceptions import InvalidArgumentError, RewriteError

logger = get_logger(__name__)


class StatementKind(str, Enum):
    """语句类型：普通游标、预处理语句、存储过程调用"""

    PLAIN = "plain"
    PREPARED = "prepared"
    CALLABLE = "callable"


class FailurePolicy(str, Enum):
    """改写失败时的处理策略"""

    FAIL_OPEN = "open"
    FAIL_CLOSED = "closed"


class RewriteResult(NamedTuple):
    """
    一次改写的结果值

    Attributes:
        original: 客户端传入的SQL
        rewritten: 实际发送给委托驱动的SQL
        kind: 语句类型
    """

    original: str
    rewritten: str
    kind: StatementKind

    @property
    def changed(self) -> bool:
        return self.original != self.rewritten


class SqlRewriter(ABC):
    """
    SQL改写器基类

    子类只需实现 transform()；rewrite() 负责输入检查、失败策略和日志。

    Attributes:
        failure_policy (FailurePolicy): 改写失败时的处理策略
    """

    def __init__(
        self, failure_policy: Union[FailurePolicy, str] = FailurePolicy.FAIL_OPEN
    ) -> None:
        try:
            self._failure_policy = FailurePolicy(failure_policy)
        except ValueError:
            raise InvalidArgumentError(
                f"无效的改写失败策略: {failure_policy!r}，有效值为: "
                f"{[policy.value for policy in FailurePolicy]}",
                argument_name="failure_policy",
            )

    @property
    def failure_policy(self) -> FailurePolicy:
        return self._failure_policy

    @abstractmethod
    def transform(self, sql: str, kind: StatementKind) -> str:
        """
        执行实际的文本变换

        Args:
            sql: 原始SQL
            kind: 语句类型

        Returns:
            str: 变换后的SQL
        """

    def rewrite(self, sql: str, kind: StatementKind = StatementKind.PLAIN) -> str:
        """
        按失败策略改写SQL

        非字符串输入不做任何处理直接返回，由委托驱动给出它自己的原生错误。

        Args:
            sql: 原始SQL
            kind: 语句类型

        Returns:
            str: 改写后的SQL；fail-open 策略下失败时返回原始SQL

        Raises:
            RewriteError: fail-closed 策略下改写失败时
        """
        if not isinstance(sql, str):
            return sql

        kind = StatementKind(kind)
        try:
            rewritten = self.transform(sql, kind)
            if not isinstance(rewritten, str):
                raise TypeError(
                    f"改写器 {type(self).__name__} 返回了非字符串结果: "
                    f"{type(rewritten).__name__}"
                )
        except RewriteError:
            # transform 主动抛出的 RewriteError 不受失败策略影响
            raise
        except Exception as e:
            if self._failure_policy is FailurePolicy.FAIL_CLOSED:
                logger.error(f"SQL改写失败: {e} - {preview_sql(sql)}")
                raise RewriteError(
                    f"SQL改写失败: {e.__class__.__name__}: {str(e)}",
                    sql=sql,
                    statement_kind=kind.value,
                ) from e
            logger.warning(f"SQL改写失败，按原样执行: {e} - {preview_sql(sql)}")
            return sql

        if rewritten != sql:
            logger.debug(
                f"SQL已改写({kind.value}): {preview_sql(sql)} -> {preview_sql(rewritten)}"
            )
        return rewritten

    def apply(self, sql: str, kind: StatementKind = StatementKind.PLAIN) -> RewriteResult:
        """改写SQL并返回包含原文与改写结果的值对象"""
        kind = StatementKind(kind)
        return RewriteResult(sql, self.rewrite(sql, kind), kind)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(failure_policy={self._failure_policy.value!r})"


class IdentityRewriter(SqlRewriter):
    """不做任何改写，原样返回SQL"""

    def transform(self, sql: str, kind: StatementKind) -> str:
        return sql


class CommentTagRewriter(SqlRewriter):
    """
    在SQL末尾追加标记注释

    结尾的分号会保留在注释之后，避免注释落在语句之外。

    Example:
        >>> CommentTagRewriter("trace=42").rewrite("SELECT 1;")
        'SELECT 1 /* trace=42 */;'
    """

    def __init__(
        self,
        tag: str,
        failure_policy: Union[FailurePolicy, str] = FailurePolicy.FAIL_OPEN,
    ) -> None:
        super().__init__(failure_policy)
        if not tag or not isinstance(tag, str):
            raise InvalidArgumentError("注释标记不能为空且必须是字符串", argument_name="tag")
        if "*/" in tag or "/*" in tag:
            raise InvalidArgumentError("注释标记不能包含注释分隔符", argument_name="tag")
        self._comment = f"/* {tag} */"

    @property
    def comment(self) -> str:
        return self._comment

    def transform(self, sql: str, kind: StatementKind) -> str:
        body = sql.rstrip()
        if body.endswith(";"):
            return f"{body[:-1].rstrip()} {self._comment};"
        return f"{body} {self._comment}"


class RegexRewriter(SqlRewriter):
    """
    基于正则表达式的替换改写

    Args:
        pattern: 正则表达式（字符串或已编译对象）
        replacement: 替换文本，语法同 re.sub
        kinds: 仅对这些语句类型生效，None表示全部类型
        count: 最大替换次数，0表示全部替换
    """

    def __init__(
        self,
        pattern: Union[str, Pattern[str]],
        replacement: str,
        kinds: Optional[Iterable[Union[StatementKind, str]]] = None,
        count: int = 0,
        failure_policy: Union[FailurePolicy, str] = FailurePolicy.FAIL_OPEN,
    ) -> None:
        super().__init__(failure_policy)
        try:
            self._pattern = re.compile(pattern)
        except (re.error, TypeError) as e:
            raise InvalidArgumentError(
                f"无效的正则表达式: {e}", argument_name="pattern"
            ) from e
        self._replacement = replacement
        self._kinds: Optional[frozenset] = (
            frozenset(StatementKind(kind) for kind in kinds) if kinds is not None else None
        )
        self._count = count

    def transform(self, sql: str, kind: StatementKind) -> str:
        if self._kinds is not None and kind not in self._kinds:
            return sql
        return self._pattern.sub(self._replacement, sql, count=self._count)


class RewriterChain(SqlRewriter):
    """
    按顺序执行多个改写器

    每个子改写器按自己的失败策略处理自身错误；子改写器在 fail-closed
    下抛出的 RewriteError 会穿过链条直接传播。链条自身的策略只作用于
    子改写器之外的意外错误。
    """

    def __init__(
        self,
        rewriters: Sequence[SqlRewriter],
        failure_policy: Union[FailurePolicy, str] = FailurePolicy.FAIL_OPEN,
    ) -> None:
        super().__init__(failure_policy)
        for rewriter in rewriters:
            if not isinstance(rewriter, SqlRewriter):
                raise InvalidArgumentError(
                    f"不是有效的改写器: {rewriter!r}", argument_name="rewriters"
                )
        self._rewriters: Tuple[SqlRewriter, ...] = tuple(rewriters)

    @property
    def rewriters(self) -> Tuple[SqlRewriter, ...]:
        return self._rewriters

    def transform(self, sql: str, kind: StatementKind) -> str:
        for rewriter in self._rewriters:
            sql = rewriter.rewrite(sql, kind)
        return sql
