"""
结果游标代理模块

ResultSetProxy 包装一个原始游标的取数接口，按 ResultFilter 隐藏列或追加
计算列，只改变可见内容，不改变游标的定位语义：
- 不预读任何行，游标位置始终由委托游标自己维护
- fetchone() 在没有更多行时返回 None，与委托游标一致
- rownumber、scroll()、rowcount 等定位相关的操作原样转发
"""

from typing import Any, Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

import wrapt

from ..utils.logging_utils import get_logger
from .exceptions import InvalidArgumentError

logger = get_logger(__name__)

ComputedColumn = Callable[[Dict[str, Any]], Any]


class _ResultPlan(NamedTuple):
    """根据一次查询的 description 计算出的列投影方案"""

    names: Tuple[str, ...]
    kept: Tuple[int, ...]
    description: Tuple[Tuple[Any, ...], ...]


class ResultFilter:
    """
    结果集过滤规则

    Args:
        hidden_columns: 需要从结果中隐藏的列名（不区分大小写）
        computed_columns: 追加的计算列，列名到函数的映射；函数接收
            原始整行（列名到值的字典，包含被隐藏的列）并返回该列的值

    Example:
        >>> result_filter = ResultFilter(
        ...     hidden_columns=["password_hash"],
        ...     computed_columns={"masked": lambda row: row["email"][:2] + "***"},
        ... )
    """

    def __init__(
        self,
        hidden_columns: Iterable[str] = (),
        computed_columns: Optional[Mapping[str, ComputedColumn]] = None,
    ) -> None:
        hidden = []
        for column in hidden_columns:
            if not isinstance(column, str) or not column:
                raise InvalidArgumentError(
                    f"无效的隐藏列名: {column!r}", argument_name="hidden_columns"
                )
            hidden.append(column.lower())
        self._hidden = frozenset(hidden)

        computed = []
        for name, func in (computed_columns or {}).items():
            if not callable(func):
                raise InvalidArgumentError(
                    f"计算列 {name!r} 必须是可调用对象", argument_name="computed_columns"
                )
            computed.append((name, func))
        self._computed: Tuple[Tuple[str, ComputedColumn], ...] = tuple(computed)

    @property
    def hidden_columns(self) -> frozenset:
        return self._hidden

    @property
    def computed_columns(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self._computed)

    @property
    def is_passthrough(self) -> bool:
        """没有任何过滤规则时结果原样返回"""
        return not self._hidden and not self._computed

    def plan(self, description: Optional[Sequence[Sequence[Any]]]) -> Optional[_ResultPlan]:
        """为给定的 description 计算投影方案，无需投影时返回 None"""
        if description is None or self.is_passthrough:
            return None

        names = tuple(str(column[0]) for column in description)
        kept = tuple(
            index for index, name in enumerate(names) if name.lower() not in self._hidden
        )
        visible = [tuple(description[index]) for index in kept]
        for name, _ in self._computed:
            visible.append((name, None, None, None, None, None, True))
        return _ResultPlan(names, kept, tuple(visible))

    def project(self, row: Any, plan: Optional[_ResultPlan]) -> Any:
        """
        按投影方案处理一行

        序列行（元组、列表）返回元组；映射行（如 PyMySQL 的 DictCursor）
        按列名过滤，返回字典。
        """
        if row is None or plan is None:
            return row

        if isinstance(row, Mapping):
            projected = {
                key: value
                for key, value in row.items()
                if str(key).lower() not in self._hidden
            }
            original = dict(row)
            for name, func in self._computed:
                projected[name] = func(original)
            return projected

        values = tuple(row[index] for index in plan.kept)
        if not self._computed:
            return values

        original = dict(zip(plan.names, row))
        return values + tuple(func(original) for _, func in self._computed)

    def __repr__(self) -> str:
        return (
            f"ResultFilter(hidden_columns={sorted(self._hidden)!r}, "
            f"computed_columns={list(self.computed_columns)!r})"
        )


class ResultSetProxy(wrapt.ObjectProxy):
    """
    原始游标的结果视图

    只拦截 description 和取数操作，其余属性与方法（包括 scroll、
    rownumber、rowcount、arraysize）全部转发给委托游标。
    """

    def __init__(self, cursor: Any, result_filter: Optional[ResultFilter] = None) -> None:
        if cursor is None:
            raise InvalidArgumentError("委托游标不能为空", argument_name="cursor")
        super().__init__(cursor)
        self._self_filter = result_filter if result_filter is not None else ResultFilter()
        self._self_plan_source: Any = None
        self._self_plan: Optional[_ResultPlan] = None

    @classmethod
    def wrap(
        cls, cursor: Any, result_filter: Optional[ResultFilter] = None
    ) -> Optional["ResultSetProxy"]:
        """包装游标；游标为 None 时返回 None"""
        if cursor is None:
            return None
        return cls(cursor, result_filter)

    @property
    def result_filter(self) -> ResultFilter:
        return self._self_filter

    def _plan(self) -> Optional[_ResultPlan]:
        description = self.__wrapped__.description
        if description is None:
            return None
        # 同一游标执行新查询后 description 会变化，需要重新计算投影
        if self._self_plan is None or description != self._self_plan_source:
            self._self_plan_source = description
            self._self_plan = self._self_filter.plan(description)
            if self._self_plan is not None:
                logger.debug(
                    f"结果列投影: 原始 {len(self._self_plan.names)} 列，"
                    f"可见 {len(self._self_plan.description)} 列"
                )
        return self._self_plan

    @property
    def description(self) -> Any:
        plan = self._plan()
        if plan is None:
            return self.__wrapped__.description
        return plan.description

    def fetchone(self) -> Any:
        row = self.__wrapped__.fetchone()
        return self._self_filter.project(row, self._plan())

    def fetchmany(self, size: Optional[int] = None) -> List[Any]:
        if size is None:
            rows = self.__wrapped__.fetchmany()
        else:
            rows = self.__wrapped__.fetchmany(size)
        return self._project_rows(rows)

    def fetchall(self) -> List[Any]:
        return self._project_rows(self.__wrapped__.fetchall())

    def _project_rows(self, rows: Any) -> Any:
        plan = self._plan()
        if plan is None:
            return rows
        return [self._self_filter.project(row, plan) for row in rows]

    def __iter__(self) -> "ResultSetProxy":
        return self

    def __next__(self) -> Any:
        row = self.fetchone()
        if row is None:
            raise StopIteration
        return row
