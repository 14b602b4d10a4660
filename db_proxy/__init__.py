"""
DB Proxy - 透明数据库代理驱动
==============================

位于数据库客户端和真实数据库驱动之间的透明代理层：识别带代理前缀的连接地址，
找到真正处理该地址的委托驱动，并在SQL到达驱动之前对其改写、在结果返回时
对其过滤，客户端看到的接口和异常与直接使用该驱动完全一致。

主要特性:
- 基于地址前缀的委托驱动查找（按注册顺序，显式注入的注册表）
- 连接/游标/预处理语句/存储过程调用的透明代理
- 可插拔的SQL改写器，显式的 fail-open / fail-closed 失败策略
- 可选的结果游标包装（隐藏列、计算列）
- 内置 SQLAlchemy 与 JDBC (JayDeBeApi) 委托驱动

使用示例:
    >>> import db_proxy
    >>> from db_proxy import CommentTagRewriter
    >>> connection = db_proxy.connect(
    ...     "proxy:sqlite://", rewriter=CommentTagRewriter("app=demo")
    ... )
    >>> cursor = connection.cursor()
    >>> cursor.execute("SELECT 1 AS one").fetchall()
    [(1,)]
    >>> cursor.last_sql.rewritten
    'SELECT 1 AS one /* app=demo */'
    >>> connection.close()
"""

from typing import Any, Mapping, Optional

__version__ = "0.1.0"
__license__ = "MIT"

from .core.config import ProxyConfig
from .core.connection import ConnectionProxy
from .core.driver import ProxyDriver
from .core.exceptions import (
    ConfigError,
    DBProxyError,
    InvalidAddressError,
    InvalidArgumentError,
    NoDriverFoundError,
    RewriteError,
)
from .core.registry import DelegateDriver, DriverRegistry
from .core.resultset import ResultFilter, ResultSetProxy
from .core.rewriter import (
    CommentTagRewriter,
    FailurePolicy,
    IdentityRewriter,
    RegexRewriter,
    RewriteResult,
    RewriterChain,
    SqlRewriter,
    StatementKind,
)
from .core.statement import CallableStatementProxy, CursorProxy, PreparedStatementProxy
from .drivers import JDBCDriver, SQLAlchemyDriver, create_default_registry
from .utils.text_utils import mask_address

__all__ = [
    "connect",
    # 驱动与注册表
    "ProxyDriver",
    "DelegateDriver",
    "DriverRegistry",
    "SQLAlchemyDriver",
    "JDBCDriver",
    "create_default_registry",
    # 代理对象
    "ConnectionProxy",
    "CursorProxy",
    "PreparedStatementProxy",
    "CallableStatementProxy",
    "ResultSetProxy",
    "ResultFilter",
    # SQL改写
    "SqlRewriter",
    "IdentityRewriter",
    "CommentTagRewriter",
    "RegexRewriter",
    "RewriterChain",
    "RewriteResult",
    "StatementKind",
    "FailurePolicy",
    # 配置
    "ProxyConfig",
    # 异常类
    "DBProxyError",
    "ConfigError",
    "InvalidArgumentError",
    "InvalidAddressError",
    "NoDriverFoundError",
    "RewriteError",
]


def connect(
    address: str,
    options: Optional[Mapping[str, Any]] = None,
    *,
    registry: Optional[DriverRegistry] = None,
    config: Optional[ProxyConfig] = None,
    rewriter: Optional[SqlRewriter] = None,
    result_filter: Optional[ResultFilter] = None,
) -> ConnectionProxy:
    """
    通过代理驱动建立连接

    调用方明确要求经由代理连接，因此不带代理前缀的地址在这里视为错误。

    Args:
        address: 代理地址，如 "proxy:sqlite:///app.db"
        options: 连接选项，原样交给委托驱动
        registry: 候选委托驱动注册表，None时使用 create_default_registry()
        config: 代理选项，None时使用默认配置
        rewriter: 自定义SQL改写器
        result_filter: 自定义结果过滤规则

    Returns:
        ConnectionProxy: 连接代理

    Raises:
        InvalidAddressError: 地址为空时
        NoDriverFoundError: 地址不带代理前缀、没有委托驱动接受真实地址，
            或接受地址的委托驱动未返回连接时
        Exception: 委托驱动自身的异常，原样传播
    """
    driver = ProxyDriver(
        registry if registry is not None else create_default_registry(),
        config=config,
        rewriter=rewriter,
        result_filter=result_filter,
    )
    connection = driver.connect(address, options)
    if connection is None:
        if driver.accepts(address):
            raise NoDriverFoundError(
                f"委托驱动未返回连接: {mask_address(address)}",
                address=address,
            )
        raise NoDriverFoundError(
            f"地址不带代理前缀 {driver.scheme!r}: {mask_address(address)}",
            address=address,
        )
    return connection
