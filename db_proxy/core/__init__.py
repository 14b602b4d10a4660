"""
代理驱动核心模块

- ProxyDriver: 识别代理地址、查找委托驱动并包装真实连接
- DriverRegistry / DelegateDriver: 显式注入的候选委托驱动集合及其能力接口
- ConnectionProxy: 连接代理，拦截语句创建与关闭
- CursorProxy / PreparedStatementProxy / CallableStatementProxy: 语句代理
- ResultSetProxy / ResultFilter: 结果游标代理与过滤规则
- SqlRewriter 及内置改写器: SQL文本改写
- ProxyConfig: 代理自身的选项
"""

from .config import ProxyConfig
from .connection import ConnectionProxy
from .driver import ProxyDriver
from .exceptions import (
    ConfigError,
    DBProxyError,
    InvalidAddressError,
    InvalidArgumentError,
    NoDriverFoundError,
    RewriteError,
)
from .registry import DelegateDriver, DriverRegistry
from .resultset import ResultFilter, ResultSetProxy
from .rewriter import (
    CommentTagRewriter,
    FailurePolicy,
    IdentityRewriter,
    RegexRewriter,
    RewriteResult,
    RewriterChain,
    SqlRewriter,
    StatementKind,
)
from .statement import CallableStatementProxy, CursorProxy, PreparedStatementProxy

__all__ = [
    # ==================== 驱动与注册表 ====================
    "ProxyDriver",
    "DelegateDriver",
    "DriverRegistry",
    # ==================== 连接与语句代理 ====================
    "ConnectionProxy",
    "CursorProxy",
    "PreparedStatementProxy",
    "CallableStatementProxy",
    # ==================== 结果游标代理 ====================
    "ResultSetProxy",
    "ResultFilter",
    # ==================== SQL改写 ====================
    "SqlRewriter",
    "IdentityRewriter",
    "CommentTagRewriter",
    "RegexRewriter",
    "RewriterChain",
    "RewriteResult",
    "StatementKind",
    "FailurePolicy",
    # ==================== 配置 ====================
    "ProxyConfig",
    # ==================== 异常处理体系 ====================
    "DBProxyError",
    "ConfigError",
    "InvalidArgumentError",
    "InvalidAddressError",
    "NoDriverFoundError",
    "RewriteError",
]
