"""
委托驱动模块

提供代理层默认可用的委托驱动：
- SQLAlchemyDriver: SQLAlchemy 支持的所有数据库（SQLAlchemy URL 地址）
- JDBCDriver: 通过 JayDeBeApi 访问的 JDBC 数据库（jdbc: 地址）

使用示例：
    >>> from db_proxy.drivers import create_default_registry
    >>> registry = create_default_registry()
    >>> [driver.name for driver in registry]
    ['SQLAlchemyDriver', 'JDBCDriver']
"""

from ..core.registry import DelegateDriver, DriverRegistry
from .jdbc_driver import JDBCDriver
from .sqlalchemy_driver import SQLAlchemyDriver

__all__ = [
    "SQLAlchemyDriver",
    "JDBCDriver",
    "create_default_registry",
]


def create_default_registry(*extra_drivers: DelegateDriver) -> DriverRegistry:
    """
    创建包含默认委托驱动的注册表

    每次调用都返回新的注册表实例，不存在共享的全局注册表。

    Args:
        *extra_drivers: 追加在默认驱动之后的其它驱动

    Returns:
        DriverRegistry: 新的注册表
    """
    return DriverRegistry([SQLAlchemyDriver(), JDBCDriver(), *extra_drivers])
