"""
JDBC 委托驱动模块

通过 JayDeBeApi 使用 JDBC 驱动访问数据库，适用于只提供 JDBC 驱动的数据库
（如 GBase 8s）。地址即 JDBC URL，例如：

    jdbc:postgresql://localhost:5432/app
    jdbc:gbasedbt-sqli://127.0.0.1:9088/app:GBASEDBTSERVER=gbase01

连接选项：
- jclassname: JDBC 驱动类名，常见数据库可按子协议自动推断
- driver_args: 驱动参数（[user, password] 列表或属性字典）
- user / password: 未提供 driver_args 时组成 [user, password]
- jars: 驱动 jar 路径（字符串或列表）
- libs: 本地库路径
"""

from typing import Any, Dict, Iterable, Mapping, Optional

from ..core.exceptions import InvalidArgumentError
from ..core.registry import DelegateDriver
from ..utils.logging_utils import get_logger
from ..utils.text_utils import mask_address

logger = get_logger(__name__)

JDBC_PREFIX = "jdbc:"


class JDBCDriver(DelegateDriver):
    """
    基于 JayDeBeApi 的委托驱动

    Attributes:
        DRIVER_CLASSES (Dict[str, str]): JDBC 子协议到驱动类名的映射

    Example:
        >>> driver = JDBCDriver(jars=["/opt/jdbc/postgresql-42.7.8.jar"])
        >>> connection = driver.connect(
        ...     "jdbc:postgresql://localhost:5432/app",
        ...     {"user": "app", "password": "secret"},
        ... )
    """

    DRIVER_CLASSES: Dict[str, str] = {
        "postgresql": "org.postgresql.Driver",
        "mysql": "com.mysql.cj.jdbc.Driver",
        "oracle": "oracle.jdbc.OracleDriver",
        "sqlserver": "com.microsoft.sqlserver.jdbc.SQLServerDriver",
        "gbasedbt-sqli": "com.gbasedbt.jdbc.Driver",
        "sqlite": "org.sqlite.JDBC",
        "h2": "org.h2.Driver",
    }

    def __init__(
        self,
        subprotocols: Optional[Iterable[str]] = None,
        jars: Optional[Any] = None,
    ) -> None:
        """
        初始化 JDBC 委托驱动

        Args:
            subprotocols: 只接受这些子协议，None表示接受所有 jdbc: 地址
            jars: 默认的驱动 jar 路径，连接选项中的 jars 优先
        """
        self._subprotocols = (
            frozenset(name.lower() for name in subprotocols) if subprotocols else None
        )
        self._jars = jars

    @staticmethod
    def subprotocol(address: str) -> str:
        """
        提取 JDBC 子协议

        Example:
            >>> JDBCDriver.subprotocol("jdbc:mysql://localhost:3306/app")
            'mysql'
        """
        if not isinstance(address, str) or not address.lower().startswith(JDBC_PREFIX):
            return ""
        return address[len(JDBC_PREFIX):].split(":", 1)[0].lower()

    def accepts(self, address: str) -> bool:
        subprotocol = self.subprotocol(address)
        if not subprotocol:
            return False
        if self._subprotocols is not None and subprotocol not in self._subprotocols:
            return False
        return True

    def connect(
        self, address: str, options: Optional[Mapping[str, Any]] = None
    ) -> Optional[Any]:
        """
        通过 JayDeBeApi 建立 JDBC 连接

        Args:
            address: JDBC URL
            options: 连接选项，见模块说明

        Returns:
            JayDeBeApi 连接；地址不被接受时返回 None

        Raises:
            InvalidArgumentError: 无法确定驱动类名时
            jaydebeapi.DatabaseError 等: JDBC 驱动自身的异常，原样传播
        """
        if not self.accepts(address):
            return None

        options = options or {}
        subprotocol = self.subprotocol(address)

        jclassname = options.get("jclassname") or self.DRIVER_CLASSES.get(subprotocol)
        if not jclassname:
            raise InvalidArgumentError(
                f"无法确定子协议 {subprotocol} 的JDBC驱动类名，请通过 jclassname 选项指定",
                argument_name="jclassname",
            )

        driver_args = options.get("driver_args")
        if driver_args is None and ("user" in options or "password" in options):
            driver_args = [options.get("user"), options.get("password")]

        jars = options.get("jars", self._jars)
        libs = options.get("libs")

        import jaydebeapi

        logger.debug(f"建立JDBC连接: {mask_address(address)} ({jclassname})")
        return jaydebeapi.connect(jclassname, address, driver_args, jars, libs)

    def __repr__(self) -> str:
        subprotocols = sorted(self._subprotocols) if self._subprotocols is not None else None
        return f"JDBCDriver(subprotocols={subprotocols!r})"
