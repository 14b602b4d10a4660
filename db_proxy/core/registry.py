"""
委托驱动注册表模块

DelegateDriver 定义了底层驱动必须具备的能力：判断是否接受某个地址，
以及用该地址建立真实连接。DriverRegistry 是显式注入的候选驱动集合，
按注册顺序保存，每次查询都返回调用时刻的只读快照，不在调用之间缓存。

注册表本身不是全局对象：需要它的组件通过构造参数拿到它，
测试因此可以使用任意伪造的驱动集合。
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Tuple

from ..utils.logging_utils import get_logger
from ..utils.text_utils import mask_address
from .exceptions import InvalidAddressError, InvalidArgumentError, NoDriverFoundError

logger = get_logger(__name__)


class DelegateDriver(ABC):
    """
    委托驱动能力接口

    实现类必须保证 accepts() 没有副作用。connect() 对不属于自己的地址
    返回 None，连接失败时抛出驱动自身的原生异常。
    """

    @abstractmethod
    def accepts(self, address: str) -> bool:
        """判断驱动是否能处理该地址"""

    @abstractmethod
    def connect(
        self, address: str, options: Optional[Mapping[str, Any]] = None
    ) -> Optional[Any]:
        """
        建立真实连接

        Args:
            address: 驱动自身能理解的连接地址
            options: 连接选项，由驱动自行解释

        Returns:
            PEP 249 连接对象；地址不属于该驱动时返回 None
        """

    @property
    def name(self) -> str:
        return type(self).__name__


class DriverRegistry:
    """
    委托驱动注册表

    按注册顺序保存候选驱动。锁只保护注册和注销操作本身，
    快照是普通元组，遍历快照不需要持有锁。

    Example:
        >>> registry = DriverRegistry([SQLAlchemyDriver()])
        >>> registry.register(JDBCDriver())
        >>> [driver.name for driver in registry.snapshot()]
        ['SQLAlchemyDriver', 'JDBCDriver']
    """

    def __init__(self, drivers: Iterable[DelegateDriver] = ()) -> None:
        self._drivers: List[DelegateDriver] = []
        self._lock = threading.Lock()
        for driver in drivers:
            self.register(driver)

    def register(self, driver: DelegateDriver) -> None:
        """
        注册一个委托驱动，已注册的驱动不会重复加入

        Raises:
            InvalidArgumentError: 当对象不具备 accepts/connect 能力时
        """
        if driver is None or not (
            callable(getattr(driver, "accepts", None))
            and callable(getattr(driver, "connect", None))
        ):
            raise InvalidArgumentError(
                f"不是有效的委托驱动: {driver!r}", argument_name="driver"
            )

        with self._lock:
            if any(existing is driver for existing in self._drivers):
                logger.debug(f"驱动已注册，跳过: {_driver_name(driver)}")
                return
            self._drivers.append(driver)

        logger.debug(f"注册委托驱动: {_driver_name(driver)}")

    def deregister(self, driver: DelegateDriver) -> bool:
        """
        注销委托驱动

        Returns:
            bool: 驱动存在并被移除时为True
        """
        with self._lock:
            for index, existing in enumerate(self._drivers):
                if existing is driver:
                    del self._drivers[index]
                    break
            else:
                return False

        logger.debug(f"注销委托驱动: {_driver_name(driver)}")
        return True

    def snapshot(self) -> Tuple[DelegateDriver, ...]:
        """返回调用时刻已注册驱动的只读快照（按注册顺序）"""
        with self._lock:
            return tuple(self._drivers)

    def connect(
        self, address: str, options: Optional[Mapping[str, Any]] = None
    ) -> Any:
        """
        依次尝试每个驱动建立连接

        对快照中的每个驱动先调用 accepts() 再调用 connect()，第一个返回
        非 None 连接的驱动胜出。驱动抛出的异常会被记下并继续尝试后续驱动；
        全部失败时原样重新抛出第一个被记下的驱动异常。

        Args:
            address: 连接地址
            options: 连接选项，原样交给每个驱动

        Returns:
            第一个成功建立的连接

        Raises:
            InvalidAddressError: 地址为空时
            NoDriverFoundError: 没有驱动接受该地址且没有驱动报错时
        """
        if not address or not isinstance(address, str):
            raise InvalidAddressError("连接地址不能为空且必须是字符串", address=address)

        drivers = self.snapshot()
        first_error: Optional[BaseException] = None

        for driver in drivers:
            try:
                if not driver.accepts(address):
                    continue
                connection = driver.connect(address, options)
            except Exception as e:
                logger.debug(
                    f"驱动 {_driver_name(driver)} 连接失败: "
                    f"{e.__class__.__name__}: {e}"
                )
                if first_error is None:
                    first_error = e
                continue

            if connection is not None:
                logger.debug(
                    f"驱动 {_driver_name(driver)} 已建立连接: {mask_address(address)}"
                )
                return connection

        if first_error is not None:
            raise first_error

        raise NoDriverFoundError(
            f"没有适用于该地址的驱动: {mask_address(address)}",
            address=address,
            candidates=len(drivers),
        )

    def __len__(self) -> int:
        return len(self.snapshot())

    def __iter__(self) -> Iterator[DelegateDriver]:
        return iter(self.snapshot())

    def __contains__(self, driver: object) -> bool:
        return any(existing is driver for existing in self.snapshot())

    def __repr__(self) -> str:
        names = ", ".join(_driver_name(driver) for driver in self.snapshot())
        return f"DriverRegistry([{names}])"


def _driver_name(driver: Any) -> str:
    name = getattr(driver, "name", None)
    return name if isinstance(name, str) and name else type(driver).__name__
