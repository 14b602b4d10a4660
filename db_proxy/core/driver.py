"""
代理驱动模块

ProxyDriver 识别带代理前缀的地址，去掉前缀得到真实地址，
在注册表快照中按注册顺序找到第一个接受该地址的委托驱动，
由它建立真实连接，再用 ConnectionProxy 包装返回。

不带前缀的地址返回 None（"不属于我"），不是错误：宿主的驱动管理器
会继续询问其它驱动。委托驱动抛出的异常原样传播，不做任何转换。

连接流程：
    proxy:sqlite:///app.db
      -> accepts() 为真
      -> extract_real_address() 得到 sqlite:///app.db
      -> find_delegate() 找到 SQLAlchemyDriver
      -> SQLAlchemyDriver.connect("sqlite:///app.db", options)
      -> ConnectionProxy(真实连接)
"""

from typing import Any, Mapping, Optional

from ..utils.logging_utils import get_logger
from ..utils.text_utils import mask_address
from .config import ProxyConfig
from .connection import ConnectionProxy
from .exceptions import InvalidAddressError, InvalidArgumentError, NoDriverFoundError
from .registry import DelegateDriver, DriverRegistry
from .resultset import ResultFilter
from .rewriter import SqlRewriter

logger = get_logger(__name__)


class ProxyDriver(DelegateDriver):
    """
    代理驱动

    ProxyDriver 自身也是一个 DelegateDriver，可以和其它驱动一起注册到
    同一个注册表中；查找委托驱动时会跳过自己，避免重复包装。

    Attributes:
        registry (DriverRegistry): 候选委托驱动注册表
        config (ProxyConfig): 代理选项
        scheme (str): 代理地址前缀
        rewriter (Optional[SqlRewriter]): SQL改写器，None表示不改写
        result_filter (Optional[ResultFilter]): 结果过滤规则，None表示不包装结果游标

    Example:
        >>> registry = DriverRegistry([SQLAlchemyDriver()])
        >>> driver = ProxyDriver(registry)
        >>> connection = driver.connect("proxy:sqlite://")
        >>> cursor = connection.cursor()
        >>> cursor.execute("SELECT 1").fetchall()
        [(1,)]
    """

    def __init__(
        self,
        registry: DriverRegistry,
        config: Optional[ProxyConfig] = None,
        rewriter: Optional[SqlRewriter] = None,
        result_filter: Optional[ResultFilter] = None,
    ) -> None:
        """
        初始化代理驱动

        Args:
            registry: 候选委托驱动注册表
            config: 代理选项，None时使用默认配置
            rewriter: 自定义改写器，优先于配置中的内置改写器；
                配置关闭改写时被忽略
            result_filter: 自定义结果过滤规则，优先于配置中的隐藏列；
                配置关闭结果包装时被忽略

        Raises:
            InvalidArgumentError: 当注册表为空时
        """
        if registry is None:
            raise InvalidArgumentError("驱动注册表不能为空", argument_name="registry")

        self._registry = registry
        self._config = config if config is not None else ProxyConfig()
        self._scheme = self._config.scheme

        if not self._config.rewrite_enabled:
            self._rewriter = None
        elif rewriter is not None:
            self._rewriter = rewriter
        else:
            self._rewriter = self._config.build_rewriter()

        if not self._config.wrap_results:
            self._result_filter = None
        elif result_filter is not None:
            self._result_filter = result_filter
        else:
            self._result_filter = self._config.build_result_filter()

        logger.debug(
            f"代理驱动初始化完成，前缀: {self._scheme}，改写器: {self._rewriter!r}，"
            f"结果包装: {self._result_filter is not None}"
        )

    @property
    def registry(self) -> DriverRegistry:
        return self._registry

    @property
    def config(self) -> ProxyConfig:
        return self._config

    @property
    def scheme(self) -> str:
        return self._scheme

    @property
    def rewriter(self) -> Optional[SqlRewriter]:
        return self._rewriter

    @property
    def result_filter(self) -> Optional[ResultFilter]:
        return self._result_filter

    def accepts(self, address: str) -> bool:
        """地址为非空字符串且以代理前缀开头时返回True，没有副作用"""
        return isinstance(address, str) and bool(address) and address.startswith(self._scheme)

    def extract_real_address(self, address: str) -> str:
        """
        去掉代理前缀得到真实地址

        只去掉前缀本身，其余部分保持不变；不是代理地址时原样返回。

        Example:
            >>> driver.extract_real_address("proxy:real://host/db")
            'real://host/db'
            >>> driver.extract_real_address("real://host/db")
            'real://host/db'
        """
        if not self.accepts(address):
            return address
        return address[len(self._scheme):]

    def find_delegate(self, real_address: str) -> DelegateDriver:
        """
        按注册顺序查找第一个接受真实地址的委托驱动

        accepts() 自身抛出异常的驱动被跳过，不会中断查找。

        Args:
            real_address: 去掉前缀后的真实地址

        Returns:
            DelegateDriver: 第一个接受该地址的驱动

        Raises:
            NoDriverFoundError: 没有任何驱动接受该地址时
        """
        drivers = self._registry.snapshot()

        for driver in drivers:
            if driver is self:
                continue
            try:
                accepted = driver.accepts(real_address)
            except Exception as e:
                logger.debug(
                    f"驱动 {type(driver).__name__} 判断地址时出错，已跳过: "
                    f"{e.__class__.__name__}: {e}"
                )
                continue
            if accepted:
                logger.debug(
                    f"地址 {mask_address(real_address)} 由 {type(driver).__name__} 处理"
                )
                return driver

        logger.warning(f"没有委托驱动接受该地址: {mask_address(real_address)}")
        raise NoDriverFoundError(
            f"没有委托驱动接受该地址: {mask_address(real_address)}",
            address=real_address,
            candidates=len(drivers),
        )

    def connect(
        self, address: str, options: Optional[Mapping[str, Any]] = None
    ) -> Optional[ConnectionProxy]:
        """
        建立代理连接

        Args:
            address: 连接地址
            options: 连接选项，原样交给委托驱动

        Returns:
            Optional[ConnectionProxy]: 连接代理；地址不属于本驱动时为 None。
            委托驱动接受地址却返回空连接时同样为 None，并记录一条错误日志

        Raises:
            InvalidAddressError: 地址为空或不是字符串时
            NoDriverFoundError: 没有委托驱动接受真实地址时
            Exception: 委托驱动抛出的任何异常，原样传播
        """
        if not address or not isinstance(address, str):
            raise InvalidAddressError("连接地址不能为空且必须是字符串", address=address)

        if not self.accepts(address):
            logger.debug(f"地址不属于代理驱动: {mask_address(address)}")
            return None

        real_address = self.extract_real_address(address)
        delegate = self.find_delegate(real_address)

        connection = delegate.connect(real_address, options)

        proxy = ConnectionProxy.wrap(
            connection,
            rewriter=self._rewriter,
            result_filter=self._result_filter,
            address=real_address,
            delegate=delegate,
        )
        if proxy is None:
            logger.error(
                f"委托驱动 {type(delegate).__name__} 接受了地址但未返回连接: "
                f"{mask_address(real_address)}"
            )
        else:
            logger.info(f"代理连接已建立: {mask_address(address)}")
        return proxy

    def __repr__(self) -> str:
        return f"ProxyDriver(scheme={self._scheme!r}, registry={self._registry!r})"
