"""
代理驱动测试
"""

import logging
from unittest.mock import MagicMock

import pytest

import db_proxy
from db_proxy.core.config import ProxyConfig
from db_proxy.core.connection import ConnectionProxy
from db_proxy.core.driver import ProxyDriver
from db_proxy.core.exceptions import InvalidAddressError, InvalidArgumentError, NoDriverFoundError
from db_proxy.core.registry import DelegateDriver, DriverRegistry
from db_proxy.core.resultset import ResultFilter
from db_proxy.core.rewriter import CommentTagRewriter, IdentityRewriter


class RealConnection:
    """伪造的委托连接"""

    def __init__(self):
        self.closed = False

    def cursor(self):
        return MagicMock()

    def commit(self):
        return "committed"

    def close(self):
        self.closed = True


class FakeDelegate(DelegateDriver):
    """按前缀接受地址的伪造委托驱动"""

    def __init__(self, prefix="real://", connection=None, error=None, accepts_error=None):
        self.prefix = prefix
        self.connection = connection
        self.error = error
        self.accepts_error = accepts_error
        self.accepts_calls = []
        self.connect_calls = []

    def accepts(self, address):
        self.accepts_calls.append(address)
        if self.accepts_error is not None:
            raise self.accepts_error
        return address.startswith(self.prefix)

    def connect(self, address, options=None):
        self.connect_calls.append((address, options))
        if self.error is not None:
            raise self.error
        return self.connection


class TestProxyDriverAddress:
    """地址识别测试类"""

    def setup_method(self):
        """测试方法 setup"""
        self.driver = ProxyDriver(DriverRegistry())

    def test_accepts(self):
        """测试代理前缀识别"""
        assert self.driver.accepts("proxy:real://host/db") is True
        assert self.driver.accepts("real://host/db") is False
        assert self.driver.accepts("") is False
        assert self.driver.accepts(None) is False

    def test_extract_real_address(self):
        """测试去掉代理前缀"""
        assert self.driver.extract_real_address("proxy:real://host/db") == "real://host/db"
        assert self.driver.extract_real_address("real://host/db") == "real://host/db"

    def test_extract_preserves_rest(self):
        """测试前缀之后的内容保持不变"""
        address = "proxy:real://u:p@host:1/db?x=1&y=proxy:"
        assert self.driver.extract_real_address(address) == address[len("proxy:"):]

    def test_custom_scheme(self):
        """测试配置自定义前缀"""
        driver = ProxyDriver(DriverRegistry(), config=ProxyConfig(scheme="jdbc:trace:"))
        assert driver.accepts("jdbc:trace:mysql://host/db")
        assert driver.extract_real_address("jdbc:trace:mysql://host/db") == "mysql://host/db"
        assert not driver.accepts("proxy:mysql://host/db")

    def test_registry_required(self):
        """测试注册表不能为空"""
        with pytest.raises(InvalidArgumentError):
            ProxyDriver(None)


class TestFindDelegate:
    """委托驱动查找测试类"""

    def test_first_match_in_order(self):
        """测试按注册顺序选择第一个接受的驱动"""
        other = FakeDelegate(prefix="other://")
        first = FakeDelegate()
        second = FakeDelegate()
        driver = ProxyDriver(DriverRegistry([other, first, second]))

        assert driver.find_delegate("real://host/db") is first
        assert second.accepts_calls == []

    def test_no_match(self):
        """测试没有驱动接受地址"""
        driver = ProxyDriver(DriverRegistry([FakeDelegate(prefix="other://")]))

        with pytest.raises(NoDriverFoundError) as exc_info:
            driver.find_delegate("real://host/db")

        assert exc_info.value.details["candidates"] == 1

    def test_accepts_error_skipped(self):
        """测试 accepts() 抛出异常的驱动被跳过"""
        broken = FakeDelegate(accepts_error=RuntimeError("boom"))
        working = FakeDelegate()
        driver = ProxyDriver(DriverRegistry([broken, working]))

        assert driver.find_delegate("real://host/db") is working

    def test_skips_itself(self):
        """测试查找时跳过代理驱动自身"""
        registry = DriverRegistry()
        driver = ProxyDriver(registry, config=ProxyConfig(scheme="real:"))
        registry.register(driver)
        delegate = FakeDelegate()
        registry.register(delegate)

        assert driver.find_delegate("real://host/db") is delegate


class TestProxyDriverConnect:
    """代理连接测试类"""

    def setup_method(self):
        """测试方法 setup"""
        self.connection = RealConnection()
        self.delegate = FakeDelegate(connection=self.connection)
        self.registry = DriverRegistry([self.delegate])
        self.driver = ProxyDriver(self.registry, rewriter=CommentTagRewriter("app=test"))

    def test_connect_wraps_delegate_connection(self):
        """测试代理地址建立连接并包装委托连接"""
        proxy = self.driver.connect("proxy:real://host/db", {"user": "alice"})

        assert isinstance(proxy, ConnectionProxy)
        assert isinstance(proxy, RealConnection)
        assert proxy.__wrapped__ is self.connection
        assert proxy.delegate is self.delegate
        assert proxy.rewriter is self.driver.rewriter
        assert self.delegate.connect_calls == [("real://host/db", {"user": "alice"})]

    def test_connect_forwards_other_operations(self):
        """测试其它操作原样转发"""
        proxy = self.driver.connect("proxy:real://host/db")
        assert proxy.commit() == "committed"

    def test_connect_not_mine(self):
        """测试不带前缀的地址返回 None 且不查找委托驱动"""
        registry = MagicMock(spec=DriverRegistry)
        driver = ProxyDriver(registry)

        assert driver.connect("real://host/db") is None
        registry.snapshot.assert_not_called()
        assert self.delegate.accepts_calls == []

    def test_connect_no_delegate(self):
        """测试没有委托驱动接受真实地址时不创建连接"""
        delegate = FakeDelegate(prefix="other://", connection=RealConnection())
        driver = ProxyDriver(DriverRegistry([delegate]))

        with pytest.raises(NoDriverFoundError):
            driver.connect("proxy:real://host/db")

        assert delegate.connect_calls == []

    def test_connect_empty_address(self):
        """测试空地址"""
        with pytest.raises(InvalidAddressError):
            self.driver.connect("")
        with pytest.raises(InvalidAddressError):
            self.driver.connect(None)

    def test_delegate_error_propagates_verbatim(self):
        """测试委托驱动的异常原样传播"""
        error = ConnectionRefusedError("目标拒绝连接")
        driver = ProxyDriver(DriverRegistry([FakeDelegate(error=error)]))

        with pytest.raises(ConnectionRefusedError) as exc_info:
            driver.connect("proxy:real://host/db")

        assert exc_info.value is error

    def test_delegate_returns_none(self, caplog):
        """测试委托驱动接受地址却未返回连接时结果为 None，并记录错误日志"""
        driver = ProxyDriver(DriverRegistry([FakeDelegate(connection=None)]))

        with caplog.at_level(logging.ERROR, logger="db_proxy.core.driver"):
            assert driver.connect("proxy:real://host/db") is None

        errors = [record for record in caplog.records if record.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "FakeDelegate" in errors[0].getMessage()
        assert "real://host/db" in errors[0].getMessage()

    def test_not_owned_address_logs_no_error(self, caplog):
        """测试地址不属于代理驱动时不记录错误日志"""
        driver = ProxyDriver(DriverRegistry([FakeDelegate(connection=None)]))

        with caplog.at_level(logging.DEBUG, logger="db_proxy.core.driver"):
            assert driver.connect("real://host/db") is None

        assert not [record for record in caplog.records if record.levelno >= logging.ERROR]

    def test_module_connect_raises_when_delegate_returns_none(self):
        """测试模块级 connect() 在委托驱动未返回连接时抛出 NoDriverFoundError"""
        registry = DriverRegistry([FakeDelegate(connection=None)])

        with pytest.raises(NoDriverFoundError) as exc_info:
            db_proxy.connect("proxy:real://host/db", registry=registry)
        assert "委托驱动未返回连接" in str(exc_info.value)

        with pytest.raises(NoDriverFoundError) as exc_info:
            db_proxy.connect("real://host/db", registry=registry)
        assert "代理前缀" in str(exc_info.value)

    def test_explicit_rewriter_ignored_when_disabled(self):
        """测试配置关闭改写时忽略自定义改写器"""
        driver = ProxyDriver(
            self.registry,
            config=ProxyConfig(rewrite_enabled=False),
            rewriter=IdentityRewriter(),
        )
        assert driver.rewriter is None
        assert driver.connect("proxy:real://host/db").rewriter is None

    def test_result_filter_from_config(self):
        """测试按配置创建结果过滤规则"""
        driver = ProxyDriver(self.registry, config=ProxyConfig(hidden_columns=["secret"]))
        assert driver.result_filter.hidden_columns == frozenset({"secret"})

        explicit = ResultFilter(hidden_columns=["token"])
        assert ProxyDriver(self.registry, result_filter=explicit).result_filter is explicit

        no_wrap = ProxyDriver(
            self.registry, config=ProxyConfig(wrap_results=False), result_filter=explicit
        )
        assert no_wrap.result_filter is None


if __name__ == "__main__":
    pytest.main()
