"""
委托驱动注册表测试
"""

from unittest.mock import MagicMock

import pytest

from db_proxy.core.exceptions import InvalidAddressError, InvalidArgumentError, NoDriverFoundError
from db_proxy.core.registry import DelegateDriver, DriverRegistry


class FakeDriver(DelegateDriver):
    """按前缀接受地址的伪造驱动"""

    def __init__(self, prefix, connection=None, error=None):
        self.prefix = prefix
        self.connection = connection if connection is not None else MagicMock()
        self.error = error
        self.connect_calls = []

    def accepts(self, address):
        return address.startswith(self.prefix)

    def connect(self, address, options=None):
        self.connect_calls.append((address, options))
        if self.error is not None:
            raise self.error
        return self.connection


class TestDriverRegistry:
    """DriverRegistry测试类"""

    def setup_method(self):
        """测试方法 setup"""
        self.first = FakeDriver("real:")
        self.second = FakeDriver("real:")
        self.other = FakeDriver("other:")
        self.registry = DriverRegistry([self.first, self.second])

    def test_snapshot_keeps_registration_order(self):
        """测试快照保持注册顺序"""
        self.registry.register(self.other)
        assert self.registry.snapshot() == (self.first, self.second, self.other)
        assert len(self.registry) == 3
        assert list(self.registry) == [self.first, self.second, self.other]

    def test_snapshot_is_isolated(self):
        """测试快照不受之后注册的影响"""
        snapshot = self.registry.snapshot()
        self.registry.register(self.other)
        assert self.other not in snapshot
        assert self.other in self.registry

    def test_register_duplicate(self):
        """测试重复注册同一个驱动"""
        self.registry.register(self.first)
        assert len(self.registry) == 2

    def test_register_invalid(self):
        """测试注册不具备驱动能力的对象"""
        with pytest.raises(InvalidArgumentError):
            self.registry.register(object())
        with pytest.raises(InvalidArgumentError):
            self.registry.register(None)

    def test_deregister(self):
        """测试注销驱动"""
        assert self.registry.deregister(self.first) is True
        assert self.registry.deregister(self.first) is False
        assert self.registry.snapshot() == (self.second,)

    def test_connect_first_match_wins(self):
        """测试第一个返回连接的驱动胜出"""
        connection = self.registry.connect("real:db", {"user": "u"})

        assert connection is self.first.connection
        assert self.first.connect_calls == [("real:db", {"user": "u"})]
        assert self.second.connect_calls == []

    def test_connect_first_error_raised_verbatim(self):
        """测试全部失败时原样抛出第一个驱动异常"""
        error = ConnectionRefusedError("拒绝连接")
        registry = DriverRegistry(
            [FakeDriver("real:", error=error), FakeDriver("real:", error=TimeoutError())]
        )

        with pytest.raises(ConnectionRefusedError) as exc_info:
            registry.connect("real:db")

        assert exc_info.value is error

    def test_connect_skips_failing_driver(self):
        """测试前一个驱动失败时继续尝试后续驱动"""
        broken = FakeDriver("real:", error=RuntimeError("boom"))
        working = FakeDriver("real:")
        registry = DriverRegistry([broken, working])

        assert registry.connect("real:db") is working.connection

    def test_connect_no_driver(self):
        """测试没有驱动接受地址"""
        with pytest.raises(NoDriverFoundError) as exc_info:
            self.registry.connect("unknown:db")

        assert exc_info.value.details["candidates"] == 2

    def test_connect_empty_address(self):
        """测试空地址"""
        with pytest.raises(InvalidAddressError):
            self.registry.connect("")

    def test_repr(self):
        """测试字符串表示"""
        assert repr(DriverRegistry([self.other])) == "DriverRegistry([FakeDriver])"


if __name__ == "__main__":
    pytest.main()
