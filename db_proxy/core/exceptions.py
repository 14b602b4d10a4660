"""
代理驱动自定义异常模块

只覆盖代理层自身引入的失败点：地址校验、委托驱动查找、SQL改写和配置。
底层驱动抛出的异常（连接失败、SQL错误、取消、超时等）一律原样向上传播，
既不包装也不转换，客户端已有的异常处理代码因此无需任何修改。

异常类层次结构：
DBProxyError
├── ConfigError (配置相关异常)
├── InvalidArgumentError (参数缺失或无效)
├── InvalidAddressError (连接地址为空或无效)
├── NoDriverFoundError (没有委托驱动接受该地址)
└── RewriteError (SQL改写失败，仅在 fail-closed 策略下抛出)
"""

from typing import Any, Dict, Optional

from ..utils.text_utils import mask_address, preview_sql


class DBProxyError(Exception):
    """
    代理驱动基础异常类

    Attributes:
        message (str): 异常描述信息
        error_code (Optional[str]): 错误代码，用于错误分类
        details (Dict[str, Any]): 详细的错误信息
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        """返回异常的字符串表示"""
        base_str = f"{self.__class__.__name__}: {self.message}"
        if self.error_code:
            base_str += f" (错误代码: {self.error_code})"
        return base_str

    def to_dict(self) -> Dict[str, Any]:
        """
        将异常信息转换为字典格式

        Returns:
            包含异常类型、信息、错误代码和详情的字典
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ConfigError(DBProxyError):
    """
    配置相关异常

    处理代理配置文件读取、解析、校验和保存过程中出现的错误。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = "CONFIG_INVALID",
        config_file: Optional[str] = None,
        config_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        初始化配置异常

        Args:
            message: 异常描述信息
            error_code: 错误代码
            config_file: 相关的配置文件路径
            config_key: 相关的配置键
            details: 详细的错误信息
        """
        super().__init__(message, error_code, details)
        self.config_file = config_file
        self.config_key = config_key

        if config_file:
            self.details["config_file"] = config_file
        if config_key:
            self.details["config_key"] = config_key


class InvalidArgumentError(DBProxyError):
    """参数缺失或无效，例如包装一个不存在的委托连接"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = "INVALID_ARGUMENT",
        argument_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, error_code, details)
        self.argument_name = argument_name

        if argument_name:
            self.details["argument_name"] = argument_name


class InvalidAddressError(DBProxyError):
    """
    连接地址异常

    地址为空或不是字符串时抛出。地址只以掩码形式记录到详情中。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = "INVALID_ADDRESS",
        address: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, error_code, details)
        self.address = address
        self.details["address"] = mask_address(address)


class NoDriverFoundError(DBProxyError):
    """
    委托驱动查找失败

    注册表快照中没有任何驱动接受给定的真实地址时抛出。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = "NO_DRIVER_FOUND",
        address: Optional[str] = None,
        candidates: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        初始化驱动查找异常

        Args:
            message: 异常描述信息
            error_code: 错误代码
            address: 查找时使用的地址（记录时掩码）
            candidates: 本次查找检查过的候选驱动数量
            details: 详细的错误信息
        """
        super().__init__(message, error_code, details)
        self.address = address
        self.candidates = candidates

        if address is not None:
            self.details["address"] = mask_address(address)
        if candidates is not None:
            self.details["candidates"] = candidates


class RewriteError(DBProxyError):
    """
    SQL改写异常

    只有改写器配置为 fail-closed 时才会抛出；fail-open 策略下改写失败
    记录警告并原样使用输入SQL。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = "REWRITE_FAILED",
        sql: Optional[str] = None,
        statement_kind: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        初始化改写异常

        Args:
            message: 异常描述信息
            error_code: 错误代码
            sql: 改写失败的原始SQL（详情中只保留预览）
            statement_kind: 语句类型（plain/prepared/callable）
            details: 详细的错误信息
        """
        super().__init__(message, error_code, details)
        self.sql = sql
        self.statement_kind = statement_kind

        if sql is not None:
            self.details["sql_preview"] = preview_sql(sql)
        if statement_kind:
            self.details["statement_kind"] = statement_kind
