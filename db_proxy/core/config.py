"""
代理配置模块

使用 TOML 格式保存代理自身的选项（读取使用标准库 tomllib，写入使用 tomli_w）。
这些选项只属于代理层：连接选项原样交给委托驱动，代理从不读取或修改其中的键。

配置文件示例（默认位于用户配置目录下的 db_proxy/proxy.toml）：

    [proxy]
    scheme = "proxy:"
    rewrite_enabled = true
    rewriter = "comment_tag"
    comment_tag = "app=billing"
    failure_policy = "open"
    wrap_results = true
    hidden_columns = ["password_hash"]
"""

import tomllib
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import tomli_w

from ..utils.logging_utils import get_logger
from ..utils.path_utils import PathHelper
from .exceptions import ConfigError, InvalidArgumentError
from .resultset import ResultFilter
from .rewriter import CommentTagRewriter, FailurePolicy, IdentityRewriter, SqlRewriter

logger = get_logger(__name__)

DEFAULT_APP_NAME = "db_proxy"
DEFAULT_CONFIG_FILE = "proxy.toml"
CONFIG_SECTION = "proxy"

DEFAULT_SCHEME = "proxy:"

REWRITER_IDENTITY = "identity"
REWRITER_COMMENT_TAG = "comment_tag"
SUPPORTED_REWRITERS = (REWRITER_IDENTITY, REWRITER_COMMENT_TAG)

DEFAULT_OPTIONS: Dict[str, Any] = {
    "scheme": DEFAULT_SCHEME,
    "rewrite_enabled": True,
    "rewriter": REWRITER_IDENTITY,
    "comment_tag": "",
    "failure_policy": FailurePolicy.FAIL_OPEN.value,
    "wrap_results": True,
    "hidden_columns": [],
}

# 各选项期望的类型
OPTION_TYPES: Dict[str, type] = {
    "scheme": str,
    "rewrite_enabled": bool,
    "rewriter": str,
    "comment_tag": str,
    "failure_policy": str,
    "wrap_results": bool,
    "hidden_columns": list,
}


class ProxyConfig:
    """
    代理选项

    Attributes:
        scheme (str): 代理地址前缀
        rewrite_enabled (bool): 是否改写SQL
        rewriter (str): 内置改写器名称（identity / comment_tag）
        comment_tag (str): comment_tag 改写器使用的标记
        failure_policy (str): 改写失败策略（open / closed）
        wrap_results (bool): 是否用 ResultSetProxy 包装结果游标
        hidden_columns (List[str]): 结果中隐藏的列
        config_file (Optional[str]): 配置来源文件

    Example:
        >>> config = ProxyConfig(rewriter="comment_tag", comment_tag="app=billing")
        >>> config.build_rewriter().rewrite("SELECT 1")
        'SELECT 1 /* app=billing */'
    """

    def __init__(self, config_file: Optional[str] = None, **options: Any) -> None:
        """
        初始化代理选项

        Args:
            config_file: 选项来源文件，仅用于错误信息
            **options: 覆盖默认值的选项

        Raises:
            ConfigError: 当存在未知选项或选项值无效时
        """
        self.config_file = config_file

        unknown = sorted(set(options) - set(DEFAULT_OPTIONS))
        if unknown:
            raise ConfigError(
                f"未知的代理配置项: {', '.join(unknown)}",
                config_file=config_file,
                config_key=unknown[0],
            )

        merged = {**DEFAULT_OPTIONS, **options}
        if isinstance(merged["hidden_columns"], (list, tuple)):
            merged["hidden_columns"] = list(merged["hidden_columns"])
        self._validate(merged)
        self._options = merged

    def _validate(self, options: Dict[str, Any]) -> None:
        for key, expected_type in OPTION_TYPES.items():
            value = options[key]
            # bool 是 int 的子类，这里要求严格匹配
            if type(value) is not expected_type:
                raise ConfigError(
                    f"配置项 {key} 类型错误，期望 {expected_type.__name__}，"
                    f"实际 {type(value).__name__}",
                    config_file=self.config_file,
                    config_key=key,
                )

        if not options["scheme"]:
            raise ConfigError(
                "代理地址前缀不能为空", config_file=self.config_file, config_key="scheme"
            )

        if options["rewriter"] not in SUPPORTED_REWRITERS:
            raise ConfigError(
                f"不支持的改写器: {options['rewriter']}，支持: {', '.join(SUPPORTED_REWRITERS)}",
                config_file=self.config_file,
                config_key="rewriter",
            )

        policies = [policy.value for policy in FailurePolicy]
        if options["failure_policy"] not in policies:
            raise ConfigError(
                f"无效的改写失败策略: {options['failure_policy']}，有效值为: {policies}",
                config_file=self.config_file,
                config_key="failure_policy",
            )

        for column in options["hidden_columns"]:
            if not isinstance(column, str) or not column:
                raise ConfigError(
                    f"无效的隐藏列名: {column!r}",
                    config_file=self.config_file,
                    config_key="hidden_columns",
                )

        if options["rewriter"] == REWRITER_COMMENT_TAG:
            try:
                CommentTagRewriter(options["comment_tag"])
            except InvalidArgumentError as e:
                raise ConfigError(
                    f"comment_tag 无效: {e.message}",
                    config_file=self.config_file,
                    config_key="comment_tag",
                ) from e

    @property
    def scheme(self) -> str:
        return self._options["scheme"]

    @property
    def rewrite_enabled(self) -> bool:
        return self._options["rewrite_enabled"]

    @property
    def rewriter(self) -> str:
        return self._options["rewriter"]

    @property
    def comment_tag(self) -> str:
        return self._options["comment_tag"]

    @property
    def failure_policy(self) -> str:
        return self._options["failure_policy"]

    @property
    def wrap_results(self) -> bool:
        return self._options["wrap_results"]

    @property
    def hidden_columns(self) -> List[str]:
        return list(self._options["hidden_columns"])

    def to_dict(self) -> Dict[str, Any]:
        """返回选项字典的副本"""
        options = dict(self._options)
        options["hidden_columns"] = list(options["hidden_columns"])
        return options

    def build_rewriter(self) -> Optional[SqlRewriter]:
        """
        按配置创建改写器

        Returns:
            Optional[SqlRewriter]: 改写器；rewrite_enabled 为 False 时返回 None
        """
        if not self.rewrite_enabled:
            return None
        if self.rewriter == REWRITER_COMMENT_TAG:
            return CommentTagRewriter(self.comment_tag, failure_policy=self.failure_policy)
        return IdentityRewriter(failure_policy=self.failure_policy)

    def build_result_filter(self) -> Optional[ResultFilter]:
        """
        按配置创建结果过滤规则

        Returns:
            Optional[ResultFilter]: 过滤规则；wrap_results 为 False 时返回 None
        """
        if not self.wrap_results:
            return None
        return ResultFilter(hidden_columns=self.hidden_columns)

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], config_file: Optional[str] = None
    ) -> "ProxyConfig":
        """
        从字典创建配置

        Args:
            data: [proxy] 表的内容
            config_file: 数据来源文件

        Raises:
            ConfigError: 数据不是字典或选项无效时
        """
        if not isinstance(data, Mapping):
            raise ConfigError(
                f"[{CONFIG_SECTION}] 配置必须是表", config_file=config_file
            )
        return cls(config_file=config_file, **dict(data))

    @staticmethod
    def default_path(app_name: str = DEFAULT_APP_NAME) -> Path:
        """默认配置文件路径"""
        return PathHelper.get_user_config_dir(app_name) / DEFAULT_CONFIG_FILE

    @classmethod
    def load(
        cls, path: Optional[str | Path] = None, app_name: str = DEFAULT_APP_NAME
    ) -> "ProxyConfig":
        """
        从 TOML 文件加载配置

        文件不存在时返回默认配置。

        Args:
            path: 配置文件路径，None时使用默认路径
            app_name: 应用名称，用于确定默认路径

        Returns:
            ProxyConfig: 加载的配置

        Raises:
            ConfigError: 文件无法读取、不是合法 TOML 或选项无效时
        """
        config_path = Path(path) if path is not None else cls.default_path(app_name)

        if not config_path.exists():
            logger.debug(f"配置文件不存在，使用默认配置: {config_path}")
            return cls(config_file=str(config_path))

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"解析配置文件失败: {config_path}: {e}")
            raise ConfigError(
                f"配置文件格式错误: {str(e)}", config_file=str(config_path)
            ) from e
        except OSError as e:
            logger.error(f"读取配置文件失败: {config_path}: {e}")
            raise ConfigError(
                f"配置文件读取失败: {str(e)}",
                error_code="CONFIG_IO",
                config_file=str(config_path),
            ) from e

        config = cls.from_dict(data.get(CONFIG_SECTION, {}), config_file=str(config_path))
        logger.debug(f"配置文件加载成功: {config_path}")
        return config

    def save(self, path: Optional[str | Path] = None, app_name: str = DEFAULT_APP_NAME) -> Path:
        """
        将配置保存为 TOML 文件

        Args:
            path: 目标路径，None时使用默认路径
            app_name: 应用名称，用于确定默认路径

        Returns:
            Path: 实际写入的文件路径

        Raises:
            ConfigError: 文件写入失败时
        """
        config_path = Path(path) if path is not None else self.default_path(app_name)

        try:
            PathHelper.ensure_dir_exists(config_path.parent)
            with open(config_path, "wb") as f:
                f.write(tomli_w.dumps({CONFIG_SECTION: self.to_dict()}).encode("utf-8"))
        except OSError as e:
            logger.error(f"保存配置文件失败: {config_path}: {e}")
            raise ConfigError(
                f"配置文件保存失败: {str(e)}",
                error_code="CONFIG_IO",
                config_file=str(config_path),
            ) from e

        self.config_file = str(config_path)
        logger.info(f"配置文件已保存: {config_path}")
        return config_path

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProxyConfig):
            return NotImplemented
        return self._options == other._options

    def __repr__(self) -> str:
        options = ", ".join(f"{key}={value!r}" for key, value in self._options.items())
        return f"ProxyConfig({options})"
