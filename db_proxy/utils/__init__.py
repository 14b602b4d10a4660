"""
代理驱动工具模块

提供日志管理、路径处理和文本脱敏等通用工具，供代理层各模块使用。

使用示例：
    >>> from db_proxy.utils import get_logger, setup_logging, mask_address
    >>>
    >>> setup_logging(level="DEBUG", log_to_console=True, log_to_file=False)
    >>> logger = get_logger(__name__)
    >>> logger.info(f"连接地址: {mask_address('proxy:mysql://u:p@h/db')}")
"""

from .logging_utils import get_logger, set_log_level, setup_logging
from .path_utils import PathHelper
from .text_utils import mask_address, preview_sql

__all__ = [
    # ==================== 日志管理模块 ====================
    "setup_logging",
    "get_logger",
    "set_log_level",
    # ==================== 路径处理模块 ====================
    "PathHelper",
    # ==================== 文本脱敏模块 ====================
    "mask_address",
    "preview_sql",
]
