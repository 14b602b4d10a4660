"""
代理驱动日志配置模块

封装Python标准库logging模块，为代理驱动提供统一的日志配置入口。
代理层各模块通过 get_logger(__name__) 获取logger，日志统一汇聚到
"db_proxy" 命名空间下，由应用决定输出位置。

主要功能：
- setup_logging: 快速配置日志系统（滚动文件/控制台）
- get_logger: 获取指定名称的logger
- set_log_level: 动态调整日志级别
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

from .path_utils import PathHelper

# 默认日志格式 - 包含时间、模块名、级别、消息和源码位置
DEFAULT_LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s "
    + "[%(filename)s:%(lineno)d]"
)

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def setup_logging(
    app_name: str = "db_proxy",
    level: str = "INFO",
    log_to_console: bool = False,
    log_to_file: bool = True,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    log_format: str | None = None,
    log_dir: str | None = None,
) -> logging.Logger:
    """
    配置并初始化应用程序的日志系统

    Args:
        app_name (str): 应用名称，同时作为logger名称和日志文件名，默认"db_proxy"
        level (str): 日志级别，可选值：DEBUG, INFO, WARNING, ERROR, CRITICAL
        log_to_console (bool): 是否输出到控制台（stderr），默认False
        log_to_file (bool): 是否输出到滚动日志文件，默认True
        max_file_size (int): 单个日志文件最大大小（字节），默认10MB
        backup_count (int): 保留的备份日志文件数量，默认5个
        log_format (str | None): 自定义日志格式，None时使用默认格式
        log_dir (str | None): 自定义日志目录，None时使用用户配置目录下的logs

    Returns:
        logging.Logger: 配置好的应用logger

    Raises:
        ValueError: 当日志级别无效或未启用任何输出方式时
        OSError: 当无法创建日志目录或文件时

    Example:
        >>> logger = setup_logging(level="DEBUG", log_to_console=True, log_to_file=False)
        >>> logger.info("代理驱动启动")
    """
    log_level = _validate_log_level(level)

    if not log_to_file and not log_to_console:
        raise ValueError("至少需要启用一种日志输出方式（控制台或文件）")

    format_to_use = log_format if log_format is not None else DEFAULT_LOG_FORMAT
    formatter = logging.Formatter(format_to_use)

    # 获取应用专用logger（避免使用root logger）
    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)

    # 清除已有的handler，避免重复配置导致的重复日志
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    log_file = None
    log_file_exists = True

    if log_to_file:
        if log_dir is None:
            log_dir_path = PathHelper.get_user_config_dir(app_name) / "logs"
        else:
            log_dir_path = Path(log_dir)

        try:
            log_dir_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OSError(f"无法创建日志目录 {log_dir_path}: {str(e)}")

        log_file = log_dir_path / f"{app_name}.log"
        log_file_exists = os.path.exists(log_file)

        try:
            file_handler = logging.handlers.RotatingFileHandler(
                filename=str(log_file),
                maxBytes=max_file_size,
                backupCount=backup_count,
                encoding="utf-8",
            )
        except OSError as e:
            raise OSError(f"无法创建日志文件 {log_file}: {str(e)}")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        logger.addHandler(file_handler)

    if log_to_console:
        # 使用stderr，避免与CLI的查询结果输出混在一起
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(log_level)
        logger.addHandler(console_handler)

    if not log_file_exists:
        logger.info(
            f"日志系统初始化完成 - 应用: {app_name}, "
            f"级别: {level.upper()}, 日志文件: {log_file}"
        )

    return logger


def _validate_log_level(level: str) -> int:
    """
    验证并转换日志级别字符串为对应的logging常量

    Raises:
        ValueError: 当日志级别无效时
    """
    level_upper = str(level).upper()
    if level_upper not in VALID_LOG_LEVELS:
        raise ValueError(f"无效的日志级别: '{level}'，有效值为: {VALID_LOG_LEVELS}")
    return LOG_LEVEL_MAP[level_upper]


def get_logger(name: str) -> logging.Logger:
    """
    获取指定名称的logger实例

    Args:
        name (str): logger名称，通常使用模块名（__name__）

    Returns:
        logging.Logger: logger实例
    """
    return logging.getLogger(name)


def set_log_level(logger_name: str, level: str) -> None:
    """
    动态设置指定logger及其所有handler的日志级别

    Raises:
        ValueError: 当日志级别无效时
    """
    log_level = _validate_log_level(level)
    logger = get_logger(logger_name)
    logger.setLevel(log_level)

    for handler in logger.handlers:
        handler.setLevel(log_level)
