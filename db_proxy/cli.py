"""
DB Proxy CLI 工具
=================

提供命令行界面来检查代理地址解析、预览SQL改写结果以及经由代理执行查询。

功能特性:
- 地址解析：显示代理前缀识别结果、真实地址和选中的委托驱动
- 改写预览：按当前配置改写一段SQL并显示结果
- 查询执行：经由代理连接执行SQL，支持表格、JSON、CSV输出
- 配置管理：生成和查看代理配置文件

使用示例:
    db-proxy resolve "proxy:sqlite:///app.db"
    db-proxy rewrite "SELECT * FROM users" --kind prepared
    db-proxy query "proxy:sqlite:///app.db" "SELECT * FROM users" --format json
    db-proxy config init
"""

import argparse
import csv
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .core.config import ProxyConfig
from .core.driver import ProxyDriver
from .core.exceptions import DBProxyError
from .core.rewriter import StatementKind
from .drivers import create_default_registry
from .utils.logging_utils import get_logger, setup_logging
from .utils.text_utils import mask_address

logger = get_logger(__name__)

SUPPORTED_FORMATS = ["table", "json", "csv"]


class DBProxyCLI:
    """
    DB Proxy 命令行接口主类

    Attributes:
        config (Optional[ProxyConfig]): 当前使用的代理配置
        config_path (Optional[str]): 配置文件路径，None表示默认路径
    """

    def __init__(self, config_path: Optional[str] = None) -> None:
        self.config_path = config_path
        self.config: Optional[ProxyConfig] = None

    def _ensure_config_loaded(self) -> ProxyConfig:
        """加载配置；配置无效时打印错误并退出"""
        if self.config is None:
            try:
                self.config = ProxyConfig.load(self.config_path)
            except DBProxyError as e:
                logger.error(f"加载配置失败: {e}")
                print(f"❌ 加载配置失败: {e}")
                sys.exit(1)
        return self.config

    def _create_driver(self) -> ProxyDriver:
        return ProxyDriver(create_default_registry(), config=self._ensure_config_loaded())

    def resolve_address(self, args: argparse.Namespace) -> None:
        """显示地址解析结果"""
        driver = self._create_driver()
        address = args.address

        if not driver.accepts(address):
            print(f"➖ 地址不带代理前缀 {driver.scheme!r}，代理驱动不处理")
            return

        real_address = driver.extract_real_address(address)
        print(f"✅ 代理地址: {mask_address(address)}")
        print(f"   真实地址: {mask_address(real_address)}")

        try:
            delegate = driver.find_delegate(real_address)
        except DBProxyError as e:
            print(f"❌ {e}")
            sys.exit(1)

        print(f"   委托驱动: {delegate!r}")

    def rewrite_sql(self, args: argparse.Namespace) -> None:
        """按当前配置改写SQL并输出"""
        config = self._ensure_config_loaded()
        rewriter = config.build_rewriter()

        if rewriter is None:
            print(args.sql)
            return

        try:
            print(rewriter.rewrite(args.sql, StatementKind(args.kind)))
        except DBProxyError as e:
            print(f"❌ {e}")
            sys.exit(1)

    def execute_query(self, args: argparse.Namespace) -> None:
        """经由代理连接执行SQL并显示结果"""
        driver = self._create_driver()
        options = self._parse_options(args.option or [])

        try:
            connection = driver.connect(args.address, options)
        except DBProxyError as e:
            print(f"❌ {e}")
            sys.exit(1)
        except Exception as e:
            logger.error(f"连接失败: {e.__class__.__name__}: {e}")
            print(f"❌ 连接失败: {e.__class__.__name__}: {e}")
            sys.exit(1)

        if connection is None:
            print(f"❌ 地址不带代理前缀 {driver.scheme!r}: {mask_address(args.address)}")
            sys.exit(1)

        try:
            with connection.cursor() as cursor:
                cursor.execute(args.sql)
                logger.info(f"执行SQL: {cursor.last_sql.rewritten}")
                if cursor.description is None:
                    connection.commit()
                    print(f"✅ 执行成功，影响行数: {cursor.rowcount}")
                    return
                results = self._rows_to_dicts(cursor.description, cursor.fetchall())
        except Exception as e:
            logger.error(f"执行失败: {e.__class__.__name__}: {e}")
            print(f"❌ 执行失败: {e.__class__.__name__}: {e}")
            sys.exit(1)
        finally:
            connection.close()

        if args.output:
            self._save_output(results, args.output, args.format)
        else:
            self._display_results(results, args.format)

    def init_config(self, args: argparse.Namespace) -> None:
        """生成默认配置文件"""
        path = Path(self.config_path) if self.config_path else ProxyConfig.default_path()
        if path.exists() and not args.force:
            print(f"❌ 配置文件已存在: {path}（使用 --force 覆盖）")
            sys.exit(1)

        try:
            saved = ProxyConfig().save(path)
        except DBProxyError as e:
            print(f"❌ {e}")
            sys.exit(1)
        print(f"✅ 配置文件已生成: {saved}")

    def show_config(self, _args: argparse.Namespace) -> None:
        """显示当前生效的配置"""
        config = self._ensure_config_loaded()
        print(f"配置文件: {config.config_file}")
        for key, value in config.to_dict().items():
            print(f"  {key} = {value!r}")

    def _parse_options(self, options: List[str]) -> Dict[str, Any]:
        """
        解析 key=value 形式的连接选项

        Raises:
            SystemExit: 选项格式错误时
        """
        parsed: Dict[str, Any] = {}
        for option in options:
            if "=" not in option:
                print(f"❌ 无效的连接选项（应为 key=value）: {option}")
                sys.exit(1)
            key, value = option.split("=", 1)
            parsed[key.strip()] = self._convert_value_type(value.strip())
        return parsed

    def _convert_value_type(self, value: str) -> Any:
        """将字符串转换为合适的类型（bool/int/float/str）"""
        if value.lower() in ("true", "false"):
            return value.lower() == "true"
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            return value

    def _rows_to_dicts(self, description: Sequence[Any], rows: Sequence[Any]) -> List[Dict]:
        headers = [str(column[0]) for column in description]
        return [dict(zip(headers, row)) for row in rows]

    def _display_results(self, results: List[Dict], format: str = "table") -> None:
        """以指定格式显示查询结果"""
        if not results:
            print("没有结果")
            return

        if format == "table":
            self._display_table(results)
        elif format == "json":
            print(json.dumps(results, indent=2, ensure_ascii=False, default=str))
        elif format == "csv":
            writer = csv.DictWriter(sys.stdout, fieldnames=list(results[0].keys()))
            writer.writeheader()
            writer.writerows(results)
        else:
            print(f"❌ 不支持的输出格式: {format}")
            print(f"✅ 支持的格式: {', '.join(SUPPORTED_FORMATS)}")
            sys.exit(1)

    def _display_table(self, results: List[Dict], out: Any = None) -> None:
        """以表格形式显示查询结果"""
        out = out or sys.stdout
        headers = list(results[0].keys())

        max_col_width = 50
        col_widths = {}
        for header in headers:
            width = max([len(str(header))] + [len(str(row.get(header, ""))) for row in results])
            col_widths[header] = min(width, max_col_width)

        separator = "-+-".join(["-" * col_widths[header] for header in headers])
        header_line = " | ".join([f"{header:<{col_widths[header]}}" for header in headers])

        print(separator, file=out)
        print(header_line, file=out)
        print(separator, file=out)
        for row in results:
            row_line = " | ".join(
                [
                    f"{self._truncate_value(str(row.get(header, '')), col_widths[header]):<{col_widths[header]}}"
                    for header in headers
                ]
            )
            print(row_line, file=out)
        print(separator, file=out)
        print(f"总计: {len(results)} 行", file=out)

    def _truncate_value(self, value: str, max_length: int) -> str:
        if len(value) <= max_length:
            return value
        return value[: max_length - 3] + "..."

    def _save_output(self, results: List[Dict], output_path: str, format: str) -> None:
        """
        将查询结果保存到文件

        Raises:
            SystemExit: 保存失败时
        """
        try:
            if format == "json":
                with open(output_path, "w", encoding="utf-8") as f:
                    json.dump(results, f, indent=2, ensure_ascii=False, default=str)
            elif format == "csv":
                with open(output_path, "w", newline="", encoding="utf-8") as f:
                    if results:
                        writer = csv.DictWriter(f, fieldnames=list(results[0].keys()))
                        writer.writeheader()
                        writer.writerows(results)
            else:
                with open(output_path, "w", encoding="utf-8") as f:
                    if results:
                        self._display_table(results, out=f)
            print(f"✅ 结果已保存到: {output_path}")
        except OSError as e:
            logger.error(f"保存结果失败: {e}")
            print(f"❌ 保存结果失败: {e}")
            sys.exit(1)


def create_argument_parser(cli: DBProxyCLI) -> argparse.ArgumentParser:
    """
    创建命令行参数解析器

    Returns:
        argparse.ArgumentParser: 配置好的参数解析器
    """
    parser = argparse.ArgumentParser(
        prog="db-proxy",
        description="DB Proxy - 透明数据库代理驱动工具",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
使用示例:
  db-proxy resolve "proxy:sqlite:///app.db"
  db-proxy rewrite "SELECT * FROM users" --kind prepared
  db-proxy query "proxy:sqlite:///app.db" "SELECT * FROM users" --format json
  db-proxy config init
        """,
    )
    parser.add_argument("--config", help="代理配置文件路径（默认位于用户配置目录）")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="日志级别（输出到stderr）",
    )

    subparsers = parser.add_subparsers(title="可用命令", dest="command")

    resolve_parser = subparsers.add_parser("resolve", help="解析代理地址")
    resolve_parser.add_argument("address", help="连接地址")
    resolve_parser.set_defaults(func=cli.resolve_address)

    rewrite_parser = subparsers.add_parser("rewrite", help="预览SQL改写结果")
    rewrite_parser.add_argument("sql", help="SQL语句")
    rewrite_parser.add_argument(
        "--kind",
        default=StatementKind.PLAIN.value,
        choices=[kind.value for kind in StatementKind],
        help="语句类型",
    )
    rewrite_parser.set_defaults(func=cli.rewrite_sql)

    query_parser = subparsers.add_parser("query", help="经由代理执行SQL")
    query_parser.add_argument("address", help="代理地址")
    query_parser.add_argument("sql", help="SQL语句")
    query_parser.add_argument(
        "--format", default="table", choices=SUPPORTED_FORMATS, help="输出格式"
    )
    query_parser.add_argument("--output", help="输出文件路径")
    query_parser.add_argument(
        "--option", action="append", help="连接选项 key=value，可重复，原样交给委托驱动"
    )
    query_parser.set_defaults(func=cli.execute_query)

    config_parser = subparsers.add_parser("config", help="代理配置管理")
    config_subparsers = config_parser.add_subparsers(title="配置命令", dest="config_command")

    init_parser = config_subparsers.add_parser("init", help="生成默认配置文件")
    init_parser.add_argument("--force", action="store_true", help="覆盖已有配置文件")
    init_parser.set_defaults(func=cli.init_config)

    show_parser = config_subparsers.add_parser("show", help="显示当前配置")
    show_parser.set_defaults(func=cli.show_config)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    DB Proxy CLI 主入口函数

    解析命令行参数并执行相应的操作。
    """
    cli = DBProxyCLI()
    parser = create_argument_parser(cli)
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level, log_to_console=True, log_to_file=False)
    cli.config_path = args.config

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
