"""命令行界面模块

使用 Rich 库提供美化的命令行体验
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import __version__
from .build_log import BuildLog
from .config import AuthenticatorRegistry, get_config, get_registry
from .credentials import Credential, InMemoryCredentialStore
from .exceptions import ConfigurationError, HttpRequestException, ValidationFailure
from .execution import HttpRequestExecution
from .models import HttpHeader, HttpMode, MimeType, NameValuePair, ResponseResult, StepConfig

_credentials_adapter: TypeAdapter = TypeAdapter(List[Credential])


def parse_header(value: str) -> HttpHeader:
    """解析 'Name: value' 形式的请求头"""
    name, sep, header_value = value.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Invalid header '{value}', expected 'Name: value'")
    return HttpHeader(name=name.strip(), value=header_value.strip())


def parse_param(value: str) -> NameValuePair:
    """解析 'name=value' 形式的参数"""
    name, sep, param_value = value.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"Invalid parameter '{value}', expected 'name=value'")
    return NameValuePair(name=name, value=param_value)


def load_credentials(path: Path) -> InMemoryCredentialStore:
    """从 JSON 文件加载凭据列表"""
    try:
        credentials = _credentials_adapter.validate_json(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read credentials file: {e.strerror or e}",
            config_key="credentials",
            config_value=str(path),
        )
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid credentials file: {e.error_count()} validation error(s)",
            config_key="credentials",
            config_value=str(path),
        )
    return InMemoryCredentialStore({c.id: c for c in credentials})


class CLIApplication:
    """命令行应用程序"""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def create_parser(self) -> argparse.ArgumentParser:
        """创建命令行参数解析器"""
        methods = [mode.value for mode in HttpMode]
        mime_types = [mime.value for mime in MimeType if mime.is_set]

        parser = argparse.ArgumentParser(
            prog="pipeline-http",
            description="构建流水线中的HTTP请求步骤",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
使用示例:
  pipeline-http https://example.com/health
  pipeline-http -X POST -d '{"a": 1}' --content-type application/json https://example.com/api
  pipeline-http -X POST -p user=admin -p token=abc https://example.com/login
  pipeline-http --auth deploy-key --valid-codes 200:204 https://example.com/deploy
  pipeline-http --valid-content OK --print-body https://example.com/status
  pipeline-http -o report.html https://example.com/report  # 保存响应体
            """,
        )

        parser.add_argument("url", nargs="?", help="请求URL")
        parser.add_argument(
            "-X", "--method", choices=methods, default="GET", help="HTTP方法 (默认: GET)"
        )
        parser.add_argument(
            "-H",
            "--header",
            action="append",
            type=parse_header,
            default=[],
            help="自定义请求头 'Name: value'，可重复",
        )
        parser.add_argument("-d", "--data", help="请求体")
        parser.add_argument(
            "-p",
            "--param",
            action="append",
            type=parse_param,
            default=[],
            help="请求参数 name=value，可重复",
        )
        parser.add_argument("--content-type", choices=mime_types, help="Content-Type")
        parser.add_argument("--accept", choices=mime_types, help="Accept")
        parser.add_argument("--upload", help="上传文件 (POST/PUT)")
        parser.add_argument(
            "--multipart-name", default="file", help="multipart文件字段名 (默认: file)"
        )
        parser.add_argument(
            "--raw-upload", action="store_true", help="直接以文件内容作为请求体，不使用multipart"
        )

        # 认证
        parser.add_argument("--auth", default="", help="认证器键名或凭据ID")
        parser.add_argument("--ntlm", action="store_true", help="用户名/密码凭据使用NTLM")
        parser.add_argument("--credentials", type=Path, help="凭据JSON文件")
        parser.add_argument("--registry", type=Path, help="认证器配置JSON文件")

        # 传输
        parser.add_argument("--timeout", type=int, help="超时时间(秒)，0表示不设置")
        parser.add_argument("--insecure", action="store_true", help="忽略SSL证书错误")
        parser.add_argument("--proxy", default="", help="代理地址")
        parser.add_argument("--proxy-auth", default="", help="代理凭据ID")
        parser.add_argument(
            "--system-proxy", action="store_true", help="读取环境变量中的代理设置"
        )

        # 校验与输出
        parser.add_argument("--valid-codes", help="允许的响应码，例如 100:399,404")
        parser.add_argument("--valid-content", default="", help="响应中必须包含的内容")
        parser.add_argument("--print-body", action="store_true", help="在日志中输出响应体")
        parser.add_argument("-o", "--output", help="把响应体写入文件")
        parser.add_argument("-q", "--quiet", action="store_true", help="不输出请求细节")
        parser.add_argument("-v", "--verbose", action="store_true", help="显示响应头")

        parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

        return parser

    def build_step(self, args: argparse.Namespace) -> StepConfig:
        """把命令行参数转换为步骤配置，未指定的项使用全局配置"""
        config = get_config()
        return StepConfig(
            url=args.url,
            http_mode=HttpMode(args.method),
            request_body=args.data,
            custom_headers=args.header,
            query_params=args.param,
            content_type=MimeType(args.content_type or ""),
            accept_type=MimeType(args.accept or ""),
            authentication=args.auth,
            use_ntlm=args.ntlm,
            timeout=args.timeout if args.timeout is not None else config.timeout,
            ignore_ssl_errors=args.insecure,
            http_proxy=args.proxy,
            proxy_authentication=args.proxy_auth,
            use_system_properties=args.system_proxy or config.use_system_properties,
            valid_response_codes=args.valid_codes or config.valid_response_codes,
            valid_response_content=args.valid_content,
            console_log_response_body=args.print_body,
            quiet=args.quiet,
            output_file=args.output,
            upload_file=args.upload,
            multipart_name=args.multipart_name,
            wrap_as_multipart=not args.raw_upload,
        )

    def print_result(self, result: ResponseResult, verbose: bool = False) -> None:
        """打印成功结果"""
        success_text = Text(f"✅ 请求成功: HTTP {result.status}", style="bold green")
        self.console.print(Panel(success_text, border_style="green"))

        if verbose and result.headers:
            table = Table(title="响应头", show_header=False, border_style="dim")
            table.add_column("名称", style="bold cyan")
            table.add_column("值", style="white")
            for name, values in result.headers.items():
                for value in values:
                    table.add_row(name, value)
            self.console.print(table)

    def print_error(self, error: str):
        """打印错误信息"""
        error_text = Text(f"❌ 错误: {error}")
        error_text.stylize("bold red")
        self.console.print(Panel(error_text, border_style="red"))

    async def run_request(self, args: argparse.Namespace) -> int:
        """执行请求"""
        try:
            step = self.build_step(args)
            registry = (
                AuthenticatorRegistry(args.registry) if args.registry else get_registry()
            )
            if args.registry:
                registry.load()
            store = load_credentials(args.credentials) if args.credentials else None

            execution = HttpRequestExecution.from_step(step, registry, store)
            result = await execution.run(BuildLog(self.console))

        except ValidationFailure as e:
            self.print_error(e.message)
            return 1
        except HttpRequestException as e:
            self.print_error(str(e))
            return 1
        except ValidationError as e:
            self.print_error(f"参数无效: {e.error_count()} 个错误")
            return 1
        except KeyboardInterrupt:
            self.console.print("\n🛑 用户取消请求")
            return 1

        if not args.quiet:
            self.print_result(result, args.verbose)
        return 0

    async def main(self, argv=None) -> int:
        """主入口函数"""
        parser = self.create_parser()
        args = parser.parse_args(argv)

        # 验证URL参数
        if not args.url:
            parser.print_help()
            return 1

        return await self.run_request(args)


def main(argv=None):
    """CLI入口点 - 同步包装器"""
    app = CLIApplication()

    try:
        return asyncio.run(app.main(argv))
    except KeyboardInterrupt:
        print("\n🛑 程序被用户中断")
        return 1


if __name__ == "__main__":
    sys.exit(main())
