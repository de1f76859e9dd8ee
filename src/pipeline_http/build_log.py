"""构建日志模块

请求细节、警告和响应内容都写入调用方的构建日志（Rich 控制台）。
日志内容来自外部（URL、响应体），因此关闭 Rich 标记解析。
"""

from typing import IO, Optional

from rich.console import Console


class BuildLog:
    """构建日志

    Args:
        console: 输出用的 Rich 控制台，默认写到标准输出
        quiet: 静默模式，不输出任何内容
    """

    def __init__(self, console: Optional[Console] = None, quiet: bool = False):
        self.console = console or Console(quiet=quiet)
        if quiet:
            self.console.quiet = True

    @classmethod
    def to_file(cls, file: IO[str], quiet: bool = False) -> "BuildLog":
        """写入文本流（例如测试中的 StringIO）"""
        return cls(Console(file=file, width=200, color_system=None, quiet=quiet))

    @property
    def quiet(self) -> bool:
        return self.console.quiet

    def println(self, message: str = "") -> None:
        self.console.print(message, markup=False, highlight=False, soft_wrap=True)

    def warning(self, message: str) -> None:
        self.console.print(
            f"WARNING: {message}",
            markup=False,
            highlight=False,
            soft_wrap=True,
            style="yellow",
        )
