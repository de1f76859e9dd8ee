"""结果输出模块

负责把响应写入构建日志和输出文件，并把结果交还调用方。
响应体的日志输出发生在校验之前，失败的调用也能在日志中看到响应内容。
"""

from pathlib import Path
from typing import Optional, Union

import aiofiles

from ..build_log import BuildLog
from ..exceptions import IOFailure
from ..models import ResponseResult


class ResultSink:
    """结果输出

    Args:
        log: 构建日志
        console_echo: 是否把响应体写入构建日志
        output_file: 输出文件路径，为空时不写文件
        workspace: 相对路径的基准目录
    """

    def __init__(
        self,
        log: BuildLog,
        console_echo: bool = False,
        output_file: Optional[str] = None,
        workspace: Union[str, Path] = ".",
    ):
        self.log = log
        self.console_echo = console_echo
        self.output_file = output_file
        self.workspace = Path(workspace)

    def resolve_output_path(self) -> Optional[Path]:
        if not self.output_file:
            return None
        path = Path(self.output_file)
        if not path.is_absolute():
            path = self.workspace / path
        return path

    def echo(self, result: ResponseResult) -> None:
        """把响应体写入构建日志"""
        if self.console_echo:
            self.log.println(f"Response: \n{result.content}")

    async def write_output(self, result: ResponseResult) -> Optional[Path]:
        """以UTF-8写入响应体，覆盖已存在的文件；响应体为空时不做任何事

        Raises:
            IOFailure: 文件无法写入
        """
        path = self.resolve_output_path()
        if path is None:
            return None
        if result.content is None:
            return None

        self.log.println(f"Saving response body to {path}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "w", encoding="utf-8", newline="") as f:
                await f.write(result.content)
        except OSError as e:
            raise IOFailure(
                f"Failed to write response body: {e.strerror or e}",
                file_path=str(path),
                operation="write",
            )
        return path

    async def finalize(self, result: ResponseResult) -> ResponseResult:
        """输出日志和文件，返回结果"""
        self.echo(result)
        await self.write_output(result)
        return result
