"""响应校验模块

状态码和内容校验在执行器的任何结果之后都会运行，合成的 404/408 也不例外，
因此调用方可以通过放宽状态码范围让传输失败变为非致命。
"""

from typing import Optional

from ..build_log import BuildLog
from ..exceptions import ContentMismatch, UnacceptableStatus
from ..models import ResponseResult
from ..ranges import RangeSpec


class ResponseValidator:
    """响应校验器

    Args:
        log: 构建日志，可为空
    """

    def __init__(self, log: Optional[BuildLog] = None):
        self.log = log

    def validate_status(self, result: ResponseResult, range_spec: RangeSpec) -> None:
        """校验状态码

        Raises:
            UnacceptableStatus: 状态码不在任何区间内
        """
        matched = range_spec.matching(result.status)
        if matched is None:
            raise UnacceptableStatus(result.status, range_spec.source, response=result)
        if self.log:
            self.log.println(f"Success: Status code {result.status} is in the accepted range: {matched}")

    def validate_content(self, result: ResponseResult, required: Optional[str]) -> None:
        """校验响应内容包含指定子串（区分大小写）

        Raises:
            ContentMismatch: 内容中找不到子串
        """
        if not required:
            return
        content = result.content or ""
        if required not in content:
            raise ContentMismatch(required, len(content), response=result)

    def validate(
        self, result: ResponseResult, range_spec: RangeSpec, required: Optional[str]
    ) -> None:
        self.validate_status(result, range_spec)
        self.validate_content(result, required)
