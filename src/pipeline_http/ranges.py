"""响应码范围解析模块

将 "100:399,404,500:599" 形式的配置解析为闭区间列表。
配置校验和请求执行都调用同一个 parse_ranges，两处的判定结果完全一致。
"""

import re
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .exceptions import InvalidRangeSpec

DEFAULT_RANGE_SPEC = "100:399"

_INTEGER = re.compile(r"^[+-]?[0-9]+$")


class StatusRange(BaseModel):
    """闭区间 [low, high]"""

    low: int = Field(..., description="下界（包含）")
    high: int = Field(..., description="上界（包含）")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_order(self) -> "StatusRange":
        if self.low > self.high:
            raise ValueError("low must not be greater than high")
        return self

    def __contains__(self, status: int) -> bool:
        return self.low <= status <= self.high

    def __str__(self) -> str:
        return f"[{self.low}:{self.high}]"


class RangeSpec(BaseModel):
    """有序的闭区间集合"""

    ranges: Tuple[StatusRange, ...] = Field(..., description="闭区间列表")
    source: str = Field(default=DEFAULT_RANGE_SPEC, description="原始配置文本")

    model_config = ConfigDict(frozen=True)

    def matching(self, status: int) -> Optional[StatusRange]:
        """返回第一个包含该状态码的区间"""
        for status_range in self.ranges:
            if status in status_range:
                return status_range
        return None

    def contains(self, status: int) -> bool:
        return self.matching(status) is not None

    def __str__(self) -> str:
        return "[" + ", ".join(str(r) for r in self.ranges) + "]"


def _parse_int(part: str, spec: str) -> int:
    part = part.strip()
    if not _INTEGER.match(part):
        raise InvalidRangeSpec(f"Invalid number {part}", spec=spec)
    return int(part, 10)


def parse_ranges(spec: Optional[str]) -> RangeSpec:
    """解析响应码范围配置

    Args:
        spec: 逗号分隔的范围，每项为 "from:to" 或单个值

    Returns:
        解析后的 RangeSpec，空配置返回默认的 [100:399]

    Raises:
        InvalidRangeSpec: 格式错误、非数字或 from > to
    """
    if spec is None or not spec.strip():
        return RangeSpec(ranges=(StatusRange(low=100, high=399),))

    ranges = []
    for token in spec.split(","):
        from_to = token.strip().split(":")
        if len(from_to) > 2:
            raise InvalidRangeSpec(
                f"Code {token} should be an interval from:to or a single value",
                spec=spec,
            )

        low = _parse_int(from_to[0], spec)
        high = low if len(from_to) == 1 else _parse_int(from_to[1], spec)

        if low > high:
            raise InvalidRangeSpec(
                f"Interval {token} should be FROM less than TO", spec=spec
            )
        ranges.append(StatusRange(low=low, high=high))

    return RangeSpec(ranges=tuple(ranges), source=spec)


def validate_response_codes(spec: Optional[str]) -> Optional[str]:
    """配置时校验响应码范围

    Returns:
        错误信息，校验通过时返回 None
    """
    try:
        parse_ranges(spec)
    except InvalidRangeSpec as e:
        return e.message
    return None
