"""重定向策略模块

保持旧版客户端的重定向语义：通用HTTP库默认会对更多的方法和状态码跟随重定向，
这里只允许文档中约定的组合。
"""

from typing import Union

from ..models import HttpMode

REDIRECT_METHODS = ("GET", "HEAD")

MOVED_PERMANENTLY = 301
MOVED_TEMPORARILY = 302
SEE_OTHER = 303
TEMPORARY_REDIRECT = 307
PERMANENT_REDIRECT = 308

REDIRECT_STATUSES = (
    MOVED_PERMANENTLY,
    MOVED_TEMPORARILY,
    SEE_OTHER,
    TEMPORARY_REDIRECT,
    PERMANENT_REDIRECT,
)


def is_redirectable(method: Union[str, HttpMode]) -> bool:
    """只有GET和HEAD可以被重定向"""
    name = method.value if isinstance(method, HttpMode) else str(method)
    return name.upper() in REDIRECT_METHODS


def should_redirect(
    method: Union[str, HttpMode], status: int, has_location_header: bool
) -> bool:
    """判断是否跟随重定向

    Args:
        method: 原请求的HTTP方法
        status: 响应状态码
        has_location_header: 响应是否带有Location头

    Returns:
        True 表示应该跟随
    """
    if status == MOVED_TEMPORARILY:
        return is_redirectable(method) and has_location_header
    if status in (MOVED_PERMANENTLY, TEMPORARY_REDIRECT, PERMANENT_REDIRECT):
        return is_redirectable(method)
    if status == SEE_OTHER:
        return True
    return False


def redirect_method(method: Union[str, HttpMode], status: int) -> str:
    """重定向后使用的方法，303 总是转为 GET（HEAD 保持不变）"""
    name = method.value if isinstance(method, HttpMode) else str(method).upper()
    if status == SEE_OTHER and name != "HEAD":
        return "GET"
    return name
