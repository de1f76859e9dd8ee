"""请求构建模块

将不可变的 RequestSpec 转换为可发送的 OutgoingRequest：
选择方法语义、编码请求体或参数、组装请求头和multipart内容。
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, List, Optional, Sequence, Union
from urllib.parse import quote_plus, urlencode

import aiohttp
from multidict import CIMultiDict
from yarl import URL

from ..exceptions import InvalidUrl, IOFailure
from ..models import FormDataPart, HttpMode, NameValuePair, RequestSpec

CONTENT_TYPE = "Content-Type"
ACCEPT = "Accept"

DEFAULT_TEXT_CONTENT_TYPE = "text/plain; charset=UTF-8"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
OCTET_STREAM = "application/octet-stream"

# 不能携带请求体的方法
ENTITYLESS_METHODS = (HttpMode.HEAD, HttpMode.GET, HttpMode.OPTIONS)
# 文件上传只对这两个方法生效
UPLOAD_METHODS = (HttpMode.POST, HttpMode.PUT)


def encode_params(params: Sequence[NameValuePair]) -> str:
    """URL编码参数

    请求体和查询字符串使用同一种编码，保证两种发送方式的结果一致
    """
    return urlencode([p.as_tuple() for p in params], quote_via=quote_plus)


def append_query(url: str, query: str) -> str:
    """把已编码的查询字符串追加到URL"""
    if not query:
        return url
    return url + ("&" if "?" in url else "?") + query


def check_url(url: str) -> URL:
    """校验URL格式

    Raises:
        InvalidUrl: 不是带主机名的 http/https 绝对地址
    """
    try:
        parsed = URL(url.strip())
    except (ValueError, TypeError) as e:
        raise InvalidUrl(url, str(e))

    if parsed.scheme not in ("http", "https"):
        raise InvalidUrl(url, f"unsupported scheme '{parsed.scheme}'")
    if not parsed.host:
        raise InvalidUrl(url, "missing host")
    return parsed


@dataclass
class OutgoingRequest:
    """可发送的请求

    持有打开的上传文件，发送完成后必须调用 close()
    """

    method: str
    url: str
    headers: CIMultiDict = field(default_factory=CIMultiDict)
    data: Any = None
    has_entity: bool = False
    _open_files: List[BinaryIO] = field(default_factory=list, repr=False)

    @property
    def url_object(self) -> URL:
        # URL已经编码过，避免yarl再次转义查询字符串
        return URL(self.url, encoded=True)

    @property
    def body_text(self) -> Optional[str]:
        """文本或表单请求体，流式内容返回 None"""
        if isinstance(self.data, bytes):
            return self.data.decode("utf-8")
        return None

    def close(self) -> None:
        """关闭所有打开的上传文件"""
        while self._open_files:
            handle = self._open_files.pop()
            handle.close()

    def __enter__(self) -> "OutgoingRequest":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class RequestBuilder:
    """请求构建器

    Args:
        workspace: 上传文件相对路径的基准目录
    """

    def __init__(self, workspace: Union[str, Path] = "."):
        self.workspace = Path(workspace)

    @staticmethod
    def carries_entity(method: HttpMode, allow_get_body: bool = False) -> bool:
        """判断方法是否携带请求体"""
        if method is HttpMode.GET:
            return allow_get_body
        return method not in ENTITYLESS_METHODS

    def build(self, spec: RequestSpec) -> OutgoingRequest:
        """构建请求

        Raises:
            InvalidUrl: URL格式错误
            IOFailure: 上传文件无法读取
        """
        base_url = str(check_url(spec.url))
        headers = self._build_headers(spec)
        request = OutgoingRequest(method=spec.method.value, url=base_url, headers=headers)

        if not self.carries_entity(spec.method, spec.allow_get_body):
            # 无请求体的方法：参数作为查询字符串，请求体被忽略
            if spec.params:
                request.url = append_query(base_url, encode_params(spec.params))
            return request

        request.has_entity = True
        try:
            if spec.form_data:
                request.data = self._multipart_from_parts(spec.form_data, request)
                headers.popall(CONTENT_TYPE, None)
            elif spec.upload_file and spec.method in UPLOAD_METHODS:
                self._attach_upload(spec, request)
            elif spec.body:
                request.data = spec.body.encode("utf-8")
                headers.setdefault(CONTENT_TYPE, DEFAULT_TEXT_CONTENT_TYPE)
            else:
                request.data = encode_params(spec.params).encode("ascii")
                headers.setdefault(CONTENT_TYPE, FORM_CONTENT_TYPE)
        except BaseException:
            request.close()
            raise

        return request

    def _build_headers(self, spec: RequestSpec) -> CIMultiDict:
        headers: CIMultiDict = CIMultiDict()
        if spec.content_type.is_set:
            headers.add(CONTENT_TYPE, spec.content_type.value)
        if spec.accept_type.is_set:
            headers.add(ACCEPT, spec.accept_type.value)
        for header in spec.headers:
            headers.add(header.name, header.value)
        return headers

    def resolve_path(self, path: str) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.workspace / candidate
        return candidate

    def _open(self, path: str, request: OutgoingRequest) -> BinaryIO:
        resolved = self.resolve_path(path)
        try:
            handle = open(resolved, "rb")
        except OSError as e:
            raise IOFailure(
                f"Cannot read upload file: {e.strerror or e}",
                file_path=str(resolved),
                operation="read",
            )
        request._open_files.append(handle)
        return handle

    def _attach_upload(self, spec: RequestSpec, request: OutgoingRequest) -> None:
        """上传单个文件，直接作为请求体或包装为multipart"""
        content_type = request.headers.get(CONTENT_TYPE, OCTET_STREAM)
        handle = self._open(spec.upload_file, request)

        if spec.wrap_as_multipart:
            writer = aiohttp.MultipartWriter("form-data")
            part = writer.append(handle, {CONTENT_TYPE: content_type})
            part.set_content_disposition(
                "form-data",
                name=spec.multipart_name,
                filename=Path(spec.upload_file).name,
            )
            request.headers.popall(CONTENT_TYPE, None)
            request.data = writer
        else:
            request.headers[CONTENT_TYPE] = content_type
            request.data = handle

    def _multipart_from_parts(
        self, parts: Sequence[FormDataPart], request: OutgoingRequest
    ) -> aiohttp.MultipartWriter:
        """组装multipart/form-data，文件部分以流的方式发送"""
        writer = aiohttp.MultipartWriter("form-data")
        for form_part in parts:
            if form_part.upload_file:
                handle = self._open(form_part.upload_file, request)
                part = writer.append(
                    handle, {CONTENT_TYPE: form_part.content_type or OCTET_STREAM}
                )
                part.set_content_disposition(
                    "form-data",
                    name=form_part.name,
                    filename=form_part.file_name or Path(form_part.upload_file).name,
                )
            else:
                part = writer.append(
                    form_part.body or "",
                    {CONTENT_TYPE: form_part.content_type or DEFAULT_TEXT_CONTENT_TYPE},
                )
                if form_part.file_name:
                    part.set_content_disposition(
                        "form-data", name=form_part.name, filename=form_part.file_name
                    )
                else:
                    part.set_content_disposition("form-data", name=form_part.name)
        return writer
