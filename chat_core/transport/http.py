"""HTTP 传输层。

两种调用方式：

1. send: 一次性请求/响应，返回 (body, status)。
2. stream: 打开字节流，逐行交给 SSELineParser，惰性产出 SSEEvent。

两者都会校验状态码（必须在 [200, 300) 区间），并把 httpx 的网络异常
统一包装为 TransportError。实例由调用方显式构造并注入 Provider，
不使用进程级单例。
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

import httpx

from chat_core.domain.exceptions import InvalidResponseError, RateLimitError, TransportError
from chat_core.domain.models import SSEEvent
from chat_core.infrastructure.logging.logger import log_event, network_logger, stream_logger
from chat_core.transport.sse import SSELineParser

# 错误信息里保留的响应体长度上限
_ERROR_BODY_LIMIT = 500


@dataclass
class HttpRequest:
    """一次待发送的 HTTP 请求（JSON 请求体）。"""

    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    json_body: Optional[Dict[str, Any]] = None
    method: str = "POST"


def make_request(url: str, headers: Dict[str, str], body: Dict[str, Any], method: str = "POST") -> HttpRequest:
    """构造请求并校验端点。

    端点来自固定常量或配置，正常不会非法；非法时按 InvalidResponseError 处理。
    """

    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidResponseError(code="INVALID_ENDPOINT", message=f"Invalid endpoint URL: {url!r}", detail=str(e))
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise InvalidResponseError(code="INVALID_ENDPOINT", message=f"Invalid endpoint URL: {url!r}")
    return HttpRequest(url=url, headers=dict(headers), json_body=body, method=method)


class HttpTransport:
    """基于 httpx 的同步传输实现，每次调用独占一个连接，结束即释放。"""

    def __init__(self, timeout: float = 60.0, trust_env: bool = False):
        self._timeout = timeout
        self._trust_env = trust_env

    def send(self, request: HttpRequest) -> Tuple[bytes, int]:
        try:
            with httpx.Client(timeout=self._timeout, trust_env=self._trust_env) as client:
                resp = client.request(
                    request.method,
                    request.url,
                    json=request.json_body,
                    headers=request.headers,
                )
        except httpx.RequestError as e:
            log_event(network_logger, logging.ERROR, "HTTP request failed", url=request.url, error=str(e))
            raise TransportError(message=f"Request failed: {e}")
        log_event(network_logger, logging.INFO, "HTTP status", url=request.url, status=resp.status_code)
        body = resp.content
        self._check_status(resp.status_code, body)
        return body, resp.status_code

    def stream(
        self,
        request: HttpRequest,
        parser: Optional[SSELineParser] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Iterator[SSEEvent]:
        """惰性产出 SSE 事件。

        消费方提前结束（close 生成器）时，会退出 httpx 的上下文并释放连接；
        连接中断等传输错误以 TransportError 抛出，而不是静默结束。
        cancel_event 在每读一行之前检查，置位后立即停止读取并释放连接，
        心跳等不产出事件的行也不例外。
        """

        parser = parser or SSELineParser()
        try:
            with httpx.Client(timeout=self._timeout, trust_env=self._trust_env) as client:
                with client.stream(
                    request.method,
                    request.url,
                    json=request.json_body,
                    headers=request.headers,
                ) as resp:
                    log_event(stream_logger, logging.INFO, "Streaming status", url=request.url, status=resp.status_code)
                    if not 200 <= resp.status_code < 300:
                        self._check_status(resp.status_code, resp.read())
                    for line in resp.iter_lines():
                        if cancel_event is not None and cancel_event.is_set():
                            log_event(stream_logger, logging.INFO, "Stream cancelled", url=request.url)
                            return
                        event = parser.parse_line(line)
                        if event is not None:
                            yield event
        except httpx.RequestError as e:
            log_event(stream_logger, logging.ERROR, "Streaming failure", url=request.url, error=str(e))
            raise TransportError(message=f"Stream interrupted: {e}")

    @staticmethod
    def _check_status(status: int, body: bytes) -> None:
        if 200 <= status < 300:
            return
        detail = (body or b"").decode("utf-8", errors="replace")[:_ERROR_BODY_LIMIT]
        if status == 429:
            raise RateLimitError(message="Provider rate limit", http_status=status, detail=detail)
        raise InvalidResponseError(
            message=f"Server returned an invalid response (HTTP {status}).",
            http_status=status,
            detail=detail,
        )
