"""HTTP 传输与 SSE 解析。"""

from chat_core.transport.http import HttpRequest, HttpTransport, make_request
from chat_core.transport.sse import SSELineParser

__all__ = ["HttpRequest", "HttpTransport", "SSELineParser", "make_request"]
