"""Anthropic Provider 适配器。

与 OpenAI 风格的差异：
- URL: {base_url}/messages
- 认证: x-api-key: <api_key>，另加固定的 anthropic-version 请求头。
- system prompt 作为顶层 system 字段发送（始终存在，无则为空串），
  messages 中剔除所有 role=system 的条目。
- 流式增量来自 type=content_block_delta 事件的 delta.text，
  以名为 message_stop 的 SSE 事件结束。
"""

import json
import logging
import threading
from contextlib import closing
from typing import Any, Iterator, Optional, Sequence

from chat_core.config.settings import settings
from chat_core.domain.exceptions import DecodeError
from chat_core.domain.models import ChatMessage, GenerationParameters, SSEEvent
from chat_core.infrastructure.logging.logger import log_event, provider_logger
from chat_core.providers.registry import ANTHROPIC_API_VERSION, ANTHROPIC_CONFIG, endpoint_url
from chat_core.transport.http import HttpRequest, HttpTransport, make_request
from chat_core.transport.sse import SSELineParser

STREAM_STOP_EVENT = "message_stop"
DELTA_EVENT_TYPE = "content_block_delta"


class AnthropicClient:
    """Anthropic 提供方客户端实现。"""

    name = "anthropic"
    available_models = ANTHROPIC_CONFIG.models

    def __init__(self, api_key: str, transport: Optional[HttpTransport] = None, cfg=settings):
        self._api_key = api_key
        self._settings = cfg
        self._transport = transport or HttpTransport(timeout=cfg.http_timeout)

    def complete(self, messages: Sequence[ChatMessage], params: GenerationParameters) -> str:
        request = self._build_request(messages, params, stream=False)
        body, _ = self._transport.send(request)
        return self._parse_response(body)

    def stream(
        self,
        messages: Sequence[ChatMessage],
        params: GenerationParameters,
        cancel_event: Optional[threading.Event] = None,
    ) -> Iterator[str]:
        request = self._build_request(messages, params, stream=True)
        with closing(self._transport.stream(request, SSELineParser(), cancel_event=cancel_event)) as events:
            for event in events:
                if cancel_event is not None and cancel_event.is_set():
                    return
                if event.event == STREAM_STOP_EVENT:
                    return
                text = self._parse_stream_event(event)
                if text:
                    yield text

    def _build_request(self, messages: Sequence[ChatMessage], params: GenerationParameters, stream: bool) -> HttpRequest:
        base = getattr(self._settings, "anthropic_base_url", None)
        version = getattr(self._settings, "anthropic_version", None) or ANTHROPIC_API_VERSION
        return make_request(
            endpoint_url(ANTHROPIC_CONFIG, base),
            headers={
                "Content-Type": "application/json",
                "x-api-key": self._api_key,
                "anthropic-version": version,
            },
            body=self._build_payload(messages, params, stream),
        )

    @staticmethod
    def _build_payload(messages: Sequence[ChatMessage], params: GenerationParameters, stream: bool) -> dict:
        return {
            "model": params.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages if m.role != "system"],
            "system": params.system_prompt or "",
            "stream": stream,
            "temperature": params.temperature,
            "max_tokens": params.max_tokens,
        }

    @staticmethod
    def _parse_response(body: bytes) -> str:
        """取 content[0].text；content 为空时返回空串，首块没有文本（如 tool_use）视为解码失败。"""

        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(message=f"Anthropic response is not valid JSON: {e}")
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, list):
            raise DecodeError(message="Anthropic response has no 'content' list")
        if not content:
            return ""
        block = content[0]
        if not isinstance(block, dict):
            raise DecodeError(message="Anthropic content block is not an object")
        text = block.get("text")
        if not isinstance(text, str):
            raise DecodeError(message=f"Anthropic content block has no text (type={block.get('type')!r})")
        return text

    @staticmethod
    def _parse_stream_event(event: SSEEvent) -> Optional[str]:
        """只接受 content_block_delta 事件；其余（ping、message_start 等）跳过。"""

        try:
            payload: Any = json.loads(event.data)
        except json.JSONDecodeError:
            log_event(provider_logger, logging.DEBUG, "Skipped undecodable frame", provider="anthropic")
            return None
        if not isinstance(payload, dict):
            return None
        kind = payload.get("type")
        if kind == "error":
            # error 帧只记录，不中断流
            log_event(provider_logger, logging.WARNING, "Provider error frame", provider="anthropic", error=payload.get("error"))
            return None
        if kind != DELTA_EVENT_TYPE:
            return None
        delta = payload.get("delta")
        text = delta.get("text") if isinstance(delta, dict) else None
        return text if isinstance(text, str) else None
