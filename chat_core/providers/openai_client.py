"""OpenAI Provider 适配器。

使用 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>
- system prompt 作为首条 role=system 的消息注入（仅当非空）。
- 流式结束标志：一行字面量 ``data: [DONE]``。

本实现只依赖公共字段：model/messages/stream/temperature/max_tokens。
"""

import json
import logging
import threading
from contextlib import closing
from typing import Any, Dict, Iterator, List, Optional, Sequence

from chat_core.config.settings import settings
from chat_core.domain.exceptions import DecodeError
from chat_core.domain.models import ChatMessage, GenerationParameters
from chat_core.infrastructure.logging.logger import log_event, provider_logger
from chat_core.providers.registry import OPENAI_CONFIG, endpoint_url
from chat_core.transport.http import HttpRequest, HttpTransport, make_request
from chat_core.transport.sse import SSELineParser

STREAM_DONE = "[DONE]"


class OpenAIClient:
    """OpenAI 提供方客户端实现。

    除持有的 API Key 外无状态，可按调用构造，也可由调用方缓存。
    """

    name = "openai"
    available_models = OPENAI_CONFIG.models

    def __init__(self, api_key: str, transport: Optional[HttpTransport] = None, cfg=settings):
        self._api_key = api_key
        self._settings = cfg
        self._transport = transport or HttpTransport(timeout=cfg.http_timeout)

    # ---- 非流式 ----

    def complete(self, messages: Sequence[ChatMessage], params: GenerationParameters) -> str:
        request = self._build_request(messages, params, stream=False)
        body, _ = self._transport.send(request)
        return self._parse_response(body)

    # ---- 流式 ----

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
                if event.data == STREAM_DONE:
                    return
                text = self._parse_stream_delta(event.data)
                if text:
                    yield text

    # ---- 辅助方法 ----

    def _build_request(self, messages: Sequence[ChatMessage], params: GenerationParameters, stream: bool) -> HttpRequest:
        base = getattr(self._settings, "openai_base_url", None)
        return make_request(
            endpoint_url(OPENAI_CONFIG, base),
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            body=self._build_payload(messages, params, stream),
        )

    @staticmethod
    def _build_payload(messages: Sequence[ChatMessage], params: GenerationParameters, stream: bool) -> dict:
        msgs: List[Dict[str, str]] = []
        if params.system_prompt:
            msgs.append({"role": "system", "content": params.system_prompt})
        msgs.extend({"role": m.role, "content": m.content} for m in messages)
        return {
            "model": params.model,
            "messages": msgs,
            "stream": stream,
            "temperature": params.temperature,
            "max_tokens": params.max_tokens,
        }

    @staticmethod
    def _parse_response(body: bytes) -> str:
        """取 choices[0].message.content；没有候选或内容为 null 时返回空串。"""

        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(message=f"OpenAI response is not valid JSON: {e}")
        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list):
            raise DecodeError(message="OpenAI response has no 'choices' list")
        if not choices:
            return ""
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            raise DecodeError(message="OpenAI choice has no 'message' object")
        content = message.get("content")
        return content if isinstance(content, str) else ""

    @staticmethod
    def _parse_stream_delta(data: str) -> Optional[str]:
        """解析一帧增量；心跳、元数据或损坏的帧返回 None，由调用方跳过。"""

        try:
            payload: Any = json.loads(data)
        except json.JSONDecodeError:
            log_event(provider_logger, logging.DEBUG, "Skipped undecodable frame", provider="openai")
            return None
        try:
            content = payload["choices"][0]["delta"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError):
            return None
        return content if isinstance(content, str) else None
