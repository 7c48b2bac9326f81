"""Provider 抽象接口。

会话控制器不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- 每个厂商实现一个 ProviderClient（如 OpenAIClient、AnthropicClient）。
- 负责：将 ChatMessage 列表 + GenerationParameters 转成具体 API 请求，
  并把响应（或 SSE 增量）解析为纯文本。

这样可以在不改会话代码的前提下接入更多厂商。
"""

import threading
from typing import Iterator, Optional, Protocol, Sequence, Tuple

from chat_core.domain.models import ChatMessage, GenerationParameters


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/诊断。
    - available_models: 支持的模型列表（仅供展示）。
    - complete(messages, params): 非流式调用，返回完整文本（无内容时为空串）。
    - stream(messages, params, cancel_event): 流式调用，惰性产出非空文本片段；
      cancel_event 置位后应尽快停止读取并释放连接。
    """

    name: str
    available_models: Tuple[str, ...]

    def complete(self, messages: Sequence[ChatMessage], params: GenerationParameters) -> str:
        ...

    def stream(
        self,
        messages: Sequence[ChatMessage],
        params: GenerationParameters,
        cancel_event: Optional[threading.Event] = None,
    ) -> Iterator[str]:
        """执行一次流式调用，逐步产出文本增量。"""

        ...
