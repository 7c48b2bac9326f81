"""Chat Core 顶层包。

该包提供移动聊天原型的 LLM 流式客户端核心实现，
包括配置加载、领域模型、SSE 解析、HTTP 传输、Provider 适配
以及可取消的流式会话控制。
"""

from chat_core.domain.models import ChatMessage, GenerationParameters, ProviderSelector
from chat_core.providers import create_provider
from chat_core.session import ChatSessionController

__all__ = ["ChatMessage", "ChatSessionController", "GenerationParameters", "ProviderSelector", "create_provider"]
