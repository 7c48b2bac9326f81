"""对外 API 服务模块。

提供简化的函数接口供上层应用（UI、脚本）调用。
会话历史与凭据存储归调用方所有，这里只接收已解析好的消息与凭据查找函数。
"""

from typing import Any, Dict, List, Optional, Sequence, Union

from chat_core.config.settings import settings
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.models import ChatMessage, GenerationParameters, ProviderSelector
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers import CredentialLookup, create_provider
from chat_core.providers.registry import get_provider_config
from chat_core.session.controller import FinishCallback, StreamingSession, UpdateCallback


def complete_chat(
    messages: Sequence[ChatMessage],
    params: GenerationParameters,
    provider: Union[ProviderSelector, str, None] = None,
    credential_lookup: Optional[CredentialLookup] = None,
) -> str:
    """执行一次非流式对话，返回完整文本。

    Raises:
        各种 domain.exceptions 中定义的异常
    """
    try:
        client = create_provider(provider, credential_lookup)
        return client.complete(messages, params)
    except BusinessError as e:
        logger.error(f"Chat completion failed: {e.message}", extra={"extra": {
            "provider": str(provider or settings.default_provider),
            "code": e.code,
        }})
        raise


def start_chat_stream(
    messages: Sequence[ChatMessage],
    params: GenerationParameters,
    provider: Union[ProviderSelector, str, None] = None,
    credential_lookup: Optional[CredentialLookup] = None,
    on_update: Optional[UpdateCallback] = None,
    on_finish: Optional[FinishCallback] = None,
) -> StreamingSession:
    """启动一次流式对话，返回已开始运行的 StreamingSession。

    凭据缺失会在这里直接抛出 MissingCredentialError，不会创建会话。
    """
    client = create_provider(provider, credential_lookup)
    session = StreamingSession(
        client,
        messages,
        params,
        thinking_delay=settings.thinking_delay,
        on_update=on_update,
        on_finish=on_finish,
    )
    return session.start()


def list_models(provider: Union[ProviderSelector, str]) -> List[str]:
    """列出某个 Provider 支持的模型 ID（仅供展示）。"""
    return list(get_provider_config(provider).models)


def list_providers() -> List[Dict[str, Any]]:
    """列出所有 Provider 及其模型。"""
    return [
        {
            "id": selector.value,
            "display_name": selector.display_name,
            "models": list_models(selector),
            "requires_api_key": get_provider_config(selector).credential_key is not None,
        }
        for selector in ProviderSelector
    ]
