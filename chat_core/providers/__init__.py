"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 静态配置与模型列表 (registry)。
- 提供各厂商的具体实现 (openai_client、anthropic_client、local_client)。
- 根据选择器与凭据构造具体客户端 (create_provider)。
"""

from typing import Callable, Optional, Union

from chat_core.config.settings import settings
from chat_core.domain.exceptions import MissingCredentialError
from chat_core.domain.models import ProviderSelector
from chat_core.providers.anthropic_client import AnthropicClient
from chat_core.providers.base import ProviderClient
from chat_core.providers.local_client import LocalBotClient
from chat_core.providers.openai_client import OpenAIClient
from chat_core.providers.registry import get_provider_config
from chat_core.transport.http import HttpTransport

# 凭据查找函数：输入命名空间（如 "openai.api.key"），返回密钥或 None
CredentialLookup = Callable[[str], Optional[str]]

# 命名空间 -> Settings 字段名
_SETTINGS_CREDENTIAL_FIELDS = {
    "openai.api.key": "openai_api_key",
    "anthropic.api.key": "anthropic_api_key",
}


def settings_credential_lookup(cfg=None) -> CredentialLookup:
    """把 Settings 中的 *_api_key 字段适配为 CredentialLookup。"""

    def lookup(key: str) -> Optional[str]:
        source = cfg if cfg is not None else settings
        field_name = _SETTINGS_CREDENTIAL_FIELDS.get(key)
        return getattr(source, field_name, None) if field_name else None

    return lookup


def create_provider(
    selector: Union[ProviderSelector, str, None] = None,
    credential_lookup: Optional[CredentialLookup] = None,
    transport: Optional[HttpTransport] = None,
    cfg=None,
) -> ProviderClient:
    """根据选择器创建 Provider 实例，默认取配置中的 provider。

    凭据缺失或为空白时在任何网络调用之前抛出 MissingCredentialError。
    """

    cfg = cfg if cfg is not None else settings
    chosen = ProviderSelector.parse(selector or getattr(cfg, "default_provider", "openai"))
    if chosen is ProviderSelector.LOCAL:
        return LocalBotClient(cfg=cfg)

    provider_cfg = get_provider_config(chosen)
    lookup = credential_lookup or settings_credential_lookup(cfg)
    api_key = (lookup(provider_cfg.credential_key) or "").strip()
    if not api_key:
        raise MissingCredentialError(
            message=f"Missing API key configuration for {provider_cfg.display_name}.",
            provider=provider_cfg.name,
        )

    transport = transport or HttpTransport(timeout=cfg.http_timeout)
    if chosen is ProviderSelector.ANTHROPIC:
        return AnthropicClient(api_key, transport=transport, cfg=cfg)
    return OpenAIClient(api_key, transport=transport, cfg=cfg)


__all__ = [
    "AnthropicClient",
    "CredentialLookup",
    "LocalBotClient",
    "OpenAIClient",
    "ProviderClient",
    "create_provider",
    "settings_credential_lookup",
]
