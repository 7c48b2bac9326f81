"""Provider 与模型配置。

集中维护每个 Provider 的静态信息：

- base_url + endpoint：请求地址（base_url 可被配置覆盖）。
- credential_key：在调用方凭据存储中的命名空间，例如 "openai.api.key"。
- models：支持的模型 ID 列表，仅供展示，不对请求中的 model 做强制校验。
"""

from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from chat_core.domain.models import ProviderSelector


@dataclass(frozen=True)
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    display_name: str
    base_url: str
    endpoint: str
    credential_key: Optional[str]
    models: Tuple[str, ...]


OPENAI_CONFIG = ProviderConfig(
    name="openai",
    display_name="OpenAI",
    base_url="https://api.openai.com/v1",
    endpoint="/chat/completions",
    credential_key="openai.api.key",
    models=("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"),
)

ANTHROPIC_CONFIG = ProviderConfig(
    name="anthropic",
    display_name="Anthropic",
    base_url="https://api.anthropic.com/v1",
    endpoint="/messages",
    credential_key="anthropic.api.key",
    models=("claude-sonnet-4-20250514", "claude-3-5-sonnet-20241022", "claude-3-haiku-20240307"),
)

# 离线演示用的本地回复机器人：无网络、无凭据
LOCAL_CONFIG = ProviderConfig(
    name="local",
    display_name="Local",
    base_url="",
    endpoint="",
    credential_key=None,
    models=("local-bot",),
)

ANTHROPIC_API_VERSION = "2023-06-01"


PROVIDER_REGISTRY: Mapping[ProviderSelector, ProviderConfig] = {
    ProviderSelector.OPENAI: OPENAI_CONFIG,
    ProviderSelector.ANTHROPIC: ANTHROPIC_CONFIG,
    ProviderSelector.LOCAL: LOCAL_CONFIG,
}


def get_provider_config(selector) -> ProviderConfig:
    """根据选择器或名称获取 ProviderConfig，名称不区分大小写。"""

    return PROVIDER_REGISTRY[ProviderSelector.parse(selector)]


def endpoint_url(cfg: ProviderConfig, base_url: Optional[str] = None) -> str:
    base = (base_url or cfg.base_url).rstrip("/")
    return f"{base}{cfg.endpoint}"
