"""统一的对话与流式结果数据模型。

本模块定义了核心层在不同 Provider 之间共享的标准数据结构：

- ChatMessage: 一条对话消息（system/user/assistant）。
- GenerationParameters: 一次生成的模型与采样参数。
- ProviderSelector: 选择哪个 Provider（以及哪个凭据命名空间）。
- SSEEvent: SSE 解析器产出的单个事件。
- StreamUpdate / StreamingOutcome: 会话控制器对外的增量与终态。

所有 Provider 适配器（如 OpenAIClient）都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional, Union

from chat_core.domain.exceptions import ValidationError


# LLM 消息角色类型（与 OpenAI / Anthropic 的 role 字段对应）
Role = Literal["user", "assistant", "system"]

# 会话正常结束但没有任何输出时的占位文本
NO_CONTENT_PLACEHOLDER = "No content was produced."


@dataclass(frozen=True)
class ChatMessage:
    """一条对话消息，构造后不可变。

    消息列表的顺序即时间顺序，会原样发送给 Provider。
    """

    role: Role
    content: str


@dataclass(frozen=True)
class GenerationParameters:
    """生成参数。

    本地不做取值校验，原样透传给 Provider，由服务端约束。
    """

    model: str
    system_prompt: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 1024


class ProviderSelector(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    LOCAL = "local"

    @property
    def display_name(self) -> str:
        return {
            ProviderSelector.OPENAI: "OpenAI",
            ProviderSelector.ANTHROPIC: "Anthropic",
            ProviderSelector.LOCAL: "Local",
        }[self]

    @classmethod
    def parse(cls, value: Union["ProviderSelector", str]) -> "ProviderSelector":
        """接受枚举成员或名称（不区分大小写）。"""

        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise ValidationError(code="UNKNOWN_PROVIDER", message=f"Unknown provider: {value!r}")


@dataclass(frozen=True)
class SSEEvent:
    """SSE 事件：event 为可选事件名，data 为去除首尾空白后的数据。"""

    data: str
    event: Optional[str] = None


class SessionState(str, Enum):
    IDLE = "idle"
    THINKING = "thinking"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.FAILED, SessionState.CANCELLED)


@dataclass(frozen=True)
class StreamUpdate:
    """一次增量更新。

    - delta: 本次新到达的片段。
    - text: 截至目前累积的完整文本快照，调用方无需自己拼接 delta。
    """

    delta: str
    text: str


@dataclass(frozen=True)
class StreamingOutcome:
    """一次会话的终态结果。

    - state: completed / failed / cancelled 之一。
    - text: 完整文本（completed）或已累积的部分文本（failed/cancelled）。
    - error: 面向用户的错误摘要，仅 failed 时存在。
    - error_code: 机器可读错误码，便于上层区分处理。
    """

    state: SessionState
    text: str
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def completed(cls, text: str) -> "StreamingOutcome":
        return cls(state=SessionState.COMPLETED, text=text or NO_CONTENT_PLACEHOLDER)

    @classmethod
    def failed(cls, text: str, error: str, error_code: Optional[str] = None) -> "StreamingOutcome":
        return cls(state=SessionState.FAILED, text=text, error=error, error_code=error_code)

    @classmethod
    def cancelled(cls, text: str) -> "StreamingOutcome":
        return cls(state=SessionState.CANCELLED, text=text, error_code="STREAM_CANCELLED")
