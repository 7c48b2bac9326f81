"""流式会话控制。"""

from chat_core.session.controller import ChatSessionController, StreamingSession

__all__ = ["ChatSessionController", "StreamingSession"]
