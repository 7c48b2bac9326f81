"""本地回复机器人（离线/演示模式）。

不访问网络、不需要凭据：按 问候 -> 关键词规则 -> 随机鼓励语 的顺序
挑选一条固定回复。流式接口把回复按单词切块，块之间可选停顿，
模拟真实 Provider 的逐字输出。
"""

import random
import re
import threading
import time
from typing import Iterator, List, Optional, Sequence, Tuple

from chat_core.config.settings import settings
from chat_core.domain.models import ChatMessage, GenerationParameters
from chat_core.providers.registry import LOCAL_CONFIG

MOTIVATIONAL_REPLIES = [
    "You're making progress, even on the hard days. Keep pushing!",
    "Small steps still move you forward. Every little bit counts.",
    "You've handled tough things before, and you'll get through this too.",
    "Your effort today matters more than perfection. Just keep going.",
    "Take a breath. You're doing better than you think.",
    "One day at a time. You've got this!",
    "Progress, not perfection. You're on the right track.",
    "Every expert was once a beginner. Keep going!",
]

GREETING_WORDS = ["hello", "hi", "hey", "good morning", "good afternoon", "good evening", "hola", "what's up", "howdy"]

GREETING_REPLIES = [
    "Hey there! Great to see you. How are you feeling today?",
    "Hi! I'm here for you. What's on your mind?",
    "Hello! How's your day going so far?",
]

KEYWORD_REPLIES: List[Tuple[List[str], List[str]]] = [
    (
        ["sad", "down", "depressed", "unhappy", "bad day", "terrible"],
        [
            "I'm sorry you're feeling this way. Want to share what's going on? I'm here to listen.",
            "That sounds really hard. It's okay to feel this way, tell me more if you'd like.",
        ],
    ),
    (
        ["anxious", "anxiety", "nervous", "stressed", "stress", "overwhelmed", "panic"],
        [
            "That sounds stressful. Take one slow, deep breath with me first.",
            "When everything feels too much, just focus on the next 5 minutes. You've got this.",
        ],
    ),
    (
        ["happy", "great", "awesome", "excited", "amazing", "good news", "celebrate"],
        [
            "That's amazing! I'm so happy for you. You deserve it!",
            "Love hearing this! Keep riding that positive wave!",
        ],
    ),
    (
        ["tired", "exhausted", "burnout", "drained", "no energy", "sleep"],
        [
            "Rest is not laziness, it's fuel. Give yourself permission to recharge.",
            "Take care of yourself first. Even heroes need to rest!",
        ],
    ),
    (
        ["motivate", "motivation", "focus", "discipline", "productive", "goal"],
        [
            "Start with one tiny task right now. Momentum beats overthinking every time.",
            "Set a 5-minute timer and just begin. You'll often find you keep going.",
        ],
    ),
    (
        ["thank", "thanks", "appreciate", "grateful"],
        [
            "You're so welcome! I'm always here whenever you need me.",
            "Happy to help! Remember, you're doing great!",
        ],
    ),
]


def _contains_phrase(text: str, phrase: str, whole_word: bool = False) -> bool:
    # 词首必须是边界："hi" 不匹配 "this"；whole_word 时词尾也要是边界
    pattern = rf"\b{re.escape(phrase)}\b" if whole_word else rf"\b{re.escape(phrase)}"
    return re.search(pattern, text) is not None


def split_into_chunks(text: str) -> List[str]:
    """按空格切块，除最后一块外都保留一个尾随空格。"""

    words = text.split()
    if not words:
        return [text] if text else []
    return [w if i == len(words) - 1 else f"{w} " for i, w in enumerate(words)]


class LocalBotClient:
    """无网络的退化 Provider 变体。"""

    name = "local"
    available_models = LOCAL_CONFIG.models

    def __init__(self, rng: Optional[random.Random] = None, chunk_delay: Optional[float] = None, cfg=settings):
        self._rng = rng or random.Random()
        self._chunk_delay = cfg.local_chunk_delay if chunk_delay is None else chunk_delay

    def build_reply(self, user_input: str) -> str:
        normalized = user_input.lower()
        if any(_contains_phrase(normalized, w, whole_word=True) for w in GREETING_WORDS):
            return self._rng.choice(GREETING_REPLIES)
        for keywords, replies in KEYWORD_REPLIES:
            if any(_contains_phrase(normalized, k) for k in keywords):
                return self._rng.choice(replies)
        return self._rng.choice(MOTIVATIONAL_REPLIES)

    def complete(self, messages: Sequence[ChatMessage], params: GenerationParameters) -> str:
        return self.build_reply(self._last_user_text(messages))

    def stream(
        self,
        messages: Sequence[ChatMessage],
        params: GenerationParameters,
        cancel_event: Optional[threading.Event] = None,
    ) -> Iterator[str]:
        for chunk in split_into_chunks(self.complete(messages, params)):
            if cancel_event is not None:
                # 停顿期间也能及时响应取消
                if cancel_event.wait(self._chunk_delay or 0):
                    return
            elif self._chunk_delay:
                time.sleep(self._chunk_delay)
            yield chunk

    @staticmethod
    def _last_user_text(messages: Sequence[ChatMessage]) -> str:
        for message in reversed(messages):
            if message.role == "user":
                return message.content
        return ""
