"""流式会话控制器。

一次用户发言对应一个 StreamingSession，状态机：

    idle -> thinking -> streaming -> completed / failed / cancelled

- 生成在后台工作线程中运行，调用方可以迭代 session 拿到增量快照，
  也可以注册 on_update / on_finish 回调。
- 取消是协作式的：cancel() 立即上报 cancelled（保留已累积文本），
  取消标志会一路传到 Provider 和传输层，工作线程在下一行/下一个片段
  边界观察到后不再输出，并关闭 Provider 流以释放连接。
- 终态只上报一次；on_finish 返回之后 wait() 和迭代才会结束。
- 状态锁内只改状态，回调在状态锁外执行，由单独的 _notify_lock 保证
  回调顺序（先 on_update，后 on_finish）。加锁顺序固定为
  _notify_lock -> _lock。

ChatSessionController 持有一个 Provider，同一时刻只允许一个活跃会话：
提交新一轮时先取消正在进行的会话（后来者优先）。
"""

import logging
import queue
import threading
import time
from typing import Callable, Iterator, List, Optional, Sequence
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.models import (
    ChatMessage,
    GenerationParameters,
    SessionState,
    StreamingOutcome,
    StreamUpdate,
)
from chat_core.infrastructure.logging.logger import log_event, session_logger
from chat_core.providers.base import ProviderClient

UpdateCallback = Callable[[StreamUpdate], None]
FinishCallback = Callable[[StreamingOutcome], None]


class StreamingSession:
    """单轮生成。用完即弃，不复用。"""

    def __init__(
        self,
        provider: ProviderClient,
        messages: Sequence[ChatMessage],
        params: GenerationParameters,
        thinking_delay: float = 0.0,
        on_update: Optional[UpdateCallback] = None,
        on_finish: Optional[FinishCallback] = None,
    ):
        self.id = f"s-{uuid4().hex}"
        self._provider = provider
        self._messages = list(messages)
        self._params = params
        self._thinking_delay = thinking_delay
        self._on_update = on_update
        self._on_finish = on_finish

        self._lock = threading.RLock()
        # 回调在 _lock 之外执行；本锁只保证回调按顺序、不交错
        self._notify_lock = threading.RLock()
        self._cancel_requested = threading.Event()
        self._done = threading.Event()
        # None 作为结束哨兵
        self._updates: "queue.Queue[Optional[StreamUpdate]]" = queue.Queue()
        self._pieces: List[str] = []
        self._state = SessionState.IDLE
        self._outcome: Optional[StreamingOutcome] = None
        self._thread: Optional[threading.Thread] = None
        self._started_at = 0.0

    # ---- 对外接口 ----

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def text(self) -> str:
        with self._lock:
            return "".join(self._pieces)

    @property
    def outcome(self) -> Optional[StreamingOutcome]:
        return self._outcome

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def start(self) -> "StreamingSession":
        with self._lock:
            if self._thread is not None:
                raise RuntimeError("Session already started")
            if self._outcome is not None:
                # 启动前已被取消
                return self
            self._state = SessionState.THINKING
            self._started_at = time.time()
            self._thread = threading.Thread(target=self._run, name=f"chat-{self.id}", daemon=True)
        self._log(
            logging.INFO,
            "Session started",
            provider=getattr(self._provider, "name", "unknown"),
            model=self._params.model,
            message_count=len(self._messages),
        )
        self._thread.start()
        return self

    def cancel(self) -> bool:
        """请求停止。返回 True 表示本次调用结束了会话。"""

        with self._notify_lock:
            with self._lock:
                self._cancel_requested.set()
                outcome = self._settle(StreamingOutcome.cancelled("".join(self._pieces)))
            if outcome is None:
                return False
            self._log(logging.INFO, "Stop streaming requested")
            self._announce(outcome)
            return True

    def wait(self, timeout: Optional[float] = None) -> Optional[StreamingOutcome]:
        """等待终态（含 on_finish 回调执行完毕），超时返回 None。"""

        if self._done.wait(timeout):
            return self._outcome
        return None

    def join(self, timeout: Optional[float] = None) -> None:
        """等待工作线程退出（此时底层连接已释放）。"""

        if self._thread is not None:
            self._thread.join(timeout)

    def __iter__(self) -> Iterator[StreamUpdate]:
        """按到达顺序产出增量快照，会话结束后停止。只支持一个消费者。"""

        while True:
            update = self._updates.get()
            if update is None:
                return
            yield update

    # ---- 工作线程 ----

    def _run(self) -> None:
        fragments = None
        try:
            if self._thinking_delay > 0 and self._cancel_requested.wait(self._thinking_delay):
                return
            fragments = iter(
                self._provider.stream(self._messages, self._params, cancel_event=self._cancel_requested)
            )
            for delta in fragments:
                with self._notify_lock:
                    with self._lock:
                        if self._cancel_requested.is_set():
                            return
                        update = self._admit(delta)
                    if self._on_update is not None:
                        self._on_update(update)
            with self._notify_lock:
                with self._lock:
                    outcome = None
                    if not self._cancel_requested.is_set():
                        outcome = self._settle(StreamingOutcome.completed("".join(self._pieces)))
                if outcome is not None:
                    self._announce(outcome)
        except BusinessError as e:
            self._fail(e.message, e.code)
        except Exception as e:
            session_logger.exception("Unexpected streaming error", extra={"extra": {"session_id": self.id}})
            self._fail(str(e) or e.__class__.__name__, "UNEXPECTED_ERROR")
        finally:
            close = getattr(fragments, "close", None)
            if close is not None:
                close()

    def _admit(self, delta: str) -> StreamUpdate:
        # 调用方需持有 self._lock
        if self._state is SessionState.THINKING:
            self._state = SessionState.STREAMING
            self._log(logging.INFO, "First token", latency_ms=int((time.time() - self._started_at) * 1000))
        self._pieces.append(delta)
        update = StreamUpdate(delta=delta, text="".join(self._pieces))
        self._updates.put(update)
        return update

    def _fail(self, message: str, code: Optional[str]) -> None:
        with self._notify_lock:
            with self._lock:
                outcome = self._settle(StreamingOutcome.failed("".join(self._pieces), message, code))
            if outcome is not None:
                self._announce(outcome)

    def _settle(self, outcome: StreamingOutcome) -> Optional[StreamingOutcome]:
        """记录终态。调用方需持有 self._lock；已有终态时返回 None。"""

        if self._outcome is not None:
            return None
        self._outcome = outcome
        self._state = outcome.state
        return outcome

    def _announce(self, outcome: StreamingOutcome) -> None:
        # 在 _lock 之外调用：先日志和 on_finish，再放行 wait() 与迭代方
        try:
            level = logging.ERROR if outcome.state is SessionState.FAILED else logging.INFO
            self._log(
                level,
                "Session finished",
                state=outcome.state.value,
                total_chars=len(outcome.text),
                error=outcome.error,
                elapsed_seconds=round(time.time() - self._started_at, 2) if self._started_at else 0.0,
            )
            if self._on_finish is not None:
                self._on_finish(outcome)
        finally:
            self._done.set()
            self._updates.put(None)

    def _log(self, level: int, message: str, **fields) -> None:
        log_event(session_logger, level, message, session_id=self.id, **fields)


class ChatSessionController:
    """每个控制器同一时刻最多一个活跃会话。"""

    def __init__(
        self,
        provider: ProviderClient,
        thinking_delay: Optional[float] = None,
        on_update: Optional[UpdateCallback] = None,
        on_finish: Optional[FinishCallback] = None,
        cfg=settings,
    ):
        self._provider = provider
        self._thinking_delay = cfg.thinking_delay if thinking_delay is None else thinking_delay
        self._on_update = on_update
        self._on_finish = on_finish
        self._lock = threading.Lock()
        self._current: Optional[StreamingSession] = None

    @property
    def provider(self) -> ProviderClient:
        return self._provider

    @property
    def current(self) -> Optional[StreamingSession]:
        return self._current

    @property
    def state(self) -> SessionState:
        session = self._current
        return session.state if session is not None else SessionState.IDLE

    @property
    def is_active(self) -> bool:
        session = self._current
        return session is not None and not session.done

    def set_provider(self, provider: ProviderClient) -> None:
        """切换 Provider；进行中的会话会被取消。"""

        with self._lock:
            previous = self._current
            self._provider = provider
        self._cancel(previous)

    def submit(self, messages: Sequence[ChatMessage], params: GenerationParameters) -> StreamingSession:
        """开始新一轮生成，先取消正在进行的会话。"""

        with self._lock:
            previous = self._current
            session = StreamingSession(
                self._provider,
                messages,
                params,
                thinking_delay=self._thinking_delay,
                on_update=self._on_update,
                on_finish=self._on_finish,
            )
            self._current = session
        # 取消和回调都在控制器锁之外，回调里可以再次 submit/stop
        self._cancel(previous)
        return session.start()

    def stop(self) -> Optional[StreamingOutcome]:
        with self._lock:
            session = self._current
        if session is None:
            return None
        session.cancel()
        return session.outcome

    def complete(self, messages: Sequence[ChatMessage], params: GenerationParameters) -> str:
        """单次非流式调用，直接透传给 Provider。"""

        return self._provider.complete(messages, params)

    @staticmethod
    def _cancel(session: Optional[StreamingSession]) -> None:
        if session is not None and not session.done:
            session.cancel()
