"""SSE 行解析器。

传输层负责按行切分（不会交付半行），本解析器逐行消费：

- ``event:`` 行：记录待定的事件名，不产出事件。
- ``data:`` 行：产出一个 SSEEvent，附带并清空待定事件名。
- 其他行（空行、``:`` 注释、``id:``、``retry:``）：忽略。

每个 HTTP 流使用一个新的解析器实例。
"""

from typing import Iterable, Iterator, Optional

from chat_core.domain.models import SSEEvent


class SSELineParser:
    def __init__(self) -> None:
        self._pending_event: Optional[str] = None

    def parse_line(self, line: str) -> Optional[SSEEvent]:
        if line.startswith("event:"):
            self._pending_event = line[len("event:"):].strip()
            return None
        if not line.startswith("data:"):
            return None
        event = SSEEvent(data=line[len("data:"):].strip(), event=self._pending_event)
        self._pending_event = None
        return event

    def parse_lines(self, lines: Iterable[str]) -> Iterator[SSEEvent]:
        for line in lines:
            event = self.parse_line(line)
            if event is not None:
                yield event
