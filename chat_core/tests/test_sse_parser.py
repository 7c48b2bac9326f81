from chat_core.domain.models import SSEEvent
from chat_core.transport.sse import SSELineParser


def test_data_line_without_event_name():
    parser = SSELineParser()
    assert parser.parse_line('data: {"a": 1}') == SSEEvent(data='{"a": 1}', event=None)


def test_event_line_is_buffered_and_attached_to_next_data():
    parser = SSELineParser()
    assert parser.parse_line("event:  content_block_delta ") is None
    event = parser.parse_line("data: {}")
    assert event.event == "content_block_delta"
    assert event.data == "{}"
    # 事件名在一次产出后被清空
    assert parser.parse_line("data: next").event is None


def test_non_field_lines_are_ignored():
    parser = SSELineParser()
    for line in ["", ": keep-alive", "id: 7", "retry: 1000", "garbage"]:
        assert parser.parse_line(line) is None


def test_data_is_trimmed():
    parser = SSELineParser()
    assert parser.parse_line("data:   [DONE]  ").data == "[DONE]"
    assert parser.parse_line("data:").data == ""


def test_latest_event_name_wins():
    parser = SSELineParser()
    parser.parse_line("event: ping")
    parser.parse_line("event: message_stop")
    assert parser.parse_line("data: {}").event == "message_stop"


def test_one_event_per_data_line():
    lines = [
        "event: message_start",
        "data: 1",
        "",
        "data: 2",
        "",
        "event: ping",
        ": comment",
        "data: 3",
        "",
        "event: dangling",
    ]
    events = list(SSELineParser().parse_lines(lines))
    assert [e.data for e in events] == ["1", "2", "3"]
    assert [e.event for e in events] == ["message_start", None, "ping"]


def test_fresh_parser_has_no_pending_state():
    first = SSELineParser()
    first.parse_line("event: message_stop")
    assert SSELineParser().parse_line("data: x").event is None
