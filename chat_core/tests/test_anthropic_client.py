import json

import pytest

from chat_core.domain.exceptions import DecodeError, TransportError
from chat_core.domain.models import ChatMessage, GenerationParameters
from chat_core.providers.anthropic_client import AnthropicClient


class SettingsStub:
    http_timeout = 1.0
    anthropic_base_url = "https://api.anthropic.com/v1"
    anthropic_version = "2023-06-01"


class FakeTransport:
    def __init__(self, body=b"{}", lines=(), drop_after=None):
        self.body = body
        self.lines = list(lines)
        self.drop_after = drop_after
        self.requests = []
        self.closed = False

    def send(self, request):
        self.requests.append(request)
        return self.body, 200

    def stream(self, request, parser, cancel_event=None):
        self.requests.append(request)
        try:
            for i, line in enumerate(self.lines):
                if self.drop_after is not None and i == self.drop_after:
                    raise TransportError(message="connection lost")
                event = parser.parse_line(line)
                if event is not None:
                    yield event
        finally:
            self.closed = True


def _event(name, payload):
    return [f"event: {name}", "data: " + json.dumps(payload), ""]


def _text_delta(text):
    return _event("content_block_delta", {
        "type": "content_block_delta",
        "index": 0,
        "delta": {"type": "text_delta", "text": text},
    })


def _stream(*texts, tail=()):
    lines = []
    lines += _event("message_start", {"type": "message_start", "message": {"id": "msg_1", "content": []}})
    lines += _event("content_block_start", {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}})
    lines += _event("ping", {"type": "ping"})
    for text in texts:
        lines += _text_delta(text)
    lines += _event("content_block_stop", {"type": "content_block_stop", "index": 0})
    lines += _event("message_delta", {"type": "message_delta", "delta": {"stop_reason": "end_turn"}})
    lines += _event("message_stop", {"type": "message_stop"})
    lines += list(tail)
    return lines


CONVERSATION = [
    ChatMessage(role="system", content="stale system entry"),
    ChatMessage(role="user", content="Hello"),
    ChatMessage(role="assistant", content="Hi!"),
    ChatMessage(role="user", content="How are you?"),
]
PARAMS = GenerationParameters(model="claude-3-haiku-20240307", temperature=0.5, max_tokens=256)


def test_request_shape():
    transport = FakeTransport(body=b'{"content": []}')
    AnthropicClient("ak-test", transport=transport, cfg=SettingsStub()).complete(CONVERSATION, PARAMS)
    req = transport.requests[0]
    assert req.url == "https://api.anthropic.com/v1/messages"
    assert req.headers["x-api-key"] == "ak-test"
    assert req.headers["anthropic-version"] == "2023-06-01"
    assert "Authorization" not in req.headers
    assert req.json_body == {
        "model": "claude-3-haiku-20240307",
        "messages": [
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Hi!"},
            {"role": "user", "content": "How are you?"},
        ],
        "system": "",
        "stream": False,
        "temperature": 0.5,
        "max_tokens": 256,
    }


def test_system_prompt_is_top_level_field():
    transport = FakeTransport(body=b'{"content": []}')
    params = GenerationParameters(model="claude-3-haiku-20240307", system_prompt="Be kind.")
    AnthropicClient("k", transport=transport, cfg=SettingsStub()).complete(CONVERSATION, params)
    body = transport.requests[0].json_body
    assert body["system"] == "Be kind."
    assert all(m["role"] != "system" for m in body["messages"])


def test_complete_extracts_first_content_block():
    body = json.dumps({
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": "Doing well."}, {"type": "text", "text": "ignored"}],
    }).encode()
    client = AnthropicClient("k", transport=FakeTransport(body=body), cfg=SettingsStub())
    assert client.complete(CONVERSATION, PARAMS) == "Doing well."


def test_complete_empty_content():
    client = AnthropicClient("k", transport=FakeTransport(body=b'{"content": []}'), cfg=SettingsStub())
    assert client.complete(CONVERSATION, PARAMS) == ""


@pytest.mark.parametrize(
    "body",
    [
        b"<html>",
        b'{"type": "error"}',
        b'{"content": ["plain"]}',
        b'{"content": [{"type": "tool_use", "id": "tu_1", "name": "lookup", "input": {}}]}',
    ],
)
def test_complete_decode_errors(body):
    client = AnthropicClient("k", transport=FakeTransport(body=body), cfg=SettingsStub())
    with pytest.raises(DecodeError):
        client.complete(CONVERSATION, PARAMS)


def test_stream_yields_text_deltas_only():
    transport = FakeTransport(lines=_stream("Doing", " well."))
    client = AnthropicClient("k", transport=transport, cfg=SettingsStub())
    assert list(client.stream(CONVERSATION, PARAMS)) == ["Doing", " well."]
    assert transport.requests[0].json_body["stream"] is True
    assert transport.closed


def test_stream_stops_at_message_stop_even_if_more_lines_follow():
    lines = _stream("a", tail=_text_delta("after stop"))
    client = AnthropicClient("k", transport=FakeTransport(lines=lines), cfg=SettingsStub())
    assert list(client.stream(CONVERSATION, PARAMS)) == ["a"]


def test_stream_skips_error_and_malformed_frames():
    lines = []
    lines += _text_delta("x")
    lines += ["event: content_block_delta", "data: {broken", ""]
    lines += _event("error", {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}})
    lines += _event("content_block_delta", {"type": "content_block_delta", "delta": {"type": "input_json_delta", "partial_json": "{}"}})
    lines += _text_delta("")
    lines += _text_delta("y")
    lines += _event("message_stop", {"type": "message_stop"})
    client = AnthropicClient("k", transport=FakeTransport(lines=lines), cfg=SettingsStub())
    assert list(client.stream(CONVERSATION, PARAMS)) == ["x", "y"]


def test_stream_concatenation_matches_complete():
    body = json.dumps({"content": [{"type": "text", "text": "Doing well, thanks."}]}).encode()
    transport = FakeTransport(body=body, lines=_stream("Doing", " well,", " thanks."))
    client = AnthropicClient("k", transport=transport, cfg=SettingsStub())
    assert "".join(client.stream(CONVERSATION, PARAMS)) == client.complete(CONVERSATION, PARAMS)


def test_stream_connection_drop_propagates():
    lines = _text_delta("a") + _text_delta("b")
    transport = FakeTransport(lines=lines, drop_after=3)
    gen = AnthropicClient("k", transport=transport, cfg=SettingsStub()).stream(CONVERSATION, PARAMS)
    assert next(gen) == "a"
    with pytest.raises(TransportError):
        next(gen)
    assert transport.closed
