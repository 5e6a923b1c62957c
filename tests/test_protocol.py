from __future__ import annotations

import json

from camille.adapters.protocol import LineBuffer, Request, Response, decode_response, encode


class TestLineBuffer:
    def test_partial_reads_are_joined(self):
        buffer = LineBuffer()

        assert buffer.feed(b'{"type": "sta') == []
        assert buffer.feed(b'tus"}\n{"type":') == ['{"type": "status"}']
        assert buffer.pending == b'{"type":'
        assert buffer.feed(b' "done"}\n') == ['{"type": "done"}']
        assert buffer.pending == b""

    def test_blank_lines_are_skipped(self):
        assert LineBuffer().feed(b"\n  \n{}\n") == ["{}"]

    def test_multibyte_character_split_across_reads(self):
        encoded = '{"text": "café"}\n'.encode("utf-8")
        buffer = LineBuffer()

        assert buffer.feed(encoded[:-3]) == []
        assert buffer.feed(encoded[-3:]) == ['{"text": "café"}']

    def test_overlong_line_is_dropped(self):
        buffer = LineBuffer(max_pending=8)

        assert buffer.feed(b"0123456789") == []
        assert buffer.overflowed is True
        assert buffer.pending == b""

        # The rest of the dropped line is skipped without a second report.
        assert buffer.feed(b"abcdefghijkl") == []
        assert buffer.overflowed is False
        assert buffer.feed(b'xyz\n{"a":1}\n') == ['{"a":1}']
        assert buffer.overflowed is False

    def test_complete_lines_before_overflow_are_kept(self):
        buffer = LineBuffer(max_pending=4)

        assert buffer.feed(b"{}\n" + b"x" * 10) == ["{}"]
        assert buffer.overflowed is True


class TestEncoding:
    def test_none_fields_are_omitted(self):
        data = encode(Response(type="chunk", text="hi"))

        assert data.endswith(b"\n")
        assert json.loads(data) == {"type": "chunk", "text": "hi"}

    def test_request_ignores_unknown_fields(self):
        request = Request.model_validate_json('{"type": "status", "extra": 1}')
        assert request.type == "status"

    def test_decode_response(self):
        response = decode_response('{"type": "tool_call", "name": "search", "input": {"q": 1}}')
        assert response.name == "search"
        assert response.input == {"q": 1}
