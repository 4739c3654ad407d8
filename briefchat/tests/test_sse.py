"""Tests for the incremental SSE decoder."""

import pytest


STREAM = (
    'data: {"choices": [{"delta": {"content": "Hel"}}]}\n\n'
    ': keep-alive comment\n'
    'data: {"choices": [{"delta": {"content": "lo 数据"}}]}\n\n'
    'data: [DONE]\n\n'
).encode("utf-8")


def _decode(chunks):
    from briefchat.responder.sse import SSEDecoder
    decoder = SSEDecoder()
    events = []
    for chunk in chunks:
        events.extend(decoder.feed(chunk))
    events.extend(decoder.flush())
    return decoder, events


class TestSSEDecoder:
    def test_whole_stream(self):
        decoder, events = _decode([STREAM])

        assert [e["choices"][0]["delta"]["content"] for e in events] == ["Hel", "lo 数据"]
        assert decoder.done is True
        assert decoder.skipped == 0

    @pytest.mark.parametrize("size", [1, 2, 3, 7, 16])
    def test_split_points_do_not_matter(self, size):
        _, expected = _decode([STREAM])
        chunks = [STREAM[i:i + size] for i in range(0, len(STREAM), size)]

        _, events = _decode(chunks)

        assert events == expected

    def test_multibyte_character_across_chunks(self):
        raw = 'data: {"text": "数"}\n'.encode("utf-8")
        cut = raw.index("数".encode("utf-8")) + 1

        _, events = _decode([raw[:cut], raw[cut:]])

        assert events == [{"text": "数"}]

    def test_malformed_frame_is_skipped(self):
        decoder, events = _decode([
            b'data: {"a": 1}\n',
            b'data: {not json\n',
            b'data: [1, 2]\n',
            b'data: {"a": 2}\n',
        ])

        assert events == [{"a": 1}, {"a": 2}]
        assert decoder.skipped == 2

    def test_blank_and_non_data_lines(self):
        _, events = _decode([b"\n\r\nevent: ping\nid: 4\n   \n"])

        assert events == []

    def test_trailing_line_without_newline(self):
        decoder, events = _decode([b'data: {"last": true}'])

        assert events == [{"last": True}]
        assert decoder.done is False

    def test_crlf_lines(self):
        _, events = _decode([b'data: {"a": 1}\r\n\r\n'])

        assert events == [{"a": 1}]
