"""Tests for the line framer."""

from __future__ import annotations

import pytest

from agentpane.stream.framer import LineFramer


def _frame(chunks: list[str]) -> list[str]:
    """Feed *chunks* through a fresh framer and return every emitted line."""
    framer = LineFramer()
    lines: list[str] = []
    for chunk in chunks:
        lines.extend(framer.feed(chunk))
    residual = framer.flush()
    if residual is not None:
        lines.append(residual)
    return lines


class TestFeed:
    def test_single_complete_line(self) -> None:
        framer = LineFramer()
        assert framer.feed("hello\n") == ["hello"]
        assert framer.partial == ""

    def test_multiple_lines_in_one_chunk(self) -> None:
        framer = LineFramer()
        assert framer.feed("a\nb\nc\n") == ["a", "b", "c"]

    def test_partial_line_is_buffered(self) -> None:
        framer = LineFramer()
        assert framer.feed('{"type":"resu') == []
        assert framer.partial == '{"type":"resu'
        assert framer.feed('lt","result":"ok"}\n') == ['{"type":"result","result":"ok"}']
        assert framer.partial == ""

    def test_trailing_fragment_kept_after_complete_lines(self) -> None:
        framer = LineFramer()
        assert framer.feed("one\ntw") == ["one"]
        assert framer.partial == "tw"

    def test_carriage_returns_stripped(self) -> None:
        framer = LineFramer()
        assert framer.feed("line one\r\nline\r two\r\n") == ["line one", "line two"]

    def test_carriage_return_split_from_newline(self) -> None:
        framer = LineFramer()
        assert framer.feed("abc\r") == []
        assert framer.feed("\n") == ["abc"]

    def test_empty_chunk_ignored(self) -> None:
        framer = LineFramer()
        framer.feed("keep")
        assert framer.feed("") == []
        assert framer.partial == "keep"

    def test_blank_lines_preserved(self) -> None:
        framer = LineFramer()
        assert framer.feed("a\n\nb\n") == ["a", "", "b"]


class TestFlush:
    def test_flush_returns_residual(self) -> None:
        framer = LineFramer()
        framer.feed("no newline")
        assert framer.flush() == "no newline"
        assert framer.partial == ""

    def test_flush_empty_returns_none(self) -> None:
        framer = LineFramer()
        framer.feed("done\n")
        assert framer.flush() is None

    def test_flush_clears_buffer(self) -> None:
        framer = LineFramer()
        framer.feed("x")
        framer.flush()
        assert framer.flush() is None


class TestChunkBoundaryIndependence:
    """The emitted lines depend only on the concatenated stream."""

    STREAM = (
        'banner text\r\n{"type":"assistant","message":{"content":[{"text":"Hi"}]}}\n'
        '\n{"type":"result","result":"Hi"}\npartial tail'
    )

    def test_every_two_way_split(self) -> None:
        expected = _frame([self.STREAM])
        for i in range(len(self.STREAM) + 1):
            assert _frame([self.STREAM[:i], self.STREAM[i:]]) == expected

    @pytest.mark.parametrize("size", [1, 2, 3, 7, 64])
    def test_fixed_size_chunks(self, size: int) -> None:
        chunks = [self.STREAM[i : i + size] for i in range(0, len(self.STREAM), size)]
        assert _frame(chunks) == _frame([self.STREAM])

    def test_expected_lines(self) -> None:
        assert _frame([self.STREAM]) == [
            "banner text",
            '{"type":"assistant","message":{"content":[{"text":"Hi"}]}}',
            "",
            '{"type":"result","result":"Hi"}',
            "partial tail",
        ]
