"""Tests for the chunk-boundary-safe line reader."""

import random

import pytest

from zaica.client.lines import LineReader


def _read_all(chunks, **kwargs):
    return list(LineReader(chunks, **kwargs))


SAMPLE = (
    b": keep-alive\n"
    b"data: {\"choices\":[{\"delta\":{\"content\":\"h\xc3\xa9llo\"}}]}\r\n"
    b"\n"
    b"data: {\"choices\":[{\"delta\":{\"content\":\"\xe3\x81\x82\"}}]}\n"
    b"\r\n"
    b"data: [DONE]\n"
    b"trailing"
)


class TestLineReader:
    def test_splits_lines(self):
        assert _read_all([b"line1\nline2\r\nline3\n"]) == [b"line1", b"line2", b"line3"]

    def test_end_of_stream_after_last_line(self):
        reader = LineReader([b"only\n"])
        assert reader.next_line() == b"only"
        assert reader.next_line() is None
        assert reader.next_line() is None

    def test_unterminated_tail_returned_once(self):
        reader = LineReader([b"a\nb", b"c"])
        assert reader.next_line() == b"a"
        assert reader.next_line() == b"bc"
        assert reader.next_line() is None

    def test_source_not_pulled_after_exhaustion(self):
        pulls = []

        def source():
            pulls.append(1)
            yield b"x\n"

        reader = LineReader(source())
        assert list(reader) == [b"x"]
        assert reader.next_line() is None
        assert len(pulls) == 1

    def test_empty_lines_preserved(self):
        assert _read_all([b"a\n\n\nb\n"]) == [b"a", b"", b"", b"b"]

    def test_empty_chunks_tolerated(self):
        assert _read_all([b"", b"ab", b"", b"\n", b""]) == [b"ab"]

    def test_line_spanning_many_reads(self):
        chunks = [bytes([c]) for c in b"data: long line\n"]
        assert _read_all(chunks) == [b"data: long line"]

    def test_cr_split_from_lf(self):
        assert _read_all([b"abc\r", b"\ndef\n"]) == [b"abc", b"def"]

    def test_only_one_trailing_cr_trimmed(self):
        assert _read_all([b"abc\r\r\n"]) == [b"abc\r"]

    def test_empty_stream(self):
        assert _read_all([]) == []

    def test_every_single_split_point_matches_whole_read(self):
        expected = _read_all([SAMPLE])
        for i in range(len(SAMPLE) + 1):
            assert _read_all([SAMPLE[:i], SAMPLE[i:]]) == expected, f"split at {i}"

    def test_random_fragmentation_matches_whole_read(self):
        expected = _read_all([SAMPLE])
        rng = random.Random(1234)
        for _ in range(200):
            cuts = sorted(rng.sample(range(1, len(SAMPLE)), rng.randint(1, 12)))
            bounds = [0, *cuts, len(SAMPLE)]
            chunks = [SAMPLE[a:b] for a, b in zip(bounds, bounds[1:])]
            assert _read_all(chunks) == expected

    def test_byte_at_a_time_matches_whole_read(self):
        expected = _read_all([SAMPLE])
        assert _read_all([bytes([b]) for b in SAMPLE]) == expected


class TestLineTruncation:
    def test_long_line_truncated(self):
        assert _read_all([b"abcdefgh\nxy\n"], max_line=4) == [b"abcd", b"xy"]

    def test_truncation_independent_of_chunking(self):
        data = b"0123456789\r\nshort\n0123456789"
        expected = _read_all([data], max_line=5)
        assert expected == [b"01234", b"short", b"01234"]
        for i in range(len(data) + 1):
            assert _read_all([data[:i], data[i:]], max_line=5) == expected

    def test_exact_length_line_with_cr(self):
        assert _read_all([b"abcd\r\n"], max_line=4) == [b"abcd"]

    def test_invalid_max_line(self):
        with pytest.raises(ValueError):
            LineReader([], max_line=0)
