from dataclasses import dataclass

import pytest

from netstack.parser import Parser, Serializer, parse, serialize


def test_integer_across_chunk_boundaries():
    parser = Parser([b"\x12", b"\x34\x56", b"\x78"])
    assert parser.integer(4) == 0x12345678
    assert not parser.has_error()


def test_integers_of_mixed_sizes():
    parser = Parser([b"\x01\x02\x03", b"\x04\x05\x06\x07\x08\x09\x0a\x0b"])
    assert parser.integer(1) == 0x01
    assert parser.integer(2) == 0x0203
    assert parser.integer(8) == 0x0405060708090A0B
    assert parser.all_remaining() == []


def test_short_input_sets_error():
    parser = Parser([b"\x01"])
    assert parser.integer(2) == 0
    assert parser.has_error()
    assert parser.integer(1) == 0


def test_string_across_chunks():
    parser = Parser([b"he", b"", b"llo", b"!"])
    assert parser.string(5) == b"hello"
    assert parser.all_remaining() == [b"!"]


def test_string_too_long_is_error():
    parser = Parser(b"abc")
    assert parser.string(4) == b""
    assert parser.has_error()


def test_remove_prefix_keeps_chunk_structure():
    parser = Parser([b"abc", b"de", b"f"])
    parser.remove_prefix(1)
    assert [bytes(v) for v in parser.buffer()] == [b"bc", b"de", b"f"]
    assert parser.all_remaining() == [b"bc", b"de", b"f"]
    assert parser.all_remaining() == []


def test_set_error():
    parser = Parser([b"abc"])
    parser.set_error()
    assert parser.has_error()


def test_serializer_big_endian():
    s = Serializer()
    s.integer(0x0102, 2)
    s.integer(0x03, 1)
    assert s.output() == [b"\x01\x02\x03"]


def test_serializer_buffer_splits_output():
    s = Serializer()
    s.integer(1, 1)
    s.buffer(b"xy")
    s.integer(2, 1)
    assert s.output() == [b"\x01", b"xy", b"\x02"]


def test_serializer_buffer_list_and_initial():
    s = Serializer(b"ab")
    s.integer(1, 1)
    s.buffer([b"c", b"d"])
    assert b"".join(s.output()) == b"ab\x01cd"


@pytest.mark.parametrize("value,size", [(0, 1), (255, 1), (0xBEEF, 2), (0xDEADBEEF, 4), (2**64 - 1, 8)])
def test_integer_round_trip(value, size):
    s = Serializer()
    s.integer(value, size)
    data = s.output()
    assert len(b"".join(data)) == size
    assert Parser(data).integer(size) == value


@dataclass
class _Pair:
    a: int = 0
    b: int = 0

    def parse(self, parser, scale=1):
        self.a = parser.integer(2) * scale
        self.b = parser.integer(4)

    def serialize(self, serializer):
        serializer.integer(self.a, 2)
        serializer.integer(self.b, 4)


def test_helpers_round_trip():
    original = _Pair(7, 123456)
    out = _Pair()
    assert parse(out, serialize(original))
    assert out == original


def test_parse_helper_forwards_arguments_and_reports_error():
    out = _Pair()
    assert parse(out, serialize(_Pair(3, 4)), 10)
    assert out.a == 30
    assert not parse(_Pair(), [b"\x00"])