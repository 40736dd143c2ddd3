import io

import pytest

from tyr.readonly import ReadOnly


def test_equal_string_and_bytes():
    r = ReadOnly("\x13BitTorrent protocol")
    assert r.equal_string("\x13BitTorrent protocol")
    assert r.equal_bytes(b"\x13BitTorrent protocol")
    assert not r.equal_bytes(b"\x13BitTorrent protocoX")
    assert not r.equal_string("other")


def test_len_and_index():
    data = b"hello world"
    r = ReadOnly(data)
    assert len(r) == len(data)
    assert r[0] == data[0]
    assert r[len(data) - 1] == data[-1]
    with pytest.raises(IndexError):
        r[len(data)]


def test_copy_into_short_destination():
    data = b"abcdef"
    r = ReadOnly(data)
    dest = bytearray(3)
    assert r.copy_into(dest) == 3
    assert bytes(dest) == data[:3]


def test_copy_into_long_destination():
    data = b"abc"
    r = ReadOnly(data)
    dest = bytearray(10)
    assert r.copy_into(dest) == len(data)
    assert bytes(dest[: len(data)]) == data
    assert bytes(dest[len(data):]) == bytes(10 - len(data))


def test_less_than():
    assert ReadOnly(b"abc") < ReadOnly(b"abd")
    assert not ReadOnly(b"abd") < ReadOnly(b"abc")
    assert not ReadOnly(b"abc") < ReadOnly(b"abc")


def test_write_to():
    data = b"some payload"
    buf = io.BytesIO()
    assert ReadOnly(data).write_to(buf) == len(data)
    assert buf.getvalue() == data


def test_string_copy_round_trip():
    text = "plain text"
    assert ReadOnly(text).string_copy() == text


def test_non_utf8_bytes_round_trip_through_string():
    raw = bytes(range(256))
    s = ReadOnly(raw).string_copy()
    assert ReadOnly(s).equal_bytes(raw)


def test_independent_of_source_buffer():
    source = bytearray(b"abc")
    r = ReadOnly(source)
    source[0] = ord("z")
    assert r.equal_bytes(b"abc")