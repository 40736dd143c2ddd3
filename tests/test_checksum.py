from tyr.checksum import crc32c


def test_check_value():
    assert crc32c(b"123456789") == 0xE3069283


def test_empty():
    assert crc32c(b"") == 0


def test_zeros_vector():
    assert crc32c(b"\x00" * 32) == 0x8A9136AA


def test_accepts_bytes_like():
    data = b"hello world"
    assert crc32c(bytearray(data)) == crc32c(data)
    assert crc32c(memoryview(data)) == crc32c(data)


def test_fits_in_32_bits():
    for data in (b"a", b"abc" * 100, bytes(range(256))):
        assert 0 <= crc32c(data) <= 0xFFFFFFFF