import pytest

from script_num import bool_item, cast_to_bool, decode_num, encode_num, is_minimally_encoded


@pytest.mark.parametrize("n, encoded", [
    (0, ""),
    (1, "01"),
    (-1, "81"),
    (16, "10"),
    (-16, "90"),
    (127, "7f"),
    (128, "8000"),
    (-128, "8080"),
    (255, "ff00"),
    (256, "0001"),
    (-256, "0081"),
    (32767, "ff7f"),
    (32768, "008000"),
])
def test_encode_known_values(n, encoded):
    assert encode_num(n).hex() == encoded
    assert decode_num(bytes.fromhex(encoded)) == n


def test_round_trip_over_wide_range():
    values = list(range(-70000, 70001, 7)) + [2 ** 31 - 1, -(2 ** 31), 2 ** 63, -(2 ** 63) + 1]
    for n in values:
        assert decode_num(encode_num(n)) == n


def test_non_minimal_encodings_still_decode():
    assert decode_num(b"\x01\x00") == 1
    assert decode_num(b"\x01\x80") == -1
    assert not is_minimally_encoded(b"\x01\x00")
    assert is_minimally_encoded(b"\x80\x00")


@pytest.mark.parametrize("item, expected", [
    (b"", False),
    (b"\x00", False),
    (b"\x00\x00\x00", False),
    (b"\x80", False),
    (b"\x00\x00\x80", False),
    (b"\x01", True),
    (b"\x00\x01", True),
    (b"\x80\x00", True),
    (b"\x80\x80", True),
])
def test_cast_to_bool(item, expected):
    assert cast_to_bool(item) is expected


def test_bool_item():
    assert bool_item(True) == b"\x01"
    assert bool_item(False) == b""
