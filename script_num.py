#!/usr/bin/env python3
"""
script_num.py

Minimal script-number encoding and the truthiness rule for stack items.

Numbers are little-endian sign-magnitude: the top bit of the last byte is
the sign. Zero is the empty byte string.
"""


def encode_num(n: int) -> bytes:
    if n == 0:
        return b""
    negative = n < 0
    magnitude = -n if negative else n
    out = bytearray()
    while magnitude:
        out.append(magnitude & 0xff)
        magnitude >>= 8
    # top bit already used by the magnitude, add a byte for the sign
    if out[-1] & 0x80:
        out.append(0x80 if negative else 0x00)
    elif negative:
        out[-1] |= 0x80
    return bytes(out)


def decode_num(b: bytes) -> int:
    if not b:
        return 0
    result = int.from_bytes(b, "little")
    sign_bit = 0x80 << (8 * (len(b) - 1))
    if result & sign_bit:
        return -(result & ~sign_bit)
    return result


def is_minimally_encoded(b: bytes) -> bool:
    """True if `b` is what encode_num would produce for its value."""
    return encode_num(decode_num(b)) == b


def cast_to_bool(b: bytes) -> bool:
    """
    Any nonzero byte makes the item true, except that 0x80 as the last
    byte with all others zero is negative zero, which is false.
    """
    for i, byte in enumerate(b):
        if byte != 0:
            if i == len(b) - 1 and byte == 0x80:
                return False
            return True
    return False


def bool_item(value: bool) -> bytes:
    return b"\x01" if value else b""
