"""DER codec for two-integer ECDSA signatures.

Layout: SEQUENCE { INTEGER r, INTEGER s }. Lengths may use the short form
(one byte, < 0x80) or the long form (0x80 | n followed by n length bytes).
"""

from __future__ import annotations

from nonce_audit.utils.errors import DecodeError
from nonce_audit.utils.types import Signature

SEQUENCE_TAG = 0x30
INTEGER_TAG = 0x02


def _read_length(data: bytes, offset: int) -> tuple[int, int]:
    """Read a DER length at offset. Returns (length, offset of content)."""
    if offset >= len(data):
        raise DecodeError(f"Length byte at offset {offset} is past end of {len(data)} bytes")
    first = data[offset]
    if not first & 0x80:
        return first, offset + 1
    num_bytes = first & 0x7F
    if num_bytes == 0:
        raise DecodeError("Indefinite length is not allowed in DER")
    end = offset + 1 + num_bytes
    if end > len(data):
        raise DecodeError(f"Long-form length at offset {offset} runs past end of input")
    return int.from_bytes(data[offset + 1:end], "big"), end


def _read_integer(data: bytes, offset: int, name: str) -> tuple[int, int]:
    """Read INTEGER at offset. Returns (value, offset after the integer)."""
    if offset >= len(data):
        raise DecodeError(f"Missing INTEGER {name} at offset {offset}")
    if data[offset] != INTEGER_TAG:
        raise DecodeError(
            f"Expected INTEGER tag for {name} at offset {offset}, got {data[offset]:#04x}"
        )
    length, start = _read_length(data, offset + 1)
    if length == 0:
        raise DecodeError(f"INTEGER {name} has zero length")
    end = start + length
    if end > len(data):
        raise DecodeError(
            f"INTEGER {name} claims {length} bytes but only {len(data) - start} remain"
        )
    # Scalars are non-negative; a leading 0x00 pad byte is absorbed here.
    return int.from_bytes(data[start:end], "big"), end


def decode_signature(signature: bytes) -> Signature:
    """Extract (r, s) from a DER encoded ECDSA signature."""
    data = bytes(signature)
    if len(data) < 8:
        raise DecodeError(f"Signature of {len(data)} bytes is too short for DER (r, s)")
    if data[0] != SEQUENCE_TAG:
        raise DecodeError(f"Expected SEQUENCE tag, got {data[0]:#04x}")
    seq_length, start_r = _read_length(data, 1)
    if start_r + seq_length > len(data):
        raise DecodeError(
            f"SEQUENCE claims {seq_length} bytes but only {len(data) - start_r} remain"
        )
    r, start_s = _read_integer(data, start_r, "r")
    s, _ = _read_integer(data, start_s, "s")
    return Signature(r=r, s=s)


def extract_r(signature: bytes) -> int:
    return decode_signature(signature).r


def extract_s(signature: bytes) -> int:
    return decode_signature(signature).s


def _encode_length(length: int) -> bytes:
    if length < 0x80:
        return bytes([length])
    body = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([0x80 | len(body)]) + body


def _encode_integer(value: int) -> bytes:
    if value < 0:
        raise ValueError(f"Signature scalars must be non-negative, got {value}")
    # One extra byte when the top bit is set keeps the encoding positive.
    body = value.to_bytes(value.bit_length() // 8 + 1, "big")
    return bytes([INTEGER_TAG]) + _encode_length(len(body)) + body


def encode_signature(r: int, s: int) -> bytes:
    """DER encode (r, s) as SEQUENCE { INTEGER r, INTEGER s }."""
    content = _encode_integer(r) + _encode_integer(s)
    return bytes([SEQUENCE_TAG]) + _encode_length(len(content)) + content
