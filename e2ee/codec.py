"""
Transport encoding for envelope fields.

Every byte buffer that leaves the device (ciphertext, wrapped key, nonce)
travels as standard base64 text with padding. Decoding is strict: anything
outside the base64 alphabet, a wrong length, or broken padding is rejected
with MalformedEncoding instead of being silently skipped.
"""

import base64
import binascii

from .errors import MalformedEncoding


def to_text(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def from_text(text: str) -> bytes:
    if not isinstance(text, str):
        raise MalformedEncoding(f"Expected base64 text, got {type(text).__name__}")
    try:
        raw = text.encode("ascii")
    except UnicodeEncodeError as exc:
        raise MalformedEncoding("Base64 text contains non-ASCII characters") from exc
    try:
        return base64.b64decode(raw, validate=True)
    except binascii.Error as exc:
        raise MalformedEncoding(f"Invalid base64 text: {exc}") from exc
