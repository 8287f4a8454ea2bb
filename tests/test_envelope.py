"""
Envelope Cipher Tests

1. Round trips (empty, ASCII, multi-byte Unicode, large)
2. Fresh key + nonce per encryption
3. Tamper detection on every field, with the failure reason
4. Wrong recipient key
"""

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from e2ee.envelope import Envelope, encrypt, decrypt
from e2ee.errors import DecryptionFailed, DecryptReason
from e2ee.primitive import AES_KEY_SIZE, NONCE_SIZE, TAG_SIZE, rand_bytes, rsa_oaep_wrap


def _flip(data: bytes, index: int) -> bytes:
    b = bytearray(data)
    b[index] ^= 0x01
    return bytes(b)


class TestRoundTrip:

    @pytest.mark.parametrize("plaintext", [
        "",
        "hello world",
        "héllo wörld",
        "日本語のメッセージ",
        "emoji 👋🏽🔐 and zwj 👩‍👩‍👧",
        "line\nbreaks\tand\x00nulls",
        "x" * 100_000,
    ])
    def test_decrypt_inverts_encrypt(self, key_pair, plaintext):
        env = encrypt(plaintext, key_pair.public_key)
        assert decrypt(env, key_pair.private_key) == plaintext

    def test_field_sizes(self, key_pair):
        env = encrypt("hello", key_pair.public_key)
        assert len(env.nonce) == NONCE_SIZE
        assert len(env.ciphertext) == len("hello") + TAG_SIZE
        assert len(env.wrapped_key) == key_pair.public_key.key_size // 8

    def test_empty_plaintext_still_carries_tag(self, key_pair):
        env = encrypt("", key_pair.public_key)
        assert len(env.ciphertext) == TAG_SIZE

    def test_fresh_randomness_each_call(self, key_pair):
        a = encrypt("same text", key_pair.public_key)
        b = encrypt("same text", key_pair.public_key)
        assert a.nonce != b.nonce
        assert a.wrapped_key != b.wrapped_key
        assert a.ciphertext != b.ciphertext
        assert decrypt(a, key_pair.private_key) == decrypt(b, key_pair.private_key) == "same text"


class TestTamper:

    @pytest.mark.parametrize("position", ["first", "middle", "last"])
    def test_ciphertext_flip_fails_integrity(self, key_pair, position):
        env = encrypt("attack at dawn", key_pair.public_key)
        idx = {"first": 0, "middle": len(env.ciphertext) // 2, "last": -1}[position]
        bad = Envelope(_flip(env.ciphertext, idx), env.wrapped_key, env.nonce)
        with pytest.raises(DecryptionFailed) as exc_info:
            decrypt(bad, key_pair.private_key)
        assert exc_info.value.reason is DecryptReason.INTEGRITY

    @pytest.mark.parametrize("index", [0, 5, NONCE_SIZE - 1])
    def test_nonce_flip_fails_integrity(self, key_pair, index):
        env = encrypt("attack at dawn", key_pair.public_key)
        bad = Envelope(env.ciphertext, env.wrapped_key, _flip(env.nonce, index))
        with pytest.raises(DecryptionFailed) as exc_info:
            decrypt(bad, key_pair.private_key)
        assert exc_info.value.reason is DecryptReason.INTEGRITY

    @pytest.mark.parametrize("position", ["first", "middle", "last"])
    def test_wrapped_key_flip_fails_unwrap(self, key_pair, position):
        env = encrypt("attack at dawn", key_pair.public_key)
        idx = {"first": 0, "middle": len(env.wrapped_key) // 2, "last": -1}[position]
        bad = Envelope(env.ciphertext, _flip(env.wrapped_key, idx), env.nonce)
        with pytest.raises(DecryptionFailed) as exc_info:
            decrypt(bad, key_pair.private_key)
        assert exc_info.value.reason is DecryptReason.KEY_UNWRAP

    def test_truncated_ciphertext(self, key_pair):
        env = encrypt("attack at dawn", key_pair.public_key)
        for cut in (env.ciphertext[:-1], env.ciphertext[:TAG_SIZE - 1], b""):
            with pytest.raises(DecryptionFailed) as exc_info:
                decrypt(Envelope(cut, env.wrapped_key, env.nonce), key_pair.private_key)
            assert exc_info.value.reason is DecryptReason.INTEGRITY

    def test_truncated_nonce(self, key_pair):
        env = encrypt("attack at dawn", key_pair.public_key)
        with pytest.raises(DecryptionFailed) as exc_info:
            decrypt(Envelope(env.ciphertext, env.wrapped_key, env.nonce[:8]), key_pair.private_key)
        assert exc_info.value.reason is DecryptReason.BAD_NONCE

    def test_wrong_private_key(self, key_pair, other_key_pair):
        env = encrypt("for key_pair only", key_pair.public_key)
        with pytest.raises(DecryptionFailed) as exc_info:
            decrypt(env, other_key_pair.private_key)
        assert exc_info.value.reason is DecryptReason.KEY_UNWRAP


class TestMalformedContents:
    """Envelopes that decrypt cryptographically but carry bad contents."""

    def test_short_message_key(self, key_pair):
        short_key = rand_bytes(16)
        env = Envelope(
            ciphertext=AESGCM(short_key).encrypt(b"\x00" * NONCE_SIZE, b"hi", None),
            wrapped_key=rsa_oaep_wrap(key_pair.public_key, short_key),
            nonce=b"\x00" * NONCE_SIZE,
        )
        with pytest.raises(DecryptionFailed) as exc_info:
            decrypt(env, key_pair.private_key)
        assert exc_info.value.reason is DecryptReason.BAD_KEY

    def test_invalid_utf8_plaintext(self, key_pair):
        message_key = rand_bytes(AES_KEY_SIZE)
        nonce = rand_bytes(NONCE_SIZE)
        env = Envelope(
            ciphertext=AESGCM(message_key).encrypt(nonce, b"\xff\xfe\xfd", None),
            wrapped_key=rsa_oaep_wrap(key_pair.public_key, message_key),
            nonce=nonce,
        )
        with pytest.raises(DecryptionFailed) as exc_info:
            decrypt(env, key_pair.private_key)
        assert exc_info.value.reason is DecryptReason.ENCODING
