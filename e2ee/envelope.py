"""
Hybrid envelope encryption.

Each message gets its own AES-256-GCM key and 12-byte nonce. The message is
encrypted under that key and the raw key is wrapped with the recipient's RSA
public key (OAEP, MGF1-SHA256, SHA-256). The three outputs form the Envelope
and are only meaningful together.

Decryption is fail-closed: every problem in the chain raises DecryptionFailed
with a reason, and no partial plaintext is ever returned.
"""

from dataclasses import dataclass

from cryptography.hazmat.primitives.asymmetric import rsa

from .errors import DecryptionFailed, DecryptReason
from .primitive import (
    AES_KEY_SIZE,
    rand_bytes,
    aead_encrypt, aead_decrypt,
    rsa_oaep_wrap, rsa_oaep_unwrap,
)


@dataclass(frozen=True)
class Envelope:
    """
    One encrypted message.

    Attributes:
        ciphertext: AES-GCM output, 16-byte tag appended
        wrapped_key: RSA-OAEP encryption of the 32-byte message key
        nonce: 12-byte GCM nonce
    """
    ciphertext: bytes
    wrapped_key: bytes
    nonce: bytes


def encrypt(plaintext: str, recipient_public_key: rsa.RSAPublicKey) -> Envelope:
    message_key = rand_bytes(AES_KEY_SIZE)
    nonce, ciphertext = aead_encrypt(message_key, plaintext.encode("utf-8"))
    wrapped_key = rsa_oaep_wrap(recipient_public_key, message_key)
    return Envelope(ciphertext=ciphertext, wrapped_key=wrapped_key, nonce=nonce)


def decrypt(envelope: Envelope, private_key: rsa.RSAPrivateKey) -> str:
    """
    Recover the plaintext of an envelope.

    Steps:
    1. Unwrap the message key with the private key (KEY_UNWRAP on failure)
    2. Check it is a 256-bit key (BAD_KEY)
    3. AES-GCM decrypt and verify the tag (BAD_NONCE / INTEGRITY)
    4. Strict UTF-8 decode (ENCODING)

    Raises:
        DecryptionFailed: with the reason of the first failing step
    """
    message_key = rsa_oaep_unwrap(private_key, envelope.wrapped_key)
    if len(message_key) != AES_KEY_SIZE:
        raise DecryptionFailed(DecryptReason.BAD_KEY, f"unwrapped {len(message_key)} bytes")

    plaintext_bytes = aead_decrypt(message_key, envelope.nonce, envelope.ciphertext)

    try:
        return plaintext_bytes.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionFailed(DecryptReason.ENCODING) from exc
