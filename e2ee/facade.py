from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from cryptography.hazmat.primitives.asymmetric import rsa

from . import codec, envelope
from .config import DEFAULT_PLACEHOLDER
from .errors import (
    DecryptionFailed, E2EEError, KeyNotFound,
    MalformedEncoding, NoRecipientKey, SealFailed,
)
from .keys import import_public_key
from .record import LegacyPlaintext, SealedMessage, StoredRecord

logger = logging.getLogger(__name__)

PublicKeyLike = Union[rsa.RSAPublicKey, str]


@dataclass(frozen=True)
class OpenedMessage:
    """Result of opening one record. On failure, text is the placeholder."""
    text: str
    error: Optional[E2EEError] = None
    legacy: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None


class MessageCrypto:
    """
    The two entry points the messaging layer uses: seal() before a write,
    open() after a read. Holds no key material.
    """

    def __init__(self, placeholder: str = DEFAULT_PLACEHOLDER):
        self.placeholder = placeholder

    def seal(self, plaintext: str, recipient_public_key: Optional[PublicKeyLike]) -> SealedMessage:
        if recipient_public_key is None or recipient_public_key == "":
            raise NoRecipientKey()

        if isinstance(recipient_public_key, str):
            try:
                recipient_public_key = import_public_key(recipient_public_key)
            except MalformedEncoding as exc:
                raise SealFailed(f"Recipient public key is unusable: {exc}") from exc
        elif not isinstance(recipient_public_key, rsa.RSAPublicKey):
            raise SealFailed(f"Recipient key must be an RSA public key, got {type(recipient_public_key).__name__}")

        try:
            env = envelope.encrypt(plaintext, recipient_public_key)
        except (ValueError, TypeError) as exc:
            raise SealFailed(f"Encryption failed: {exc}") from exc

        return SealedMessage(
            content=codec.to_text(env.ciphertext),
            encrypted_key=codec.to_text(env.wrapped_key),
            iv=codec.to_text(env.nonce),
        )

    def open(self, record: StoredRecord, private_key: Optional[rsa.RSAPrivateKey]) -> OpenedMessage:
        """
        Open one stored record with the local private key.

        A missing private key is an identity-level problem and raises
        KeyNotFound. Problems with this one record (bad base64, tampering,
        wrong recipient) come back as a placeholder OpenedMessage so a batch
        can carry on.
        """
        if private_key is None:
            raise KeyNotFound("local")

        if isinstance(record, LegacyPlaintext):
            return OpenedMessage(text=record.content, legacy=True)

        try:
            env = envelope.Envelope(
                ciphertext=codec.from_text(record.content),
                wrapped_key=codec.from_text(record.encrypted_key),
                nonce=codec.from_text(record.iv),
            )
            return OpenedMessage(text=envelope.decrypt(env, private_key))
        except (MalformedEncoding, DecryptionFailed) as exc:
            logger.warning("Could not open message: %s", exc)
            return OpenedMessage(text=self.placeholder, error=exc)

    def open_many(
        self,
        records: Iterable[StoredRecord],
        private_key: Optional[rsa.RSAPrivateKey],
    ) -> List[OpenedMessage]:
        if private_key is None:
            raise KeyNotFound("local")
        return [self.open(r, private_key) for r in records]
