"""Hybrid RSA-OAEP / AES-GCM end-to-end encryption for direct messages."""

from .codec import to_text, from_text

from .envelope import Envelope, encrypt, decrypt

from .errors import (
    E2EEError,
    KeyNotFound,
    NoRecipientKey,
    MalformedEncoding,
    DecryptReason,
    DecryptionFailed,
    KeyGenerationFailed,
    KeyStorageError,
    SealFailed,
    SessionClosed,
)

from .keys import (
    KeyPair,
    KeyPairManager,
    generate_key_pair,
    export_public_key,
    import_public_key,
)

from .keystore import JsonKeyStore

from .record import LegacyPlaintext, SealedMessage, parse_record

from .facade import MessageCrypto, OpenedMessage

from .session import IdentitySession

from .config import Settings

__all__ = [
    # Codec
    "to_text",
    "from_text",
    # Envelope cipher
    "Envelope",
    "encrypt",
    "decrypt",
    # Errors
    "E2EEError",
    "KeyNotFound",
    "NoRecipientKey",
    "MalformedEncoding",
    "DecryptReason",
    "DecryptionFailed",
    "KeyGenerationFailed",
    "KeyStorageError",
    "SealFailed",
    "SessionClosed",
    # Keys
    "KeyPair",
    "KeyPairManager",
    "generate_key_pair",
    "export_public_key",
    "import_public_key",
    "JsonKeyStore",
    # Records + facade
    "LegacyPlaintext",
    "SealedMessage",
    "parse_record",
    "MessageCrypto",
    "OpenedMessage",
    "IdentitySession",
    "Settings",
]
