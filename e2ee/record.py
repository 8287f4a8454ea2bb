from dataclasses import dataclass
from typing import Any, Mapping, Union

CONTENT_FIELD = "content"
KEY_FIELD = "encryptedKey"
IV_FIELD = "iv"

# storage column spelling of the wrapped key field
_KEY_ALIASES = (KEY_FIELD, "encrypted_key")


@dataclass(frozen=True)
class LegacyPlaintext:
    """A record written before encryption was enabled; content is plain text."""
    content: str

    def to_record(self) -> dict:
        return {CONTENT_FIELD: self.content}


@dataclass(frozen=True)
class SealedMessage:
    """Transport form of an Envelope: three base64 strings."""
    content: str        # ciphertext
    encrypted_key: str  # wrapped message key
    iv: str             # nonce

    def to_record(self) -> dict:
        return {
            CONTENT_FIELD: self.content,
            KEY_FIELD: self.encrypted_key,
            IV_FIELD: self.iv,
        }


StoredRecord = Union[LegacyPlaintext, SealedMessage]


def _field(record: Mapping[str, Any], *names: str) -> str | None:
    for name in names:
        value = record.get(name)
        if value:
            return value
    return None


def parse_record(record: Mapping[str, Any]) -> StoredRecord:
    """
    Classify a stored or pushed message record.

    Only a record carrying non-empty wrapped key and iv counts as encrypted;
    anything else is legacy plaintext and its content is kept as-is.
    """
    content = record.get(CONTENT_FIELD) or ""
    encrypted_key = _field(record, *_KEY_ALIASES)
    iv = _field(record, IV_FIELD)
    if encrypted_key is None or iv is None:
        return LegacyPlaintext(content=content)
    return SealedMessage(content=content, encrypted_key=encrypted_key, iv=iv)
