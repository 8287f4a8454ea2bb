from enum import Enum


class E2EEError(Exception):
    """Base class for every failure raised by the hybrid encryption core."""


class KeyNotFound(E2EEError):
    """No key is stored for the local identity (or it was cleared on logout)."""

    def __init__(self, identity: str, slot: str = "private"):
        self.identity = identity
        self.slot = slot
        super().__init__(f"No {slot} key stored for identity {identity!r}")


class NoRecipientKey(E2EEError):
    """The peer has not published a public key, so nothing can be sent to them."""

    def __init__(self, message: str = "Recipient has no public key; refusing to send"):
        super().__init__(message)


class MalformedEncoding(E2EEError):
    """Text could not be turned back into bytes (bad base64 / bad key text)."""


class DecryptReason(str, Enum):
    KEY_UNWRAP = "key_unwrap"    # wrong private key or corrupted wrapped key
    BAD_KEY = "bad_key"          # unwrapped material is not an AES-256 key
    BAD_NONCE = "bad_nonce"      # nonce has the wrong length
    INTEGRITY = "integrity"      # GCM tag check failed
    ENCODING = "encoding"        # plaintext is not valid UTF-8


class DecryptionFailed(E2EEError):
    def __init__(self, reason: DecryptReason, detail: str = ""):
        self.reason = reason
        msg = f"Decryption failed ({reason.value})"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class KeyGenerationFailed(E2EEError):
    """The platform could not produce key material. Never replaced by a weak key."""


class KeyStorageError(E2EEError):
    """The local key store could not be read or written."""


class SealFailed(E2EEError):
    """Encryption of an outgoing message failed; the message must not be sent."""


class SessionClosed(E2EEError):
    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(f"Session for {identity!r} has been logged out")
