from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from cryptography.hazmat.primitives.asymmetric import rsa

from .config import MIN_RSA_KEY_SIZE
from .errors import KeyGenerationFailed, KeyNotFound, KeyStorageError, MalformedEncoding
from .keystore import JsonKeyStore, PRIVATE_SLOT, PUBLIC_SLOT
from .primitive import (
    rsa_keypair,
    rsa_pub_to_pem, rsa_pub_from_pem,
    rsa_priv_to_pem, rsa_priv_from_pem,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyPair:
    public_key: rsa.RSAPublicKey
    private_key: rsa.RSAPrivateKey

    def public_pem(self) -> str:
        return rsa_pub_to_pem(self.public_key)


def generate_key_pair(key_size: int = MIN_RSA_KEY_SIZE) -> KeyPair:
    """
    Create a fresh RSA key pair for OAEP/SHA-256 key wrapping.

    Raises KeyGenerationFailed if the size is below the 2048-bit floor or the
    backend cannot generate keys.
    """
    if key_size < MIN_RSA_KEY_SIZE:
        raise KeyGenerationFailed(f"RSA key size {key_size} is below the {MIN_RSA_KEY_SIZE}-bit minimum")
    priv, pub = rsa_keypair(key_size)
    return KeyPair(public_key=pub, private_key=priv)


def export_public_key(pub: rsa.RSAPublicKey) -> str:
    return rsa_pub_to_pem(pub)

def import_public_key(text: str) -> rsa.RSAPublicKey:
    return rsa_pub_from_pem(text)


class KeyPairManager:
    """
    Owns the key pair of one local identity.

    Storage reads/writes and RSA generation run in a worker thread so callers
    on the event loop only suspend. persist() and clear() for the same
    identity must not be raced by the caller.
    """

    generate_key_pair = staticmethod(generate_key_pair)

    def __init__(
        self,
        keystore: JsonKeyStore,
        identity: str,
        passphrase: str | None = None,
        key_size: int = MIN_RSA_KEY_SIZE,
    ):
        self.keystore = keystore
        self.identity = identity
        self._passphrase = passphrase
        self.key_size = key_size
        if not passphrase:
            logger.warning(
                "No keystore passphrase configured; private key for %s is protected by file permissions only",
                identity,
            )

    async def has_key_pair(self) -> bool:
        blob = await asyncio.to_thread(self.keystore.get_slot, self.identity, PRIVATE_SLOT)
        return blob is not None

    async def persist(self, key_pair: KeyPair) -> None:
        slots = {
            PRIVATE_SLOT: rsa_priv_to_pem(key_pair.private_key, self._passphrase),
            PUBLIC_SLOT: rsa_pub_to_pem(key_pair.public_key),
        }
        await asyncio.to_thread(self.keystore.put_slots, self.identity, slots)

    async def load_private_key(self) -> rsa.RSAPrivateKey:
        blob = await asyncio.to_thread(self.keystore.get_slot, self.identity, PRIVATE_SLOT)
        if blob is None:
            raise KeyNotFound(self.identity, PRIVATE_SLOT)
        try:
            return rsa_priv_from_pem(blob, self._passphrase)
        except MalformedEncoding as exc:
            raise KeyStorageError(f"Stored private key for {self.identity!r} cannot be loaded: {exc}") from exc

    async def load_public_key(self) -> rsa.RSAPublicKey:
        blob = await asyncio.to_thread(self.keystore.get_slot, self.identity, PUBLIC_SLOT)
        if blob is None:
            raise KeyNotFound(self.identity, PUBLIC_SLOT)
        return rsa_pub_from_pem(blob)

    async def initialize(self) -> str:
        """
        Return the identity's public key (PEM), creating the pair on first use.

        Safe to call on every login: an existing pair is never replaced.
        """
        if await self.has_key_pair():
            # a missing public slot raises KeyNotFound rather than replacing the pair
            return export_public_key(await self.load_public_key())

        key_pair = await asyncio.to_thread(generate_key_pair, self.key_size)
        await self.persist(key_pair)
        logger.info("Generated RSA-%d key pair for %s", self.key_size, self.identity)
        return key_pair.public_pem()

    async def clear(self) -> None:
        removed = await asyncio.to_thread(self.keystore.delete_identity, self.identity)
        if removed:
            logger.info("Cleared stored keys for %s", self.identity)
