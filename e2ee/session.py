from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, List, Mapping, Optional

from .config import Settings
from .errors import SessionClosed
from .facade import MessageCrypto, OpenedMessage, PublicKeyLike
from .keys import KeyPairManager
from .keystore import JsonKeyStore
from .record import SealedMessage, parse_record

logger = logging.getLogger(__name__)


class IdentitySession:
    """
    The logged-in identity on this device.

    Created by login() and ended by logout(); every call site that needs the
    local identity gets this object passed in.
    """

    def __init__(self, user_id: str, keys: KeyPairManager, crypto: MessageCrypto, public_key: str):
        self.user_id = user_id
        self.keys = keys
        self.crypto = crypto
        self.public_key = public_key
        self._closed = False

    @classmethod
    async def login(
        cls,
        user_id: str,
        keystore: Optional[JsonKeyStore] = None,
        settings: Optional[Settings] = None,
    ) -> "IdentitySession":
        """
        Start a session and make sure the identity has a key pair.

        Key generation or storage failures propagate: a session without
        encryption capability is never handed out.
        """
        settings = settings or Settings.from_env()
        keystore = keystore or JsonKeyStore(settings.keystore_path)
        keys = KeyPairManager(
            keystore,
            user_id,
            passphrase=settings.keystore_passphrase,
            key_size=settings.rsa_key_size,
        )
        public_key = await keys.initialize()
        logger.info("Session started for %s", user_id)
        return cls(user_id, keys, MessageCrypto(settings.decrypt_placeholder), public_key)

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosed(self.user_id)

    def seal(self, plaintext: str, recipient_public_key: Optional[PublicKeyLike]) -> SealedMessage:
        self._ensure_open()
        return self.crypto.seal(plaintext, recipient_public_key)

    async def open_record(self, record: Mapping[str, Any]) -> OpenedMessage:
        self._ensure_open()
        private_key = await self.keys.load_private_key()
        return await asyncio.to_thread(self.crypto.open, parse_record(record), private_key)

    async def open_records(self, records: Iterable[Mapping[str, Any]]) -> List[OpenedMessage]:
        """Open a batch concurrently; results keep the input order."""
        self._ensure_open()
        private_key = await self.keys.load_private_key()
        parsed = [parse_record(r) for r in records]
        return list(await asyncio.gather(
            *(asyncio.to_thread(self.crypto.open, r, private_key) for r in parsed)
        ))

    async def logout(self, clear_keys: bool = True) -> None:
        if self._closed:
            return
        if clear_keys:
            await self.keys.clear()
        self._closed = True
        logger.info("Session ended for %s", self.user_id)
