import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .errors import KeyStorageError

logger = logging.getLogger(__name__)

PRIVATE_SLOT = "private"
PUBLIC_SLOT = "public"


class JsonKeyStore:
    """
    File-backed key slots, one entry per (identity, slot).

    The file is owner-only (0o600), and a directory the store has to create is
    made owner-only (0o700) as well. This is the device-local store; there is
    no OS keychain integration, so protection at rest comes from file
    permissions plus the optional passphrase applied to the private key PEM by
    KeyPairManager.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        try:
            # only a directory created here is locked down; an existing one is left as found
            if not self.path.parent.exists():
                self.path.parent.mkdir(parents=True)
                self.path.parent.chmod(0o700)
            if not self.path.exists():
                self._write({"identities": {}})
        except OSError as exc:
            raise KeyStorageError(f"Cannot initialise key store at {self.path}: {exc}") from exc

    def _write(self, data: Dict[str, Any]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, self.path)
        self.path.chmod(0o600)

    def load(self) -> Dict[str, Any]:
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise KeyStorageError(f"Cannot read key store {self.path}: {exc}") from exc

    def save(self, data: Dict[str, Any]) -> None:
        try:
            self._write(data)
        except OSError as exc:
            raise KeyStorageError(f"Cannot write key store {self.path}: {exc}") from exc

    def get_slot(self, identity: str, slot: str) -> str | None:
        data = self.load()
        return data["identities"].get(identity, {}).get(slot)

    def put_slots(self, identity: str, slots: Dict[str, str]) -> None:
        # both slots land in one write so a pair is never half-persisted
        data = self.load()
        data["identities"].setdefault(identity, {}).update(slots)
        self.save(data)
        logger.debug("Stored slots %s for identity %s", sorted(slots), identity)

    def delete_identity(self, identity: str) -> bool:
        data = self.load()
        removed = data["identities"].pop(identity, None) is not None
        if removed:
            self.save(data)
        return removed
