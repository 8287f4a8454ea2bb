import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

MIN_RSA_KEY_SIZE = 2048
DEFAULT_KEYSTORE_PATH = Path.home() / ".e2ee" / "keystore.json"
DEFAULT_PLACEHOLDER = "[Encrypted message - unable to decrypt]"


@dataclass(frozen=True)
class Settings:
    keystore_path: Path = DEFAULT_KEYSTORE_PATH
    keystore_passphrase: Optional[str] = None
    rsa_key_size: int = MIN_RSA_KEY_SIZE
    decrypt_placeholder: str = DEFAULT_PLACEHOLDER

    def __post_init__(self):
        if self.rsa_key_size < MIN_RSA_KEY_SIZE:
            raise ValueError(f"RSA key size must be at least {MIN_RSA_KEY_SIZE} bits")

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            keystore_path=Path(os.getenv("E2EE_KEYSTORE_PATH", str(DEFAULT_KEYSTORE_PATH))).expanduser(),
            keystore_passphrase=os.getenv("E2EE_KEYSTORE_PASSPHRASE") or None,
            rsa_key_size=int(os.getenv("E2EE_RSA_KEY_SIZE", str(MIN_RSA_KEY_SIZE))),
            decrypt_placeholder=os.getenv("E2EE_DECRYPT_PLACEHOLDER", DEFAULT_PLACEHOLDER),
        )
