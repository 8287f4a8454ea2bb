import os
import tempfile

# the relay reads its database URL at import time; point it at a scratch file
# before any test module imports relay.*
_DB_DIR = tempfile.mkdtemp(prefix="relay-test-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/relay.db"
os.environ["JWT_SECRET"] = "test-secret"

import pytest

from e2ee import JsonKeyStore, Settings, generate_key_pair


@pytest.fixture(scope="session")
def key_pair():
    """RSA generation is slow; share one pair across the run."""
    return generate_key_pair()


@pytest.fixture(scope="session")
def other_key_pair():
    return generate_key_pair()


@pytest.fixture
def keystore(tmp_path):
    return JsonKeyStore(tmp_path / "keys" / "keystore.json")


@pytest.fixture
def settings(tmp_path):
    return Settings(keystore_path=tmp_path / "keys" / "keystore.json", keystore_passphrase="device-secret")
