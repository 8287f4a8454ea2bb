"""
Complete End-to-End Example: hybrid RSA-OAEP + AES-GCM messaging

Demonstrates a full secure exchange without a server:
1. Alice and Bob log in (key pairs created on first login)
2. Alice seals a message for Bob's published public key
3. The sealed record travels as three base64 text fields
4. Bob opens it; a tampered copy and a legacy record are handled too
"""

import asyncio
import json
import tempfile
from pathlib import Path

from e2ee import IdentitySession, JsonKeyStore, Settings


async def main():
    workdir = Path(tempfile.mkdtemp())

    # ========================================
    # SETUP: one keystore per device
    # ========================================

    print("=" * 60)
    print("SETUP: Identity sessions")
    print("=" * 60)

    alice = await IdentitySession.login(
        "alice", JsonKeyStore(workdir / "alice.json"), Settings(keystore_passphrase="alice-device-secret")
    )
    bob = await IdentitySession.login(
        "bob", JsonKeyStore(workdir / "bob.json"), Settings(keystore_passphrase="bob-device-secret")
    )
    print("✓ Alice and Bob have key pairs")
    print(f"  Bob's published key starts: {bob.public_key.splitlines()[1][:32]}...")

    # ========================================
    # SEND: Alice -> Bob
    # ========================================

    print("\n" + "=" * 60)
    print("SEND: Alice seals a message for Bob")
    print("=" * 60)

    sealed = alice.seal("hello world 👋", bob.public_key)
    record = sealed.to_record()
    print(json.dumps({k: v[:24] + "..." for k, v in record.items()}, indent=2))

    # ========================================
    # RECEIVE: Bob opens it
    # ========================================

    print("\n" + "=" * 60)
    print("RECEIVE: Bob opens the record")
    print("=" * 60)

    opened = await bob.open_record(record)
    print(f"✓ Bob reads: {opened.text}")

    tampered = dict(record, content=record["content"][:-4] + "AAA=")
    legacy = {"content": "sent before encryption was enabled"}
    results = await bob.open_records([tampered, legacy, record])
    for r in results:
        status = "failed: " + str(r.error) if r.failed else ("legacy" if r.legacy else "ok")
        print(f"  [{status}] {r.text}")

    # Alice cannot read what she sent to Bob
    opened_by_alice = await alice.open_record(record)
    print(f"✓ Alice sees placeholder for Bob's message: {opened_by_alice.text}")

    await alice.logout()
    await bob.logout()
    print("\n✓ Both sessions ended, keys cleared")


if __name__ == "__main__":
    asyncio.run(main())
