"""
Relay API Tests

1. Accounts: signup, login, profile, publishing a public key
2. Contacts
3. Messages: the relay refuses anything that is not a sealed record
4. End to end: seal on one device, store on the relay, open on the other
5. WebSocket push
"""

import asyncio
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketDisconnect

from e2ee import IdentitySession, JsonKeyStore, Settings, export_public_key, to_text
from relay.crud import create_message
from relay.db import SessionLocal, init_db
from relay.main import app
from relay.ws import presence


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def client():
    run(init_db(drop=True))
    with TestClient(app) as c:
        yield c


def _signup(client, name, email, public_key=None):
    body = {"name": name, "email": email}
    if public_key is not None:
        body["publicKey"] = public_key
    resp = client.post("/users", json=body)
    assert resp.status_code == 201, resp.text
    data = resp.json()
    return data["user"], {"Authorization": f"Bearer {data['access_token']}"}


def _login(user_id, tmp_path):
    settings = Settings(keystore_path=tmp_path / user_id / "keys.json", keystore_passphrase="pw")
    return run(IdentitySession.login(user_id, JsonKeyStore(settings.keystore_path), settings))


def _insert_legacy(sender_id, receiver_id, content):
    async def _go():
        async with SessionLocal() as session:
            await create_message(
                session,
                sender_id=UUID(sender_id),
                receiver_id=UUID(receiver_id),
                content=content,
                encrypted_key=None,
                iv=None,
            )
            await session.commit()
    run(_go())


class TestAccounts:

    def test_signup_and_login(self, client):
        user, _ = _signup(client, "Alice", "Alice@Example.com")
        assert user["email"] == "alice@example.com"
        assert user["publicKey"] is None

        resp = client.post("/auth/login", json={"email": "alice@example.com"})
        assert resp.status_code == 200
        assert resp.json()["token_type"] == "bearer"

    def test_duplicate_email(self, client):
        _signup(client, "Alice", "alice@example.com")
        resp = client.post("/users", json={"name": "Other", "email": "alice@example.com"})
        assert resp.status_code == 409

    def test_login_unknown_email(self, client):
        resp = client.post("/auth/login", json={"email": "nobody@example.com"})
        assert resp.status_code == 404

    def test_invalid_token(self, client):
        resp = client.get("/users/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_publish_public_key(self, client, key_pair):
        _, headers = _signup(client, "Alice", "alice@example.com")
        pem = export_public_key(key_pair.public_key)

        resp = client.patch("/users/me", json={"publicKey": pem}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["publicKey"] == pem
        assert client.get("/users/me", headers=headers).json()["publicKey"] == pem

    def test_unparseable_public_key_rejected(self, client):
        _, headers = _signup(client, "Alice", "alice@example.com")
        resp = client.patch("/users/me", json={"publicKey": "not a key"}, headers=headers)
        assert resp.status_code == 422

        resp = client.post("/users", json={"name": "Bob", "email": "bob@example.com", "publicKey": "junk"})
        assert resp.status_code == 422

    def test_lookup_by_email_and_id(self, client, key_pair):
        pem = export_public_key(key_pair.public_key)
        bob, _ = _signup(client, "Bob", "bob@example.com", public_key=pem)
        _, headers = _signup(client, "Alice", "alice@example.com")

        by_email = client.get("/users/by-email", params={"email": "bob@example.com"}, headers=headers)
        assert by_email.status_code == 200
        assert by_email.json()["publicKey"] == pem

        by_id = client.get(f"/users/{bob['id']}", headers=headers)
        assert by_id.json()["email"] == "bob@example.com"

        missing = client.get("/users/by-email", params={"email": "carol@example.com"}, headers=headers)
        assert missing.status_code == 404


class TestContacts:

    def test_add_and_list(self, client):
        _signup(client, "Bob", "bob@example.com")
        _signup(client, "Carol", "carol@example.com")
        _, headers = _signup(client, "Alice", "alice@example.com")

        assert client.post("/contacts", json={"email": "carol@example.com"}, headers=headers).status_code == 201
        assert client.post("/contacts", json={"email": "bob@example.com"}, headers=headers).status_code == 201

        contacts = client.get("/contacts", headers=headers).json()["contacts"]
        assert [c["name"] for c in contacts] == ["Bob", "Carol"]

    def test_rejected_contacts(self, client):
        _signup(client, "Bob", "bob@example.com")
        _, headers = _signup(client, "Alice", "alice@example.com")
        client.post("/contacts", json={"email": "bob@example.com"}, headers=headers)

        assert client.post("/contacts", json={"email": "bob@example.com"}, headers=headers).status_code == 409
        assert client.post("/contacts", json={"email": "alice@example.com"}, headers=headers).status_code == 400
        assert client.post("/contacts", json={"email": "nobody@example.com"}, headers=headers).status_code == 404


class TestMessages:

    @pytest.mark.parametrize("body", [
        {"content": "aGk="},
        {"content": "aGk=", "iv": "aXY="},
        {"content": "aGk=", "encryptedKey": "a2V5"},
        {"content": "aGk=", "encryptedKey": "", "iv": ""},
        {"content": "plain text!", "encryptedKey": "a2V5", "iv": "aXY="},
        {"content": "aGk=", "encryptedKey": "%%%", "iv": "aXY="},
    ])
    def test_unsealed_send_rejected(self, client, body):
        bob, _ = _signup(client, "Bob", "bob@example.com")
        _, headers = _signup(client, "Alice", "alice@example.com")
        resp = client.post("/messages", json={"receiver_id": bob["id"], **body}, headers=headers)
        assert resp.status_code == 422

    def test_unknown_receiver(self, client):
        _, headers = _signup(client, "Alice", "alice@example.com")
        body = {
            "receiver_id": "00000000-0000-0000-0000-000000000000",
            "content": "aGk=", "encryptedKey": "a2V5", "iv": "aXY=",
        }
        assert client.post("/messages", json=body, headers=headers).status_code == 404

    def test_end_to_end_conversation(self, client, tmp_path):
        alice_session = _login("alice", tmp_path)
        bob_session = _login("bob", tmp_path)
        alice, alice_headers = _signup(client, "Alice", "alice@example.com", alice_session.public_key)
        bob, bob_headers = _signup(client, "Bob", "bob@example.com", bob_session.public_key)

        # an old row from before encryption was switched on
        _insert_legacy(alice["id"], bob["id"], "hey, are you there?")

        bob_key = client.get(f"/users/{bob['id']}", headers=alice_headers).json()["publicKey"]
        for text in ("hello world", "second message"):
            record = alice_session.seal(text, bob_key).to_record()
            resp = client.post("/messages", json={"receiver_id": bob["id"], **record}, headers=alice_headers)
            assert resp.status_code == 201
            assert resp.json()["encryptedKey"] == record["encryptedKey"]
            assert text not in resp.text

        rows = client.get(f"/messages/conversation/{alice['id']}", headers=bob_headers).json()
        assert len(rows) == 3

        opened = run(bob_session.open_records(rows))
        assert [m.text for m in opened] == ["hey, are you there?", "hello world", "second message"]
        assert opened[0].legacy
        assert not any(m.failed for m in opened)

        # the sender's own copy was sealed for bob, not for alice
        mine = run(alice_session.open_records(rows))
        assert mine[1].failed and mine[2].failed

    def test_conversation_limit_keeps_newest(self, client):
        alice, alice_headers = _signup(client, "Alice", "alice@example.com")
        bob, bob_headers = _signup(client, "Bob", "bob@example.com")
        for i in range(5):
            body = {"receiver_id": bob["id"], "content": to_text(f"m{i}".encode()), "encryptedKey": "a2V5", "iv": "aXY="}
            assert client.post("/messages", json=body, headers=alice_headers).status_code == 201

        url = f"/messages/conversation/{alice['id']}"
        latest = client.get(url, params={"limit": 3}, headers=bob_headers).json()
        assert [r["content"] for r in latest] == [to_text(f"m{i}".encode()) for i in (2, 3, 4)]

        everything = client.get(url, headers=bob_headers).json()
        assert [r["content"] for r in everything] == [to_text(f"m{i}".encode()) for i in range(5)]

    def test_mark_read(self, client):
        alice, alice_headers = _signup(client, "Alice", "alice@example.com")
        bob, bob_headers = _signup(client, "Bob", "bob@example.com")
        body = {"receiver_id": bob["id"], "content": "aGk=", "encryptedKey": "a2V5", "iv": "aXY="}
        client.post("/messages", json=body, headers=alice_headers)
        client.post("/messages", json=body, headers=alice_headers)

        assert client.post(f"/messages/read/{alice['id']}", headers=bob_headers).json() == {"updated": 2}
        assert client.post(f"/messages/read/{alice['id']}", headers=bob_headers).json() == {"updated": 0}

        rows = client.get(f"/messages/conversation/{alice['id']}", headers=bob_headers).json()
        assert all(r["is_read"] for r in rows)


class TestWebSocket:

    def test_bad_token_closes(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws?token=garbage") as ws:
                ws.receive_json()
        assert exc_info.value.code == 4401

    def test_ping_and_push(self, client):
        alice, alice_headers = _signup(client, "Alice", "alice@example.com")
        bob, bob_headers = _signup(client, "Bob", "bob@example.com")
        token = bob_headers["Authorization"].split()[1]

        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

            body = {"receiver_id": bob["id"], "content": "aGk=", "encryptedKey": "a2V5", "iv": "aXY="}
            assert client.post("/messages", json=body, headers=alice_headers).status_code == 201

            pushed = ws.receive_json()
            assert pushed["type"] == "message"
            assert pushed["message"]["sender_id"] == alice["id"]
            assert pushed["message"]["encryptedKey"] == "a2V5"

    def test_second_device_closing_keeps_first_online(self, client):
        alice, alice_headers = _signup(client, "Alice", "alice@example.com")
        bob, bob_headers = _signup(client, "Bob", "bob@example.com")
        url = f"/ws?token={bob_headers['Authorization'].split()[1]}"

        with client.websocket_connect(url) as phone:
            with client.websocket_connect(url) as laptop:
                laptop.send_json({"type": "ping"})
                assert laptop.receive_json() == {"type": "pong"}

            phone.send_json({"type": "ping"})
            assert phone.receive_json() == {"type": "pong"}
            assert presence.is_online(UUID(bob["id"]))

            body = {"receiver_id": bob["id"], "content": "aGk=", "encryptedKey": "a2V5", "iv": "aXY="}
            assert client.post("/messages", json=body, headers=alice_headers).status_code == 201
            assert phone.receive_json()["type"] == "message"

    def test_malformed_frames_are_ignored(self, client):
        _, bob_headers = _signup(client, "Bob", "bob@example.com")
        url = f"/ws?token={bob_headers['Authorization'].split()[1]}"

        with client.websocket_connect(url) as ws:
            ws.send_text("not json")
            ws.send_bytes(b"\x00\x01")
            ws.send_json([1, 2, 3])
            ws.send_json("ping")
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}
