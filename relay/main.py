import logging
import os
from contextlib import asynccontextmanager
from uuid import UUID

import jwt
from fastapi import FastAPI, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session, init_db, SessionLocal
from .auth import create_access_token, decode_access_token, get_current_user_id
from .schemas import (
    UserCreateIn, UserUpdateIn, UserOut, SignupOut, LoginIn, TokenOut,
    ContactAddIn, ContactsOut,
    MessageSendIn, MessageOut, ReadReceiptOut,
)
from .crud import (
    get_user, get_user_by_email, create_user, update_user,
    list_contacts, get_contact, add_contact,
    create_message, get_conversation, mark_read,
)
from .ws import presence

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()
    yield


app = FastAPI(title="E2EE relay (stores sealed messages only)", lifespan=lifespan)

# ---- CORS ----
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:8081,http://localhost:19006").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def _require_user(session: AsyncSession, user_id: str):
    user = await get_user(session, UUID(user_id))
    if not user:
        raise HTTPException(401, "Unknown account")
    return user

# ---- USERS ----

@app.post("/users", response_model=SignupOut, status_code=201)
async def signup(data: UserCreateIn, session: AsyncSession = Depends(get_session)):
    if await get_user_by_email(session, data.email):
        raise HTTPException(409, "Email already registered")

    user = await create_user(
        session,
        name=data.name,
        email=data.email,
        avatar=data.avatar,
        bio=data.bio,
        public_key=data.public_key,
    )
    await session.commit()
    if not user.public_key:
        logger.warning("User %s signed up without a public key; nobody can message them yet", user.id)
    return SignupOut(user=UserOut.model_validate(user), access_token=create_access_token(str(user.id)))

@app.post("/auth/login", response_model=TokenOut)
async def login(data: LoginIn, session: AsyncSession = Depends(get_session)):
    user = await get_user_by_email(session, data.email)
    if not user:
        raise HTTPException(404, "User not found. Please sign up first.")
    return TokenOut(access_token=create_access_token(str(user.id)))

@app.get("/users/me", response_model=UserOut)
async def read_me(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    return await _require_user(session, user_id)

@app.patch("/users/me", response_model=UserOut)
async def update_me(
    data: UserUpdateIn,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    user = await _require_user(session, user_id)
    user = await update_user(session, user, data.model_dump(exclude_unset=True))
    await session.commit()
    return user

@app.get("/users/by-email", response_model=UserOut)
async def read_user_by_email(
    email: str = Query(...),
    session: AsyncSession = Depends(get_session),
    _caller_user_id: str = Depends(get_current_user_id),
):
    user = await get_user_by_email(session, email)
    if not user:
        raise HTTPException(404, "User not found")
    return user

@app.get("/users/{target_user_id}", response_model=UserOut)
async def read_user(
    target_user_id: UUID,
    session: AsyncSession = Depends(get_session),
    _caller_user_id: str = Depends(get_current_user_id),
):
    user = await get_user(session, target_user_id)
    if not user:
        raise HTTPException(404, "User not found")
    return user

# ---- CONTACTS ----

@app.get("/contacts", response_model=ContactsOut)
async def read_contacts(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    users = await list_contacts(session, UUID(user_id))
    return ContactsOut(contacts=[UserOut.model_validate(u) for u in users])

@app.post("/contacts", response_model=UserOut, status_code=201)
async def create_contact(
    data: ContactAddIn,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    me = await _require_user(session, user_id)
    other = await get_user_by_email(session, data.email)
    if not other:
        raise HTTPException(404, "No user with that email")
    if other.id == me.id:
        raise HTTPException(400, "Cannot add yourself as a contact")
    if await get_contact(session, me.id, other.id):
        raise HTTPException(409, "Already a contact")

    await add_contact(session, me.id, other.id)
    await session.commit()
    return other

# ---- MESSAGES ----

@app.post("/messages", response_model=MessageOut, status_code=201)
async def send_message(
    data: MessageSendIn,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    sender = await _require_user(session, user_id)
    receiver = await get_user(session, data.receiver_id)
    if not receiver:
        raise HTTPException(404, "Receiver not found")

    msg = await create_message(
        session,
        sender_id=sender.id,
        receiver_id=receiver.id,
        content=data.content,
        encrypted_key=data.encrypted_key,
        iv=data.iv,
    )
    await session.commit()

    out = MessageOut.model_validate(msg)
    delivered = await presence.push(receiver.id, {
        "type": "message",
        "message": out.model_dump(mode="json", by_alias=True),
    })
    logger.debug("Stored message %s (pushed=%s)", msg.id, delivered)
    return out

@app.get("/messages/conversation/{contact_id}", response_model=list[MessageOut])
async def read_conversation(
    contact_id: UUID,
    limit: int = Query(default=500, ge=1, le=1000),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    return await get_conversation(session, UUID(user_id), contact_id, limit=limit)

@app.post("/messages/read/{contact_id}", response_model=ReadReceiptOut)
async def mark_conversation_read(
    contact_id: UUID,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    updated = await mark_read(session, UUID(user_id), contact_id)
    await session.commit()
    return ReadReceiptOut(updated=updated)

# ---- WEBSOCKET ----

@app.websocket("/ws")
async def ws_endpoint(ws: WebSocket, token: str = Query(...)):
    # browsers can't set headers on a websocket, so the token travels in the query
    try:
        user_id = UUID(decode_access_token(token))
    except (jwt.PyJWTError, KeyError, ValueError):
        await ws.close(code=4401)
        return

    async with SessionLocal() as session:
        if not await get_user(session, user_id):
            await ws.close(code=4403)
            return

    await presence.connect(user_id, ws)
    try:
        while True:
            try:
                msg = await ws.receive_json()
            except (ValueError, KeyError):
                # binary frames carry no "text" key
                logger.debug("Ignoring non-JSON frame from %s", user_id)
                continue
            if isinstance(msg, dict) and msg.get("type") == "ping":
                await ws.send_json({"type": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        presence.disconnect(user_id, ws)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=os.getenv("RELAY_HOST", "127.0.0.1"), port=int(os.getenv("RELAY_PORT", "8000")))
