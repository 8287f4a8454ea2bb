from uuid import UUID
from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import User, Contact, Message, utcnow

# ---- helpers for CRUD operations ----

async def get_user(session: AsyncSession, user_id: UUID) -> User | None:
    res = await session.execute(select(User).where(User.id == user_id))
    return res.scalar_one_or_none()

async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    res = await session.execute(select(User).where(User.email == email.strip().lower()))
    return res.scalar_one_or_none()

async def create_user(
    session: AsyncSession,
    name: str,
    email: str,
    avatar: str | None = None,
    bio: str | None = None,
    public_key: str | None = None,
) -> User:
    user = User(
        name=name,
        email=email.strip().lower(),
        avatar=avatar,
        bio=bio,
        is_onboarded=True,
        public_key=public_key,
    )
    session.add(user)
    await session.flush()
    return user

async def update_user(session: AsyncSession, user: User, changes: dict) -> User:
    for field, value in changes.items():
        setattr(user, field, value)
    await session.flush()
    return user

# ---- contacts ----

async def list_contacts(session: AsyncSession, user_id: UUID) -> list[User]:
    res = await session.execute(
        select(User)
        .join(Contact, Contact.contact_user_id == User.id)
        .where(Contact.user_id == user_id)
        .order_by(User.name.asc())
    )
    return list(res.scalars().all())

async def get_contact(session: AsyncSession, user_id: UUID, contact_user_id: UUID) -> Contact | None:
    res = await session.execute(
        select(Contact).where(Contact.user_id == user_id, Contact.contact_user_id == contact_user_id)
    )
    return res.unique().scalar_one_or_none()

async def add_contact(session: AsyncSession, user_id: UUID, contact_user_id: UUID) -> Contact:
    contact = Contact(user_id=user_id, contact_user_id=contact_user_id)
    session.add(contact)
    await session.flush()
    return contact

# ---- messages ----

async def create_message(
    session: AsyncSession,
    sender_id: UUID,
    receiver_id: UUID,
    content: str,
    encrypted_key: str | None,
    iv: str | None,
) -> Message:
    msg = Message(
        sender_id=sender_id,
        receiver_id=receiver_id,
        content=content,
        encrypted_key=encrypted_key,
        iv=iv,
        is_read=False,
    )
    session.add(msg)
    await session.flush()
    return msg

# both directions; the newest `limit` rows, returned oldest first for display
async def get_conversation(session: AsyncSession, user_id: UUID, contact_id: UUID, limit: int = 500) -> list[Message]:
    res = await session.execute(
        select(Message)
        .where(
            or_(
                and_(Message.sender_id == user_id, Message.receiver_id == contact_id),
                and_(Message.sender_id == contact_id, Message.receiver_id == user_id),
            )
        )
        .order_by(Message.created_at.desc())
        .limit(limit)
    )
    return list(reversed(res.scalars().all()))

async def mark_read(session: AsyncSession, user_id: UUID, contact_id: UUID) -> int:
    res = await session.execute(
        update(Message)
        .where(Message.sender_id == contact_id, Message.receiver_id == user_id, Message.is_read.is_(False))
        .values(is_read=True, updated_at=utcnow())
    )
    return res.rowcount or 0
