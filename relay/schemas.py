from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from e2ee.codec import from_text
from e2ee.errors import MalformedEncoding
from e2ee.keys import import_public_key


def _check_public_key(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    try:
        import_public_key(v)
    except MalformedEncoding as exc:
        raise ValueError(str(exc)) from exc
    return v


class UserCreateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=128)
    email: str = Field(min_length=3, max_length=255)
    avatar: Optional[str] = None
    bio: Optional[str] = None
    public_key: Optional[str] = Field(default=None, alias="publicKey")

    @field_validator("public_key")
    @classmethod
    def public_key_must_parse(cls, v: Optional[str]) -> Optional[str]:
        return _check_public_key(v)

class UserUpdateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=128)
    avatar: Optional[str] = None
    bio: Optional[str] = None
    is_onboarded: Optional[bool] = None
    public_key: Optional[str] = Field(default=None, alias="publicKey")

    @field_validator("public_key")
    @classmethod
    def public_key_must_parse(cls, v: Optional[str]) -> Optional[str]:
        return _check_public_key(v)

class LoginIn(BaseModel):
    email: str = Field(min_length=3, max_length=255)

# JWT token output
class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"

# public profile; publicKey is not secret
class UserOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    name: str
    email: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    is_onboarded: bool
    public_key: Optional[str] = Field(default=None, alias="publicKey")

class SignupOut(BaseModel):
    user: UserOut
    access_token: str
    token_type: str = "bearer"

class ContactAddIn(BaseModel):
    email: str = Field(min_length=3, max_length=255)

class ContactsOut(BaseModel):
    contacts: List[UserOut] = Field(default_factory=list)

# sealed message input: all three fields required, the relay never stores plaintext
class MessageSendIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    receiver_id: UUID
    content: str = Field(min_length=1)
    encrypted_key: str = Field(min_length=1, alias="encryptedKey")
    iv: str = Field(min_length=1)

    @field_validator("content", "encrypted_key", "iv")
    @classmethod
    def must_be_base64(cls, v: str) -> str:
        try:
            from_text(v)
        except MalformedEncoding as exc:
            raise ValueError(str(exc)) from exc
        return v

class MessageOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    sender_id: UUID
    receiver_id: UUID
    content: str
    encrypted_key: Optional[str] = Field(default=None, alias="encryptedKey")
    iv: Optional[str] = None
    is_read: bool
    created_at: datetime

class ReadReceiptOut(BaseModel):
    updated: int
