"""
Pydantic request / response schemas for the API.
"""

from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime


class Tone(str, Enum):
    JOLLY = "jolly"
    CARING = "caring"
    ENCOURAGING = "encouraging"
    PLAYFUL = "playful"
    WISE = "wise"
    MERRY = "merry"

    @classmethod
    def coerce(cls, value) -> "Tone":
        """Map any tone label onto the closed set, defaulting to jolly."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.JOLLY


class WishlistCategory(str, Enum):
    TOYS = "Toys"
    BOOKS = "Books"
    ELECTRONICS = "Electronics"
    CLOTHES = "Clothes"
    SPORTS = "Sports"
    OTHER = "Other"


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be empty")
    return value


# ── Auth ─────────────────────────────────────────────────
class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=6)
    is_parent: bool = False
    parent_username: Optional[str] = None


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    is_parent: bool


class UserResponse(BaseModel):
    id: int
    username: str
    is_parent: bool
    parent_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ── Chat ─────────────────────────────────────────────────
class ChatRequest(BaseModel):
    message: str

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class ChatMessageResponse(BaseModel):
    id: int
    user_id: int
    message: str
    is_from_santa: bool
    tone: Optional[Tone] = None
    suggestions: Optional[List[str]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class VoiceChatResponse(BaseModel):
    transcript: str
    reply: ChatMessageResponse
    audio_base64: Optional[str] = None


# ── Wishlist ─────────────────────────────────────────────
class WishlistItemCreate(BaseModel):
    item: str = Field(max_length=500)
    category: WishlistCategory
    priority: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = None

    @field_validator("item")
    @classmethod
    def item_not_blank(cls, value: str) -> str:
        return _not_blank(value).strip()


class WishlistItemResponse(BaseModel):
    id: int
    user_id: int
    item: str
    category: WishlistCategory
    priority: int
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ── Parent dashboard ─────────────────────────────────────
class ChildResponse(UserResponse):
    chats: List[ChatMessageResponse] = []
    wishlist_items: List[WishlistItemResponse] = []


class LinkChildRequest(BaseModel):
    username: str
    password: str
