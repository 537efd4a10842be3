"""
Stored record schemas for the chain Q&A store

Each model is one entry of a JSON list kept under its own storage key.
- Question  -> "kkojil_questions"
- ChainItem -> "kkojil_chains"
- User      -> "kkojil_users" (and a copy under "kkojil_current_user")

Fields are snake_case in Python and camelCase on disk / over the wire.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Literal, Optional

CATEGORIES = ("politics", "development", "philosophy", "daily")
ALL_CATEGORIES = "all"

Category = Literal["politics", "development", "philosophy", "daily"]
ChainType = Literal["question", "answer"]


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Question(Record):
    id: int = Field(..., description="Creation time in ms, used as identifier")
    title: str = Field(..., description="Root question text")
    category: Category = Field(..., description="One of CATEGORIES")
    author: str = Field(..., description="Author display name")
    time: str = Field("", description="Relative time label at creation, e.g. '2 hours ago'")
    chain_count: int = Field(0, ge=0, description="Cached chain length + 1")
    last_question: Optional[str] = Field(None, description="Excerpt of the latest chain entry")
    created_at: int = Field(..., description="Creation time in ms")


class ChainItem(Record):
    id: int = Field(..., description="Creation time in ms, used as identifier")
    parent_id: int = Field(..., description="Root question id")
    text: str = Field(..., description="Entry body")
    author: str = Field(..., description="Author display name")
    time: str = Field("", description="Relative time label at creation")
    level: int = Field(..., ge=1, description="1-based position in the parent's chain")
    created_at: int = Field(..., description="Creation time in ms")
    type: ChainType = Field(..., description="Follow-up question or answer")


class User(Record):
    id: int = Field(..., description="Creation time in ms, used as identifier")
    username: str = Field(..., description="Unique handle")
    email: str = Field(..., description="Unique login email")
    password: str = Field(..., description="Plaintext password (no real auth)")
    display_name: str = Field(..., description="Name shown on content")
    bio: Optional[str] = Field(None, description="Free-text profile bio")
    joined_at: int = Field(..., description="Registration time in ms")
    avatar: Optional[str] = Field(None, description="Data URI or http(s) URL")


class UserRead(Record):
    """User as returned by the API: everything but the password."""

    id: int
    username: str
    email: str
    display_name: str
    bio: Optional[str] = None
    joined_at: int
    avatar: Optional[str] = None


class CategoryCount(Record):
    name: Category
    count: int = Field(0, ge=0)


class RecentEntry(Record):
    type: ChainType
    content: str
    time: str
    author: str
