from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AuthenticatedUser(BaseModel):
    kind: Literal["user"] = "user"
    id: str


class AnonymousSession(BaseModel):
    kind: Literal["session"] = "session"
    id: str


Owner = Annotated[Union[AuthenticatedUser, AnonymousSession], Field(discriminator="kind")]


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    sender: Sender
    text: str
    timestamp: datetime


class Conversation(BaseModel):
    """Working copy of a stored conversation for the length of one request."""
    id: UUID
    owner: Owner
    role: str
    messages: list[Message] = []
    created_at: datetime
    updated_at: datetime
    persisted: bool = True

    @property
    def has_dangling_turn(self) -> bool:
        return bool(self.messages) and self.messages[-1].sender == Sender.USER


class ConversationSummary(BaseModel):
    id: UUID
    role: str
    message_count: int
    created_at: datetime
    updated_at: datetime
