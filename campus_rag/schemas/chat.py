from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatQueryIn(_CamelModel):
    query: str = Field(min_length=1)
    role: str = Field(min_length=1)
    conversation_id: str | None = None


class Citation(BaseModel):
    title: str
    url: str | None = None
    page: int | None = None


class HistoryItem(BaseModel):
    sender: str
    text: str


class ChatMeta(_CamelModel):
    source_count: int = 0
    role_used: str
    query: str | None = None
    tokens_used: int | None = None
    error: bool = False
    message: str | None = None
    is_authenticated: bool = False
    recovered_dangling_turn: bool = False


class ChatResult(_CamelModel):
    conversation_id: UUID | None = None
    answer: str
    citations: list[Citation] = []
    history: list[HistoryItem] = []
    meta: ChatMeta
