from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SourceKind(str, Enum):
    FILE = "FILE"
    URL = "URL"


class IngestRequest(BaseModel):
    """Everything the ingestion pipeline needs besides the raw text."""
    role: str = "student"
    department: str = "general"
    namespace: str
    source_kind: SourceKind
    origin: str                       # url or filename
    title: str | None = None
    effective_date: datetime | None = None


class DocumentRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    source_kind: SourceKind
    origin: str
    namespace: str
    access_role: str
    department: str
    version: int = 1
    effective_date: datetime | None = None
    chunk_count: int
    created_at: datetime
    updated_at: datetime


class PastedTextIn(BaseModel):
    text: str = Field(min_length=1)
    title: str | None = None
    origin: str = "pasted"
    role: str = "student"
    department: str = "general"


class UrlIn(BaseModel):
    url: str = Field(min_length=1)
    title: str | None = None
    role: str = "student"
    department: str = "general"


class IngestOutcome(BaseModel):
    ok: bool
    document: DocumentRecord | None = None
    chunks: int = 0
    error: bool = False
    message: str | None = None
