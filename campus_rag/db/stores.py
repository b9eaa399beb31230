import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from campus_rag.core.errors import NotFoundError
from campus_rag.core.logging import get_logger
from campus_rag.db.models import ConversationRow, DocumentRow, MessageRow
from campus_rag.schemas.conversations import (
    AnonymousSession,
    AuthenticatedUser,
    Conversation,
    ConversationSummary,
    Message,
    Owner,
)
from campus_rag.schemas.documents import DocumentRecord

logger = get_logger(__name__)

APPEND_ATTEMPTS = 3


def parse_uuid(value: str | uuid.UUID | None) -> uuid.UUID | None:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class DocumentStore:
    def __init__(self, sessions: async_sessionmaker):
        self._sessions = sessions

    async def create(
        self,
        record: DocumentRecord,
        before_commit: Callable[[], Awaitable[None]] | None = None,
    ) -> DocumentRecord:
        """Insert a document row.

        `before_commit` runs after the row is flushed and before the commit;
        if it raises, the row is rolled back and the error propagates.
        """
        async with self._sessions() as session:
            row = DocumentRow(**record.model_dump(mode="python"))
            row.source_kind = record.source_kind.value
            session.add(row)
            await session.flush()
            if before_commit is not None:
                await before_commit()
            await session.commit()
            return DocumentRecord.model_validate(row)

    async def get(self, document_id: str | uuid.UUID) -> DocumentRecord:
        doc_id = parse_uuid(document_id)
        if doc_id is None:
            raise NotFoundError("document", str(document_id))
        async with self._sessions() as session:
            row = await session.get(DocumentRow, doc_id)
            if row is None:
                raise NotFoundError("document", str(document_id))
            return DocumentRecord.model_validate(row)

    async def count(self) -> int:
        async with self._sessions() as session:
            return (await session.execute(select(func.count()).select_from(DocumentRow))).scalar_one()


def _owner_columns(owner: Owner) -> tuple[str, str]:
    return owner.kind, owner.id


def _owner_from_row(row: ConversationRow) -> Owner:
    if row.owner_kind == "user":
        return AuthenticatedUser(id=row.owner_id)
    return AnonymousSession(id=row.owner_id)


def _to_conversation(row: ConversationRow) -> Conversation:
    return Conversation(
        id=row.id,
        owner=_owner_from_row(row),
        role=row.role,
        messages=[Message.model_validate(m) for m in row.messages],
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class ConversationStore:
    def __init__(self, sessions: async_sessionmaker):
        self._sessions = sessions

    def _owned(self, conversation_id: uuid.UUID, owner: Owner):
        kind, owner_id = _owner_columns(owner)
        return select(ConversationRow).where(
            ConversationRow.id == conversation_id,
            ConversationRow.owner_kind == kind,
            ConversationRow.owner_id == owner_id,
        )

    async def find(self, conversation_id: uuid.UUID, owner: Owner) -> Conversation | None:
        async with self._sessions() as session:
            res = await session.execute(
                self._owned(conversation_id, owner).options(selectinload(ConversationRow.messages))
            )
            row = res.scalar_one_or_none()
            return _to_conversation(row) if row else None

    async def insert(self, conversation: Conversation, first: Message) -> None:
        """Store a new conversation together with its first message."""
        kind, owner_id = _owner_columns(conversation.owner)
        async with self._sessions() as session:
            existing = await session.get(ConversationRow, conversation.id)
            if existing is not None:
                # retried insert; fall through to the idempotent append
                await session.rollback()
            else:
                session.add(ConversationRow(
                    id=conversation.id,
                    owner_kind=kind,
                    owner_id=owner_id,
                    role=conversation.role,
                    created_at=conversation.created_at,
                    updated_at=conversation.updated_at,
                ))
                session.add(_message_row(conversation.id, 0, first))
                await session.commit()
                return
        await self.append_message(conversation.id, first)

    async def append_message(
        self,
        conversation_id: uuid.UUID,
        message: Message,
        touch: datetime | None = None,
    ) -> None:
        """Append one message; a retry with the same message id is a no-op.

        Concurrent appends to one conversation can race for the same
        position; the loser re-reads the tail and tries again.
        """
        for attempt in range(1, APPEND_ATTEMPTS + 1):
            try:
                await self._append_once(conversation_id, message, touch)
                return
            except IntegrityError:
                if attempt == APPEND_ATTEMPTS:
                    raise
                logger.warning("position clash appending to %s, retrying", conversation_id)

    async def _append_once(
        self,
        conversation_id: uuid.UUID,
        message: Message,
        touch: datetime | None,
    ) -> None:
        async with self._sessions() as session:
            if await session.get(MessageRow, message.id) is not None:
                return
            last = (await session.execute(
                select(func.max(MessageRow.position)).where(
                    MessageRow.conversation_id == conversation_id
                )
            )).scalar_one()
            position = 0 if last is None else last + 1
            session.add(_message_row(conversation_id, position, message))
            if touch is not None:
                conv = await session.get(ConversationRow, conversation_id)
                if conv is not None:
                    conv.updated_at = touch
            await session.commit()

    async def list_for_owner(self, owner: Owner) -> list[ConversationSummary]:
        kind, owner_id = _owner_columns(owner)
        async with self._sessions() as session:
            counts = (
                select(MessageRow.conversation_id, func.count().label("n"))
                .group_by(MessageRow.conversation_id)
                .subquery()
            )
            res = await session.execute(
                select(ConversationRow, func.coalesce(counts.c.n, 0))
                .outerjoin(counts, counts.c.conversation_id == ConversationRow.id)
                .where(ConversationRow.owner_kind == kind, ConversationRow.owner_id == owner_id)
                .order_by(ConversationRow.updated_at.desc())
            )
            return [
                ConversationSummary(
                    id=row.id,
                    role=row.role,
                    message_count=n,
                    created_at=row.created_at,
                    updated_at=row.updated_at,
                )
                for row, n in res.all()
            ]

    async def delete(self, conversation_id: uuid.UUID, owner: Owner) -> bool:
        async with self._sessions() as session:
            res = await session.execute(
                self._owned(conversation_id, owner).options(selectinload(ConversationRow.messages))
            )
            row = res.scalar_one_or_none()
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            return True


def _message_row(conversation_id: uuid.UUID, position: int, message: Message) -> MessageRow:
    return MessageRow(
        id=message.id,
        conversation_id=conversation_id,
        position=position,
        sender=message.sender.value,
        text=message.text,
        timestamp=message.timestamp,
    )
