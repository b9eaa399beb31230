import uuid

from campus_rag.core.errors import NotFoundError
from campus_rag.core.logging import get_logger
from campus_rag.db.models import utcnow
from campus_rag.db.stores import ConversationStore, parse_uuid
from campus_rag.schemas.conversations import (
    Conversation,
    ConversationSummary,
    Message,
    Owner,
    Sender,
)

logger = get_logger(__name__)


def format_history(messages: list[Message], limit: int = 5) -> str:
    """Last `limit` messages, oldest first, as `sender: text` lines."""
    recent = messages[-limit:] if limit > 0 else []
    return "\n".join(f"{m.sender.value}: {m.text}" for m in recent)


class ConversationManager:
    def __init__(self, store: ConversationStore, history_window: int = 5):
        self.store = store
        self.history_window = history_window

    async def get_or_create(self, conversation_id: str | None, owner: Owner, role: str) -> Conversation:
        """Load the caller's conversation, or start a new one.

        A new conversation is only written to the store with its first
        message (see `append_turn`).
        """
        conv_id = parse_uuid(conversation_id)
        if conv_id is not None:
            found = await self.store.find(conv_id, owner)
            if found is not None:
                if found.has_dangling_turn:
                    logger.warning("conversation %s has an unanswered user message", found.id)
                return found

        now = utcnow()
        return Conversation(
            id=uuid.uuid4(),
            owner=owner,
            role=role,
            messages=[],
            created_at=now,
            updated_at=now,
            persisted=False,
        )

    def history_text(self, conversation: Conversation) -> str:
        return format_history(conversation.messages, self.history_window)

    async def append_turn(self, conversation: Conversation, user_text: str, assistant_text: str) -> Conversation:
        """Append the user message, then the assistant message.

        The two appends are separate writes. If the second never lands the
        conversation ends on a user message, which the next load reports.
        """
        user_msg = Message(id=uuid.uuid4(), sender=Sender.USER, text=user_text, timestamp=utcnow())
        if conversation.persisted:
            await self.store.append_message(conversation.id, user_msg)
        else:
            await self.store.insert(conversation, user_msg)
            conversation.persisted = True
        conversation.messages.append(user_msg)

        now = utcnow()
        assistant_msg = Message(id=uuid.uuid4(), sender=Sender.ASSISTANT, text=assistant_text, timestamp=now)
        await self.store.append_message(conversation.id, assistant_msg, touch=now)
        conversation.messages.append(assistant_msg)
        conversation.updated_at = now
        return conversation

    async def list_for(self, owner: Owner) -> list[ConversationSummary]:
        return await self.store.list_for_owner(owner)

    async def get(self, conversation_id: str, owner: Owner) -> Conversation:
        conv_id = parse_uuid(conversation_id)
        found = await self.store.find(conv_id, owner) if conv_id else None
        if found is None:
            raise NotFoundError("conversation", conversation_id)
        return found

    async def delete(self, conversation_id: str, owner: Owner) -> None:
        conv_id = parse_uuid(conversation_id)
        if conv_id is None or not await self.store.delete(conv_id, owner):
            raise NotFoundError("conversation", conversation_id)
