from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from campus_rag.core.errors import GatewayError
from campus_rag.core.logging import get_logger
from campus_rag.schemas.chat import ChatMeta, ChatResult, Citation, HistoryItem
from campus_rag.schemas.conversations import AuthenticatedUser, Owner
from campus_rag.schemas.documents import IngestOutcome, IngestRequest, SourceKind
from campus_rag.services.compressor import ContextCompressor
from campus_rag.services.conversations import ConversationManager
from campus_rag.services.ingestion.pipeline import IngestionPipeline
from campus_rag.services.retriever import Retriever
from campus_rag.services.synthesizer import NO_SOURCE_ANSWER, AnswerSynthesizer
from campus_rag.utils.citations import format_citation
from campus_rag.utils.tokens import count_tokens

logger = get_logger(__name__)

FALLBACK_ANSWER = NO_SOURCE_ANSWER
ERROR_ANSWER = "An error occurred while retrieving your answer."


class RagService:
    """Operations exposed to the HTTP layer: ingest a document, answer a query."""

    def __init__(
        self,
        ingestion: IngestionPipeline,
        retriever: Retriever,
        compressor: ContextCompressor,
        synthesizer: AnswerSynthesizer,
        conversations: ConversationManager,
        token_counter: Callable[..., int] = count_tokens,
    ):
        self.ingestion = ingestion
        self.retriever = retriever
        self.compressor = compressor
        self.synthesizer = synthesizer
        self.conversations = conversations
        self.count_tokens = token_counter

    async def ingest_document(
        self,
        raw_text: str,
        role: str,
        department: str,
        namespace: str,
        source_kind: SourceKind,
        origin: str,
        title: str | None = None,
        effective_date: datetime | None = None,
    ) -> IngestOutcome:
        request = IngestRequest(
            role=role,
            department=department,
            namespace=namespace,
            source_kind=source_kind,
            origin=origin,
            title=title,
            effective_date=effective_date,
        )
        try:
            record = await self.ingestion.ingest(raw_text, request)
        except (GatewayError, SQLAlchemyError) as exc:
            logger.error("ingestion of %s failed: %s", origin, exc)
            return IngestOutcome(ok=False, error=True, message=str(exc))
        except Exception as exc:
            logger.error("unexpected ingestion failure for %s", origin, exc_info=True)
            return IngestOutcome(ok=False, error=True, message=f"internal error: {exc}")
        return IngestOutcome(ok=True, document=record, chunks=record.chunk_count)

    async def _answer(self, query: str, role: str, history: str) -> tuple[str, list[Citation], int]:
        fragments = await self.retriever.retrieve(query, role)
        if not fragments:
            return FALLBACK_ANSWER, [], 0

        compressed = await self.compressor.compress(fragments, query)
        # each part is labelled so the model can cite it in [brackets]
        context = self.compressor.finalize([
            f"[{format_citation(f.metadata)}]\n{c.text}" for f, c in zip(fragments, compressed)
        ])
        result = await self.synthesizer.synthesize(context, query, history, fragments)

        tokens = self.count_tokens(
            *(c.prompt for c in compressed if not c.fallback),
            *(c.text for c in compressed if not c.fallback),
            result.prompt,
            result.answer,
        )
        return result.answer, result.citations, tokens

    @staticmethod
    def _failed(query: str, role: str, conversation, is_auth: bool, message: str) -> ChatResult:
        return ChatResult(
            conversation_id=conversation.id if conversation and conversation.persisted else None,
            answer=ERROR_ANSWER,
            meta=ChatMeta(
                role_used=role,
                query=query,
                error=True,
                message=message,
                is_authenticated=is_auth,
            ),
        )

    async def answer_query(
        self,
        query: str,
        role: str,
        conversation_id: str | None,
        owner: Owner,
    ) -> ChatResult:
        is_auth = isinstance(owner, AuthenticatedUser)
        conversation = None
        try:
            conversation = await self.conversations.get_or_create(conversation_id, owner, role)
            dangling = conversation.has_dangling_turn
            prior = [HistoryItem(sender=m.sender.value, text=m.text) for m in conversation.messages]

            answer, citations, tokens = await self._answer(
                query, role, self.conversations.history_text(conversation)
            )
            await self.conversations.append_turn(conversation, query, answer)
        except (GatewayError, SQLAlchemyError) as exc:
            logger.error("answer pipeline failed: %s", exc)
            return self._failed(query, role, conversation, is_auth, str(exc))
        except Exception as exc:
            logger.error("unexpected answer pipeline failure", exc_info=True)
            return self._failed(query, role, conversation, is_auth, f"internal error: {exc}")

        return ChatResult(
            conversation_id=conversation.id,
            answer=answer,
            citations=citations,
            history=prior + [
                HistoryItem(sender="user", text=query),
                HistoryItem(sender="assistant", text=answer),
            ],
            meta=ChatMeta(
                source_count=len(citations),
                role_used=role,
                query=query,
                tokens_used=tokens,
                is_authenticated=is_auth,
                recovered_dangling_turn=dangling,
            ),
        )
