import asyncio
from uuid import uuid4

from campus_rag.core.errors import GatewayError
from campus_rag.core.logging import get_logger
from campus_rag.db.models import utcnow
from campus_rag.db.stores import DocumentStore
from campus_rag.schemas.documents import DocumentRecord, IngestRequest
from campus_rag.schemas.vectors import ChunkMetadata, VectorEntry
from campus_rag.services.chunker import Chunker
from campus_rag.services.embeddings import EmbeddingGateway
from campus_rag.services.vector_index import VectorIndex

logger = get_logger(__name__)


def chunk_id(document_id, index: int) -> str:
    return f"{document_id}_{index}"


def _title_for(request: IngestRequest) -> str:
    return (request.title or "").strip() or (request.origin or "").strip() or "Untitled Document"


class IngestionPipeline:
    """chunk -> embed (bounded concurrency) -> one batched upsert + document row.

    Either the document row and all of its vectors are written, or neither is.
    """

    def __init__(
        self,
        chunker: Chunker,
        embedder: EmbeddingGateway,
        index: VectorIndex,
        documents: DocumentStore,
        embed_concurrency: int = 4,
    ):
        self.chunker = chunker
        self.embedder = embedder
        self.index = index
        self.documents = documents
        self.embed_concurrency = max(1, embed_concurrency)

    async def _embed_all(self, texts: list[str]) -> list[list[float]]:
        sem = asyncio.Semaphore(self.embed_concurrency)

        async def one(text: str) -> list[float]:
            async with sem:
                return await asyncio.to_thread(self.embedder.embed, text)

        # gather keeps input order
        return await asyncio.gather(*(one(t) for t in texts))

    async def ingest(self, raw_text: str, request: IngestRequest) -> DocumentRecord:
        texts = list(self.chunker.split(raw_text))
        logger.info("ingesting %s into %s: %d chunks", request.origin, request.namespace, len(texts))

        vectors = await self._embed_all(texts)

        now = utcnow()
        record = DocumentRecord(
            id=uuid4(),
            title=_title_for(request),
            source_kind=request.source_kind,
            origin=request.origin,
            namespace=request.namespace,
            access_role=request.role,
            department=request.department,
            version=1,
            effective_date=request.effective_date,
            chunk_count=len(texts),
            created_at=now,
            updated_at=now,
        )
        entries = [
            VectorEntry(
                id=chunk_id(record.id, i),
                values=vec,
                metadata=ChunkMetadata(
                    document_id=str(record.id),
                    chunk_index=i,
                    text=text,
                    access_role=request.role,
                    department=request.department,
                    title=record.title,
                    source=request.origin,
                ),
            )
            for i, (text, vec) in enumerate(zip(texts, vectors))
        ]

        upserted = False

        async def upsert_vectors() -> None:
            nonlocal upserted
            if not entries:
                return
            await asyncio.to_thread(self.index.upsert, request.namespace, entries)
            upserted = True

        try:
            stored = await self.documents.create(record, before_commit=upsert_vectors)
        except Exception:
            if upserted:
                await self._remove_vectors(request.namespace, [e.id for e in entries])
            raise

        logger.info("document %s stored with %d chunks", stored.id, stored.chunk_count)
        return stored

    async def _remove_vectors(self, namespace: str, ids: list[str]) -> None:
        logger.warning("document commit failed, removing %d upserted vectors", len(ids))
        try:
            await asyncio.to_thread(self.index.delete, namespace, ids)
        except GatewayError as exc:
            logger.error("could not remove orphaned vectors %s..: %s", ids[:1], exc)
