from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from campus_rag.core.config import Settings
from campus_rag.core.logging import get_logger
from campus_rag.db.session import init_models, make_engine, make_sessionmaker
from campus_rag.db.stores import ConversationStore, DocumentStore
from campus_rag.services.chunker import Chunker
from campus_rag.services.compressor import ContextCompressor
from campus_rag.services.conversations import ConversationManager
from campus_rag.services.embeddings import EmbeddingGateway, SentenceTransformerEmbeddings
from campus_rag.services.ingestion.pipeline import IngestionPipeline
from campus_rag.services.llm import OllamaGenerator, TextGenerator
from campus_rag.services.local_vector_store.store import LocalVectorIndex
from campus_rag.services.pinecone_store import PineconeVectorIndex
from campus_rag.services.rag import RagService
from campus_rag.services.retriever import Retriever
from campus_rag.services.synthesizer import AnswerSynthesizer
from campus_rag.services.vector_index import VectorIndex

logger = get_logger(__name__)


@dataclass
class Container:
    """Every long-lived client, created once per process."""
    settings: Settings
    engine: AsyncEngine
    embedder: EmbeddingGateway
    generator: TextGenerator
    index: VectorIndex
    documents: DocumentStore
    rag: RagService

    async def close(self) -> None:
        close = getattr(self.generator, "close", None)
        if close is not None:
            close()
        await self.engine.dispose()
        logger.info("container closed")


def build_index(settings: Settings) -> VectorIndex:
    if settings.VECTOR_BACKEND == "local":
        return LocalVectorIndex(dim=settings.EMBEDDING_DIM)
    return PineconeVectorIndex(
        api_key=settings.PINECONE_API_KEY,
        index_name=settings.PINECONE_INDEX_NAME,
        dimension=settings.EMBEDDING_DIM,
        cloud=settings.PINECONE_CLOUD,
        region=settings.PINECONE_REGION,
    )


async def build_container(
    settings: Settings,
    *,
    embedder: EmbeddingGateway | None = None,
    generator: TextGenerator | None = None,
    index: VectorIndex | None = None,
    engine: AsyncEngine | None = None,
    token_counter=None,
) -> Container:
    engine = engine or make_engine(settings.DATABASE_URL)
    await init_models(engine)
    sessions = make_sessionmaker(engine)

    embedder = embedder or SentenceTransformerEmbeddings(settings.EMBEDDING_MODEL)
    generator = generator or OllamaGenerator(
        base_url=settings.OLLAMA_BASE_URL,
        model=settings.OLLAMA_MODEL,
        timeout=settings.OLLAMA_TIMEOUT,
        temperature=settings.LLM_TEMPERATURE,
    )
    index = index or build_index(settings)

    documents = DocumentStore(sessions)
    ingestion = IngestionPipeline(
        chunker=Chunker(settings.CHUNK_TOKENS, settings.CHUNK_OVERLAP),
        embedder=embedder,
        index=index,
        documents=documents,
        embed_concurrency=settings.EMBED_CONCURRENCY,
    )
    rag_kwargs = {}
    if token_counter is not None:
        rag_kwargs["token_counter"] = token_counter
    rag = RagService(
        ingestion=ingestion,
        retriever=Retriever(embedder, index, settings.PINECONE_NAMESPACE, top_k=settings.TOP_K),
        compressor=ContextCompressor(
            generator,
            max_input_chars=settings.COMPRESS_INPUT_CHARS,
            fallback_chars=settings.COMPRESS_FALLBACK_CHARS,
            concurrency=settings.COMPRESS_CONCURRENCY,
        ),
        synthesizer=AnswerSynthesizer(generator),
        conversations=ConversationManager(ConversationStore(sessions), settings.HISTORY_WINDOW),
        **rag_kwargs,
    )
    logger.info("container ready (vector backend=%s)", settings.VECTOR_BACKEND)
    return Container(
        settings=settings,
        engine=engine,
        embedder=embedder,
        generator=generator,
        index=index,
        documents=documents,
        rag=rag,
    )
