import hashlib
from collections.abc import Callable

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from campus_rag.core.errors import GatewayError
from campus_rag.db.session import init_models, make_sessionmaker
from campus_rag.db.stores import ConversationStore, DocumentStore
from campus_rag.services.chunker import Chunker
from campus_rag.services.compressor import ContextCompressor
from campus_rag.services.conversations import ConversationManager
from campus_rag.services.ingestion.pipeline import IngestionPipeline
from campus_rag.services.local_vector_store.store import LocalVectorIndex
from campus_rag.services.rag import RagService
from campus_rag.services.retriever import Retriever
from campus_rag.services.synthesizer import AnswerSynthesizer

DIM = 16
NAMESPACE = "test-ns"


class FakeEmbedder:
    """Deterministic bag-of-words hashing embedder."""

    def __init__(self, fail_when: Callable[[str], bool] | None = None) -> None:
        self.calls: list[str] = []
        self.fail_when = fail_when

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_when and self.fail_when(text):
            raise GatewayError("embeddings", "rate limited")
        vec = [0.0] * DIM
        for word in text.lower().split():
            slot = int(hashlib.md5(word.encode()).hexdigest(), 16) % DIM
            vec[slot] += 1.0
        if not any(vec):
            vec[0] = 1.0
        return vec


class FakeGenerator:
    """Returns canned text; records every prompt it sees."""

    def __init__(
        self,
        reply: str | Callable[[str], str] = "generated answer",
        fail_when: Callable[[str], bool] | None = None,
    ) -> None:
        self.reply = reply
        self.fail_when = fail_when
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail_when and self.fail_when(prompt):
            raise GatewayError("generation", "upstream timeout")
        return self.reply(prompt) if callable(self.reply) else self.reply

    def summary_prompts(self) -> list[str]:
        return [p for p in self.prompts if p.startswith("You are an AI assistant helping condense")]

    def answer_prompts(self) -> list[str]:
        return [p for p in self.prompts if "Business Process Agent" in p]


class RecordingIndex(LocalVectorIndex):
    def __init__(self, dim: int = DIM, fail_upsert: bool = False) -> None:
        super().__init__(dim)
        self.upsert_calls: list[tuple[str, list]] = []
        self.query_calls: list[dict] = []
        self.fail_upsert = fail_upsert

    def upsert(self, namespace, entries):
        self.upsert_calls.append((namespace, list(entries)))
        if self.fail_upsert:
            raise GatewayError("vector-index", "upsert rejected")
        super().upsert(namespace, entries)

    def query(self, namespace, vector, top_k, metadata_filter=None):
        self.query_calls.append({"namespace": namespace, "top_k": top_k, "filter": metadata_filter})
        return super().query(namespace, vector, top_k, metadata_filter)


def word_count_tokens(*texts: str) -> int:
    return sum(len(t.split()) for t in texts if t)


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await init_models(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def sessions(engine):
    return make_sessionmaker(engine)


@pytest.fixture
def document_store(sessions) -> DocumentStore:
    return DocumentStore(sessions)


@pytest.fixture
def conversation_store(sessions) -> ConversationStore:
    return ConversationStore(sessions)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def index() -> RecordingIndex:
    return RecordingIndex()


@pytest.fixture
def make_pipeline(document_store, index):
    def _make(embedder=None, chunk_size: int = 1000, overlap: int = 150, vector_index=None):
        return IngestionPipeline(
            chunker=Chunker(chunk_size, overlap),
            embedder=embedder or FakeEmbedder(),
            index=vector_index or index,
            documents=document_store,
            embed_concurrency=3,
        )
    return _make


@pytest.fixture
def make_rag(make_pipeline, conversation_store, index):
    def _make(embedder=None, generator=None, chunk_size: int = 1000, overlap: int = 150):
        embedder = embedder or FakeEmbedder()
        generator = generator or FakeGenerator()
        return RagService(
            ingestion=make_pipeline(embedder, chunk_size, overlap),
            retriever=Retriever(embedder, index, NAMESPACE, top_k=5),
            compressor=ContextCompressor(generator, concurrency=3),
            synthesizer=AnswerSynthesizer(generator),
            conversations=ConversationManager(conversation_store),
            token_counter=word_count_tokens,
        )
    return _make
