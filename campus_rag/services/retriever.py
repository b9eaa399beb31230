import asyncio

from pydantic import BaseModel

from campus_rag.core.logging import get_logger
from campus_rag.schemas.vectors import ChunkMetadata
from campus_rag.services.embeddings import EmbeddingGateway
from campus_rag.services.vector_index import VectorIndex

logger = get_logger(__name__)

# lowest to highest; each role sees its own tag and everything below it
ROLE_HIERARCHY = ["public", "student", "staff"]
ROLE_ALIASES = {"admin": "staff"}


def _canonical(role: str) -> str:
    role = (role or "").strip().lower()
    return ROLE_ALIASES.get(role, role)


def is_known_role(role: str) -> bool:
    return _canonical(role) in ROLE_HIERARCHY


def visible_roles(role: str) -> list[str]:
    role = _canonical(role)
    if role not in ROLE_HIERARCHY:
        return ROLE_HIERARCHY[:1]
    return ROLE_HIERARCHY[: ROLE_HIERARCHY.index(role) + 1]


def role_filter(role: str) -> dict:
    return {"access_role": {"$in": visible_roles(role)}}


class RetrievedFragment(BaseModel):
    id: str
    score: float
    metadata: ChunkMetadata

    @property
    def text(self) -> str:
        return self.metadata.text


class Retriever:
    def __init__(self, embedder: EmbeddingGateway, index: VectorIndex, namespace: str, top_k: int = 5):
        self.embedder = embedder
        self.index = index
        self.namespace = namespace
        self.top_k = top_k

    async def retrieve(self, query: str, role: str) -> list[RetrievedFragment]:
        """Up to `top_k` fragments visible to `role`, in the index's ranking order.

        Equal scores keep whatever order the index returned them in.
        """
        vector = await asyncio.to_thread(self.embedder.embed, query)
        if not is_known_role(role):
            logger.warning("unknown role %r, falling back to the public view", role)
        allowed = visible_roles(role)
        matches = await asyncio.to_thread(
            self.index.query, self.namespace, vector, self.top_k, role_filter(role)
        )

        fragments = []
        for m in matches[: self.top_k]:
            if m.metadata.access_role not in allowed:
                logger.warning("index returned %s tagged %s for role %s", m.id, m.metadata.access_role, role)
                continue
            fragments.append(RetrievedFragment(id=m.id, score=m.score, metadata=m.metadata))
        logger.debug("retrieved %d fragments for role %s", len(fragments), role)
        return fragments
