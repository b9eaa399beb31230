from typing import Any

from campus_rag.core.errors import GatewayError
from campus_rag.core.logging import get_logger
from campus_rag.schemas.vectors import VectorEntry, VectorMatch, parse_match
from campus_rag.utils.pinecone_meta import chunk_metadata_payload

logger = get_logger(__name__)

UPSERT_BATCH_SIZE = 100


class PineconeVectorIndex:
    """Pinecone-backed vector index.

    The index is looked up (and created if missing) on first use, not at
    import time.
    """

    def __init__(
        self,
        api_key: str,
        index_name: str,
        dimension: int,
        cloud: str = "aws",
        region: str = "us-east-1",
        client=None,
    ):
        if client is None:
            from pinecone import Pinecone
            client = Pinecone(api_key=api_key)
        self._pc = client
        self.index_name = index_name
        self.dimension = dimension
        self.cloud = cloud
        self.region = region
        self._index = None

    def _get_or_create_index(self):
        if self._index is not None:
            return self._index

        existing = {i["name"] for i in self._pc.list_indexes()}
        if self.index_name not in existing:
            from pinecone import ServerlessSpec

            logger.info("creating pinecone index %s (dim=%d)", self.index_name, self.dimension)
            self._pc.create_index(
                name=self.index_name,
                dimension=self.dimension,
                metric="cosine",
                spec=ServerlessSpec(cloud=self.cloud, region=self.region),
            )
        self._index = self._pc.Index(self.index_name)
        return self._index

    def upsert(self, namespace: str, entries: list[VectorEntry]) -> None:
        if not entries:
            return
        vectors = [(e.id, e.values, chunk_metadata_payload(e.metadata)) for e in entries]
        try:
            self._get_or_create_index().upsert(
                vectors=vectors, namespace=namespace, batch_size=UPSERT_BATCH_SIZE
            )
        except Exception as exc:
            logger.error("pinecone upsert of %d vectors failed: %s", len(vectors), exc)
            raise GatewayError("vector-index", str(exc)) from exc

    def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        try:
            res = self._get_or_create_index().query(
                vector=vector,
                top_k=top_k,
                include_metadata=True,
                namespace=namespace,
                filter=metadata_filter,
            )
        except Exception as exc:
            logger.error("pinecone query failed: %s", exc)
            raise GatewayError("vector-index", str(exc)) from exc

        matches = []
        for m in res["matches"]:
            parsed = parse_match({
                "id": m.get("id"),
                "score": m.get("score"),
                "metadata": m.get("metadata") or {},
            })
            if parsed is not None:
                matches.append(parsed)
        return matches

    def delete(self, namespace: str, ids: list[str]) -> None:
        if not ids:
            return
        try:
            self._get_or_create_index().delete(ids=ids, namespace=namespace)
        except Exception as exc:
            raise GatewayError("vector-index", str(exc)) from exc
