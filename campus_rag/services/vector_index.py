from typing import Any, Protocol

from campus_rag.schemas.vectors import VectorEntry, VectorMatch


class VectorIndex(Protocol):
    """Narrow view of a nearest-neighbour index partitioned by namespace."""

    def upsert(self, namespace: str, entries: list[VectorEntry]) -> None: ...

    def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]: ...

    def delete(self, namespace: str, ids: list[str]) -> None: ...
