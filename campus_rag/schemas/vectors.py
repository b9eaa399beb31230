from typing import Any

from pydantic import BaseModel, ValidationError

from campus_rag.core.logging import get_logger

logger = get_logger(__name__)


class ChunkMetadata(BaseModel):
    """Metadata stored next to every chunk vector in the index."""
    document_id: str
    chunk_index: int
    text: str
    access_role: str
    department: str
    title: str | None = None
    source: str | None = None
    page: int | None = None


class VectorEntry(BaseModel):
    id: str
    values: list[float]
    metadata: ChunkMetadata


class VectorMatch(BaseModel):
    id: str
    score: float
    metadata: ChunkMetadata


def parse_match(raw: dict[str, Any]) -> VectorMatch | None:
    """Validate one raw match from an index response.

    Returns None for matches without usable chunk metadata.
    """
    try:
        return VectorMatch.model_validate(raw)
    except ValidationError as exc:
        logger.warning("dropping malformed match %s: %s", raw.get("id"), exc.errors()[:1])
        return None
