from typing import Protocol

from campus_rag.core.errors import GatewayError
from campus_rag.core.logging import get_logger

logger = get_logger(__name__)


class EmbeddingGateway(Protocol):
    def embed(self, text: str) -> list[float]: ...


class SentenceTransformerEmbeddings:
    """Local sentence-transformers model behind the embedding interface."""

    def __init__(self, model_name: str, model=None):
        if model is None:
            from sentence_transformers import SentenceTransformer
            model = SentenceTransformer(model_name)
        self.model_name = model_name
        self._model = model

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        try:
            # normalize_embeddings True improves cosine similarity
            embs = self._model.encode(
                texts,
                normalize_embeddings=True,
                batch_size=32,
                show_progress_bar=False,
            )
        except Exception as exc:
            logger.error("embedding call failed (%s): %s", self.model_name, exc)
            raise GatewayError("embeddings", str(exc)) from exc
        return embs.tolist()

    def embed(self, text: str) -> list[float]:
        return self.embed_texts([text])[0]
