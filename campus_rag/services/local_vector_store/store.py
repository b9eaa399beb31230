from __future__ import annotations

import threading
from typing import Any

import numpy as np

from campus_rag.core.errors import GatewayError
from campus_rag.schemas.vectors import VectorEntry, VectorMatch


def _matches_filter(md: dict[str, Any], metadata_filter: dict[str, Any] | None) -> bool:
    """Subset of the Pinecone filter language: equality, $eq, $in, $nin."""
    if not metadata_filter:
        return True
    for field, cond in metadata_filter.items():
        value = md.get(field)
        if isinstance(cond, dict):
            for op, arg in cond.items():
                if op == "$in" and value not in arg:
                    return False
                if op == "$nin" and value in arg:
                    return False
                if op == "$eq" and value != arg:
                    return False
                if op not in ("$in", "$nin", "$eq"):
                    raise GatewayError("vector-index", f"unsupported filter operator {op}")
        elif value != cond:
            return False
    return True


class _Partition:
    def __init__(self, dim: int):
        self.vectors = np.zeros((0, dim), dtype=np.float32)
        self.norms = np.zeros((0,), dtype=np.float32)
        self.ids: list[str] = []
        self.metas: list[dict[str, Any]] = []
        self.positions: dict[str, int] = {}


class LocalVectorIndex:
    """
    Brute-force in-memory vector index:
    - one partition per namespace
    - cosine similarity over float32 vectors
    - upsert overwrites an existing id in place
    Ties keep insertion order (stable sort).
    """
    def __init__(self, dim: int):
        self.dim = dim
        self._partitions: dict[str, _Partition] = {}
        self._lock = threading.Lock()

    def count(self, namespace: str) -> int:
        part = self._partitions.get(namespace)
        return len(part.ids) if part else 0

    def ids(self, namespace: str) -> list[str]:
        part = self._partitions.get(namespace)
        return list(part.ids) if part else []

    def upsert(self, namespace: str, entries: list[VectorEntry]) -> None:
        if not entries:
            return
        try:
            vectors = np.asarray([e.values for e in entries], dtype=np.float32)
        except ValueError as exc:
            raise GatewayError("vector-index", f"ragged vectors: {exc}") from exc
        if vectors.ndim != 2 or vectors.shape[1] != self.dim:
            raise GatewayError("vector-index", f"vectors must be shape (n, {self.dim})")
        norms = np.linalg.norm(vectors, axis=1).astype(np.float32)

        # last write wins for ids repeated inside one batch
        latest = {e.id: i for i, e in enumerate(entries)}

        with self._lock:
            part = self._partitions.setdefault(namespace, _Partition(self.dim))
            new_rows = []
            for vec_id, i in latest.items():
                md = entries[i].metadata.model_dump()
                pos = part.positions.get(vec_id)
                if pos is not None:
                    part.vectors[pos] = vectors[i]
                    part.norms[pos] = norms[i]
                    part.metas[pos] = md
                    continue
                part.positions[vec_id] = len(part.ids)
                new_rows.append(i)
                part.ids.append(vec_id)
                part.metas.append(md)
            if new_rows:
                part.vectors = np.vstack([part.vectors, vectors[new_rows]])
                part.norms = np.concatenate([part.norms, norms[new_rows]])

    def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        part = self._partitions.get(namespace)
        if part is None or not part.ids:
            return []

        q = np.asarray(vector, dtype=np.float32)
        if q.shape != (self.dim,):
            raise GatewayError("vector-index", f"query must be shape ({self.dim},)")

        with self._lock:
            keep = [i for i, md in enumerate(part.metas) if _matches_filter(md, metadata_filter)]
            if not keep:
                return []
            rows = np.asarray(keep)
            # cosine = dot / (||a|| * ||b||)
            qn = float(np.linalg.norm(q)) + 1e-12
            scores = (part.vectors[rows] @ q) / ((part.norms[rows] * qn) + 1e-12)
            order = np.argsort(-scores, kind="stable")[:top_k]
            return [
                VectorMatch(
                    id=part.ids[rows[j]],
                    score=float(scores[j]),
                    metadata=part.metas[rows[j]],
                )
                for j in order
            ]

    def delete(self, namespace: str, ids: list[str]) -> None:
        with self._lock:
            part = self._partitions.get(namespace)
            if part is None:
                return
            drop = {part.positions[i] for i in ids if i in part.positions}
            if not drop:
                return
            keep = [i for i in range(len(part.ids)) if i not in drop]
            part.vectors = part.vectors[keep]
            part.norms = part.norms[keep]
            part.ids = [part.ids[i] for i in keep]
            part.metas = [part.metas[i] for i in keep]
            part.positions = {cid: pos for pos, cid in enumerate(part.ids)}
