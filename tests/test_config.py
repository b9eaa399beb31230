"""Tests for Settings validation."""

import pytest

from campus_rag.core.config import Settings


class TestSettings:
    def test_defaults_match_pipeline_constants(self) -> None:
        s = Settings()
        assert (s.CHUNK_TOKENS, s.CHUNK_OVERLAP, s.TOP_K) == (1000, 150, 5)
        assert (s.COMPRESS_INPUT_CHARS, s.COMPRESS_FALLBACK_CHARS, s.HISTORY_WINDOW) == (3000, 1000, 5)

    def test_overlap_not_below_size_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            Settings(CHUNK_TOKENS=100, CHUNK_OVERLAP=100)

    def test_unknown_vector_backend_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            Settings(VECTOR_BACKEND="faiss")
