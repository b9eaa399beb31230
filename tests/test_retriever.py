"""Tests for role-filtered retrieval."""

import pytest

from campus_rag.core.errors import GatewayError
from campus_rag.schemas.vectors import ChunkMetadata, VectorEntry
from campus_rag.services.retriever import Retriever, role_filter, visible_roles

from tests.conftest import NAMESPACE, FakeEmbedder, RecordingIndex


def _entry(embedder: FakeEmbedder, vec_id: str, text: str, role: str) -> VectorEntry:
    return VectorEntry(
        id=vec_id,
        values=embedder.embed(text),
        metadata=ChunkMetadata(
            document_id=vec_id.split("_")[0],
            chunk_index=int(vec_id.split("_")[1]),
            text=text,
            access_role=role,
            department="general",
            title=f"{vec_id}.pdf",
        ),
    )


@pytest.fixture
def seeded_index(embedder) -> RecordingIndex:
    index = RecordingIndex()
    index.upsert(NAMESPACE, [
        _entry(embedder, "pub_0", "library opening hours weekday", "public"),
        _entry(embedder, "stu_0", "exam timetable library", "student"),
        _entry(embedder, "stf_0", "staff payroll library schedule", "staff"),
    ])
    return index


class TestVisibleRoles:
    def test_student_sees_public_and_student(self) -> None:
        assert visible_roles("student") == ["public", "student"]

    def test_staff_sees_everything(self) -> None:
        assert visible_roles("staff") == ["public", "student", "staff"]

    def test_admin_ranks_with_staff(self) -> None:
        assert visible_roles("admin") == ["public", "student", "staff"]

    def test_public_sees_only_public(self) -> None:
        assert visible_roles("public") == ["public"]

    def test_unknown_role_gets_public_view(self) -> None:
        assert visible_roles("visitor") == ["public"]

    def test_role_is_case_insensitive(self) -> None:
        assert visible_roles(" Student ") == ["public", "student"]

    def test_filter_shape(self) -> None:
        assert role_filter("student") == {"access_role": {"$in": ["public", "student"]}}


class TestRetriever:
    async def test_student_never_gets_staff_fragments(self, embedder, seeded_index) -> None:
        retriever = Retriever(embedder, seeded_index, NAMESPACE, top_k=5)

        fragments = await retriever.retrieve("library", "student")

        assert {f.metadata.access_role for f in fragments} <= {"public", "student"}
        assert len(fragments) == 2
        assert seeded_index.query_calls[0]["filter"] == {"access_role": {"$in": ["public", "student"]}}

    async def test_staff_can_get_all_roles(self, embedder, seeded_index) -> None:
        retriever = Retriever(embedder, seeded_index, NAMESPACE, top_k=5)

        fragments = await retriever.retrieve("library", "staff")

        assert {f.metadata.access_role for f in fragments} == {"public", "student", "staff"}

    async def test_results_follow_index_ranking(self, embedder, seeded_index) -> None:
        retriever = Retriever(embedder, seeded_index, NAMESPACE, top_k=5)

        fragments = await retriever.retrieve("staff payroll library schedule", "staff")

        assert fragments[0].id == "stf_0"
        scores = [f.score for f in fragments]
        assert scores == sorted(scores, reverse=True)

    async def test_top_k_is_respected(self, embedder, seeded_index) -> None:
        retriever = Retriever(embedder, seeded_index, NAMESPACE, top_k=1)

        fragments = await retriever.retrieve("library", "staff")

        assert len(fragments) == 1
        assert seeded_index.query_calls[0]["top_k"] == 1

    async def test_other_namespace_is_empty(self, embedder, seeded_index) -> None:
        retriever = Retriever(embedder, seeded_index, "other", top_k=5)
        assert await retriever.retrieve("library", "staff") == []

    async def test_leaked_match_outside_role_is_dropped(self, embedder) -> None:
        class LeakyIndex(RecordingIndex):
            def query(self, namespace, vector, top_k, metadata_filter=None):
                return super().query(namespace, vector, top_k, None)

        index = LeakyIndex()
        index.upsert(NAMESPACE, [_entry(embedder, "stf_0", "staff only memo", "staff")])

        fragments = await Retriever(embedder, index, NAMESPACE).retrieve("memo", "student")

        assert fragments == []

    async def test_query_embedding_failure_propagates(self, seeded_index) -> None:
        embedder = FakeEmbedder(fail_when=lambda text: True)
        with pytest.raises(GatewayError):
            await Retriever(embedder, seeded_index, NAMESPACE).retrieve("library", "staff")

    async def test_unknown_role_is_logged_and_mapped_to_public(self, embedder, seeded_index, caplog) -> None:
        retriever = Retriever(embedder, seeded_index, NAMESPACE, top_k=5)

        with caplog.at_level("WARNING", logger="campus_rag.services.retriever"):
            fragments = await retriever.retrieve("library", "visitor")

        assert [f.metadata.access_role for f in fragments] == ["public"]
        assert "unknown role 'visitor'" in caplog.text

    async def test_known_role_is_not_logged(self, embedder, seeded_index, caplog) -> None:
        with caplog.at_level("WARNING", logger="campus_rag.services.retriever"):
            await Retriever(embedder, seeded_index, NAMESPACE).retrieve("library", "Admin")

        assert "unknown role" not in caplog.text
