"""Tests for per-fragment context compression."""

import threading
import time

from campus_rag.schemas.vectors import ChunkMetadata
from campus_rag.services.compressor import ContextCompressor
from campus_rag.services.retriever import RetrievedFragment

from tests.conftest import FakeGenerator


def _fragment(i: int, text: str) -> RetrievedFragment:
    return RetrievedFragment(
        id=f"doc_{i}",
        score=1.0 - i * 0.1,
        metadata=ChunkMetadata(
            document_id="doc", chunk_index=i, text=text, access_role="public", department="general"
        ),
    )


class TestContextCompressor:
    async def test_input_is_truncated_to_budget(self) -> None:
        generator = FakeGenerator(reply="- fact")
        compressor = ContextCompressor(generator, max_input_chars=3000)

        await compressor.compress([_fragment(0, "x" * 5000)], "question?")

        prompt = generator.prompts[0]
        assert "x" * 3000 in prompt
        assert "x" * 3001 not in prompt
        assert "question?" in prompt

    async def test_failure_falls_back_to_raw_prefix(self) -> None:
        generator = FakeGenerator(reply="- summary", fail_when=lambda p: "BAD" in p)
        compressor = ContextCompressor(generator, fallback_chars=1000)
        bad_text = "BAD" + "y" * 4000

        parts = await compressor.compress([_fragment(0, "good text"), _fragment(1, bad_text)], "q")

        assert parts[0].text == "- summary"
        assert parts[0].fallback is False
        assert parts[1].text == bad_text[:1000]
        assert parts[1].fallback is True

    async def test_order_is_preserved_under_concurrency(self) -> None:
        def slow_reply(prompt: str) -> str:
            # earlier fragments finish last
            marker = next(tok for tok in prompt.split() if tok.startswith("frag"))
            time.sleep(0.05 if marker == "frag0" else 0.0)
            return f"summary of {marker}"

        compressor = ContextCompressor(FakeGenerator(reply=slow_reply), concurrency=4)
        fragments = [_fragment(i, f"frag{i} body") for i in range(4)]

        parts = await compressor.compress(fragments, "q")

        assert [p.text for p in parts] == [f"summary of frag{i}" for i in range(4)]

    async def test_concurrency_limit(self) -> None:
        lock = threading.Lock()
        state = {"now": 0, "peak": 0}

        def reply(prompt: str) -> str:
            with lock:
                state["now"] += 1
                state["peak"] = max(state["peak"], state["now"])
            time.sleep(0.02)
            with lock:
                state["now"] -= 1
            return "ok"

        compressor = ContextCompressor(FakeGenerator(reply=reply), concurrency=2)
        await compressor.compress([_fragment(i, "t") for i in range(6)], "q")

        assert state["peak"] <= 2

    async def test_summary_is_stripped(self) -> None:
        compressor = ContextCompressor(FakeGenerator(reply="\n  - a\n  "))
        parts = await compressor.compress([_fragment(0, "t")], "q")
        assert parts[0].text == "- a"

    async def test_no_fragments_no_calls(self) -> None:
        generator = FakeGenerator()
        assert await ContextCompressor(generator).compress([], "q") == []
        assert generator.prompts == []

    def test_finalize_joins_with_blank_line(self) -> None:
        assert ContextCompressor.finalize(["a", "b", "c"]) == "a\n\nb\n\nc"

