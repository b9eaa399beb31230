import asyncio
from dataclasses import dataclass

from campus_rag.core.errors import GatewayError
from campus_rag.core.logging import get_logger
from campus_rag.services.llm import TextGenerator
from campus_rag.services.retriever import RetrievedFragment

logger = get_logger(__name__)

SUMMARIZER_TEMPLATE = """
You are an AI assistant helping condense university documents.
Given the following document text, extract ONLY the key facts relevant to answering the question.

Document:
{doc}

Question:
{question}

Summary (max 5 bullet points):
""".strip()


@dataclass
class CompressedFragment:
    text: str
    prompt: str
    fallback: bool = False


def build_summary_prompt(doc: str, question: str) -> str:
    return SUMMARIZER_TEMPLATE.format(doc=doc, question=question)


class ContextCompressor:
    """Shrinks each fragment to question-relevant bullets before synthesis.

    A failed summary for one fragment falls back to a raw prefix of that
    fragment; it never fails the answer.
    """

    def __init__(
        self,
        generator: TextGenerator,
        max_input_chars: int = 3000,
        fallback_chars: int = 1000,
        concurrency: int = 5,
    ):
        self.generator = generator
        self.max_input_chars = max_input_chars
        self.fallback_chars = fallback_chars
        self.concurrency = max(1, concurrency)

    async def _compress_one(self, sem: asyncio.Semaphore, fragment: RetrievedFragment, question: str) -> CompressedFragment:
        prompt = build_summary_prompt(fragment.text[: self.max_input_chars], question)
        async with sem:
            try:
                summary = await asyncio.to_thread(self.generator.generate, prompt)
            except GatewayError as exc:
                logger.warning("compression failed for %s, using raw text: %s", fragment.id, exc)
                return CompressedFragment(fragment.text[: self.fallback_chars], prompt, fallback=True)
        return CompressedFragment((summary or "").strip(), prompt)

    async def compress(self, fragments: list[RetrievedFragment], question: str) -> list[CompressedFragment]:
        sem = asyncio.Semaphore(self.concurrency)
        return list(await asyncio.gather(*(self._compress_one(sem, f, question) for f in fragments)))

    @staticmethod
    def finalize(parts: list[str]) -> str:
        return "\n\n".join(parts)
