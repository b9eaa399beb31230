import asyncio

from pydantic import BaseModel

from campus_rag.schemas.chat import Citation
from campus_rag.services.llm import TextGenerator
from campus_rag.services.retriever import RetrievedFragment
from campus_rag.utils.citations import citation_from_metadata

NO_SOURCE_ANSWER = "I don't have a verified source for that."
NO_HISTORY = "No previous conversation"

ANSWER_TEMPLATE = """
You are the university's Business Process Agent (BPA).
Answer ONLY using the provided university context.
Rules:
- Do NOT guess or invent info.
- Always cite sources in [brackets] using title or filename.
- If unsure, say exactly: "{refusal}"
- Keep answers concise unless more detail is requested.
- Consider conversation history for context and continuity.

Previous conversation:
{history}

Context:
{context}

Question:
{question}

Answer:
""".strip()


def build_answer_prompt(context: str, question: str, history: str) -> str:
    return ANSWER_TEMPLATE.format(
        refusal=NO_SOURCE_ANSWER,
        history=history or NO_HISTORY,
        context=context,
        question=question,
    )


class SynthesizedAnswer(BaseModel):
    answer: str
    citations: list[Citation]
    prompt: str


class AnswerSynthesizer:
    def __init__(self, generator: TextGenerator):
        self.generator = generator

    async def synthesize(
        self,
        context: str,
        question: str,
        history: str,
        fragments: list[RetrievedFragment],
    ) -> SynthesizedAnswer:
        prompt = build_answer_prompt(context, question, history)
        text = await asyncio.to_thread(self.generator.generate, prompt)
        # the generated prose is not inspected; citations mirror the fragments
        citations = [citation_from_metadata(f.metadata) for f in fragments]
        return SynthesizedAnswer(answer=(text or "").strip(), citations=citations, prompt=prompt)
