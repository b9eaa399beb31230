from campus_rag.schemas.chat import Citation
from campus_rag.schemas.vectors import ChunkMetadata


def citation_from_metadata(md: ChunkMetadata) -> Citation:
    """
    Citation for one retrieved fragment. Built from index metadata only,
    never parsed out of generated text.
    """
    title = (md.title or "").strip() or "Unknown Source"
    source = (md.source or "").strip() or None
    return Citation(title=title, url=source, page=md.page)


def format_citation(md: ChunkMetadata) -> str:
    """Bracket label used inside prompts, e.g. "handbook.pdf p. 3"."""
    base = (md.title or "").strip() or (md.source or "").strip() or "source"
    if md.page is not None:
        return f"{base} p. {md.page}"
    return base
