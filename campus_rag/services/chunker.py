from collections.abc import Iterator

from campus_rag.core.errors import ConfigurationError


class ChunkWindows:
    """Overlapping token windows over one text.

    Iterating again walks the tokens from the start, so the windows can be
    consumed more than once without re-splitting the text.
    """

    def __init__(self, tokens: list[str], chunk_size: int, overlap: int):
        self._tokens = tokens
        self._size = chunk_size
        self._step = chunk_size - overlap

    def __iter__(self) -> Iterator[str]:
        start = 0
        while start < len(self._tokens):
            end = min(start + self._size, len(self._tokens))
            yield " ".join(self._tokens[start:end])
            start += self._step

    def __len__(self) -> int:
        n = len(self._tokens)
        if n == 0:
            return 0
        return (n - 1) // self._step + 1


class Chunker:
    def __init__(self, chunk_size: int = 1000, overlap: int = 150):
        if chunk_size <= 0:
            raise ConfigurationError("chunk_size must be positive")
        if overlap < 0 or overlap >= chunk_size:
            raise ConfigurationError("overlap must be >= 0 and less than chunk_size")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def split(self, text: str) -> ChunkWindows:
        # plain whitespace tokens, no sentence awareness
        return ChunkWindows((text or "").split(), self.chunk_size, self.overlap)


def chunk_text(text: str, chunk_size: int = 1000, overlap: int = 150) -> list[str]:
    return list(Chunker(chunk_size, overlap).split(text))
