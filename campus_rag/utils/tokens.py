from functools import lru_cache

import tiktoken


@lru_cache(maxsize=1)
def _encoding():
    return tiktoken.get_encoding("cl100k_base")


def count_tokens(*texts: str) -> int:
    enc = _encoding()
    return sum(len(enc.encode(t)) for t in texts if t)
