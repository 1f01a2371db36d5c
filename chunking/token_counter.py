"""
Token Counter for context budgeting

Uses tiktoken with the cl100k_base encoding (the encoding of the OpenAI
chat and embedding models) to measure how much retrieved context fits
into a completion prompt. For local Ollama models it is a conservative
approximation.

Usage:
    from chunking.token_counter import count_tokens, fit_to_budget

    n = count_tokens("The quick brown fox.")
    kept = fit_to_budget(["chunk one", "chunk two"], max_tokens=512)
"""

from functools import lru_cache

import tiktoken

DEFAULT_ENCODING = "cl100k_base"


@lru_cache(maxsize=4)
def _get_encoder(encoding_name: str) -> tiktoken.Encoding:
    return tiktoken.get_encoding(encoding_name)


def count_tokens(text: str, encoding_name: str = DEFAULT_ENCODING) -> int:
    """
    Count the number of tokens in a text string.

    Args:
        text: The text to tokenize.
        encoding_name: tiktoken encoding to use.

    Returns:
        Number of tokens.
    """
    if not text:
        return 0
    return len(_get_encoder(encoding_name).encode(text))


def fit_to_budget(
    texts: list[str],
    max_tokens: int,
    separator: str = "\n",
    encoding_name: str = DEFAULT_ENCODING,
) -> list[str]:
    """
    Keep the leading texts whose combined size fits in ``max_tokens``.

    Order is preserved and the first text is always kept, even when it
    alone exceeds the budget, so a prompt never ends up without context.
    """
    if not texts:
        return []
    separator_tokens = count_tokens(separator, encoding_name)
    kept: list[str] = []
    used = 0
    for text in texts:
        cost = count_tokens(text, encoding_name) + (separator_tokens if kept else 0)
        if kept and used + cost > max_tokens:
            break
        kept.append(text)
        used += cost
    return kept
