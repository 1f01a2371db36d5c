from __future__ import annotations

from dataclasses import dataclass

from chunking.token_counter import count_tokens, fit_to_budget

CONTEXT_SEPARATOR = "\n"


@dataclass
class ContextBuildResult:
    context_text: str
    selected: list[str]
    available_tokens: int
    used_tokens: int


def build_context(
    question: str,
    contexts: list[str],
    max_context_tokens: int,
    system_prompt: str,
) -> ContextBuildResult:
    """
    Join ranked context texts into one prompt block within a token budget.

    The budget covers the system prompt and the question as well; the
    best-ranked context is kept even when it alone exceeds what is left.
    """
    available = max_context_tokens - count_tokens(system_prompt) - count_tokens(question)
    if available < 0:
        available = 0

    selected = fit_to_budget(
        [text.strip() for text in contexts if text and text.strip()],
        max_tokens=available,
        separator=CONTEXT_SEPARATOR,
    )
    context_text = CONTEXT_SEPARATOR.join(selected)
    return ContextBuildResult(
        context_text=context_text,
        selected=selected,
        available_tokens=available,
        used_tokens=count_tokens(context_text),
    )
