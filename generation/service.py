"""
GenerationService - answers questions from retrieved context

Flow per question:
1. Retrieve the top_k chunks through the Retriever.
2. Fit the chunk texts into the context token budget.
3. Build the chat messages (system prompt, context, question).
4. Ask the completer, retrying transient failures with backoff.

When retrieval finds nothing, the fallback answer is returned without
calling the model.
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

from common.concurrency import BoundedWorkerPool
from common.exceptions import CompletionUnavailable
from common.retry import retry_call
from retrieval.service import Retriever

from .completer import ChatCompleter, build_completer
from .config import GenerationConfig
from .context_builder import build_context
from .models import AnswerResult
from .prompts import FALLBACK_ANSWER, build_messages

logger = logging.getLogger(__name__)


class GenerationService:
    def __init__(
        self,
        retriever: Retriever,
        completer: Optional[ChatCompleter] = None,
        config: Optional[GenerationConfig] = None,
    ):
        self.config = config or GenerationConfig()
        self.retriever = retriever
        self.completer = completer or build_completer(self.config)
        self.retry_policy = self.config.retry_policy()

    def ask(
        self,
        question: str,
        top_k: Optional[int] = None,
        max_context_tokens: Optional[int] = None,
    ) -> AnswerResult:
        """
        Answer a question from the indexed documents.

        Raises:
            InvalidConfiguration: For an empty question or top_k <= 0.
            EmbeddingUnavailable / IndexUnavailable: If retrieval fails.
            CompletionUnavailable: If the model still fails after retries.
        """
        start = time.time()
        if top_k is None:
            top_k = self.config.top_k
        budget = max_context_tokens or self.config.max_context_tokens

        hits = self.retriever.retrieve(question, top_k=top_k)
        context = build_context(
            question=question,
            contexts=[hit.text for hit in hits],
            max_context_tokens=budget,
            system_prompt=self.config.system_prompt,
        )

        if not context.selected:
            logger.info("No context found for question, returning fallback answer")
            answer = FALLBACK_ANSWER
        else:
            messages = build_messages(question, context.context_text, self.config.system_prompt)
            answer = retry_call(
                lambda: self.completer.complete(messages),
                self.retry_policy,
                retry_on=(CompletionUnavailable,),
                operation_name="chat completion",
            )

        return AnswerResult(
            question=question,
            answer=answer,
            contexts=context.selected,
            hits=hits,
            metadata={
                "top_k": top_k,
                "hits": len(hits),
                "selected_contexts": len(context.selected),
                "context_tokens": context.used_tokens,
                "max_context_tokens": budget,
                "time_seconds": round(time.time() - start, 2),
            },
        )

    def ask_many(
        self,
        questions: Sequence[str],
        top_k: Optional[int] = None,
    ) -> list[AnswerResult]:
        """
        Answer several questions concurrently, results in input order.

        All questions run to completion; the first failure in input
        order is then raised.
        """
        with BoundedWorkerPool(max_workers=self.config.max_workers, name="ask") as pool:
            outcomes = pool.run_all(lambda q: self.ask(q, top_k=top_k), questions)

        for outcome in outcomes:
            if not outcome.ok:
                raise outcome.error
        return [outcome.result for outcome in outcomes]
