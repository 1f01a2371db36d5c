"""
Generation component for RAG pipelines.

Builds chat prompts from retrieved context and asks an Ollama or OpenAI
chat model for the answer.
"""

__version__ = "1.0.0"

from .config import GenerationConfig
from .completer import ChatCompleter, OllamaChatCompleter, OpenAIChatCompleter, build_completer
from .context_builder import ContextBuildResult, build_context
from .models import AnswerResult, GenerateRequest, GenerateResponse
from .prompts import FALLBACK_ANSWER, SYSTEM_PROMPT, build_messages
from .service import GenerationService

__all__ = [
    "__version__",
    "GenerationConfig",
    "ChatCompleter",
    "OllamaChatCompleter",
    "OpenAIChatCompleter",
    "build_completer",
    "ContextBuildResult",
    "build_context",
    "AnswerResult",
    "GenerateRequest",
    "GenerateResponse",
    "FALLBACK_ANSWER",
    "SYSTEM_PROMPT",
    "build_messages",
    "GenerationService",
]
