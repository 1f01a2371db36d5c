"""
Chat completers - the answer-composing capability

GenerationService depends only on the ChatCompleter protocol:
    complete(messages) -> str

messages is a list of {"role": ..., "content": ...} dicts in the usual
chat format. Every transport failure or timeout surfaces as
CompletionUnavailable so callers can retry with their own policy.
"""

import logging
from typing import Optional, Protocol

import openai

from common.exceptions import CompletionUnavailable, InvalidConfiguration

from .config import GenerationConfig
from .http_client import post_json

logger = logging.getLogger(__name__)


class ChatCompleter(Protocol):
    def complete(self, messages: list[dict[str, str]]) -> str:
        ...


class OllamaChatCompleter:
    """Chat completions from a local Ollama model via /api/chat."""

    def __init__(
        self,
        model: str = "llama3.1:latest",
        base_url: str = "http://localhost:11434",
        temperature: float = 0.0,
        output_tokens: int = 256,
        timeout: float = 120.0,
    ):
        self.model = model
        self.base_url = base_url
        self.temperature = temperature
        self.output_tokens = output_tokens
        self.timeout = timeout

    def complete(self, messages: list[dict[str, str]]) -> str:
        payload = {
            "model": self.model,
            "stream": False,
            "messages": messages,
            "options": {
                "temperature": self.temperature,
                "num_predict": self.output_tokens,
            },
        }
        url = f"{self.base_url.rstrip('/')}/api/chat"
        logger.debug(f"Requesting chat completion from {self.model} ({len(messages)} messages)")
        try:
            response = post_json(url, payload, timeout=self.timeout)
        except TimeoutError as e:
            raise CompletionUnavailable(
                str(e), service="ollama", timed_out=True, original_error=e
            ) from e
        except (ConnectionError, RuntimeError) as e:
            raise CompletionUnavailable(str(e), service="ollama", original_error=e) from e

        message = response.get("message") or {}
        return (message.get("content") or "").strip()


class OpenAIChatCompleter:
    """
    Chat completions from the OpenAI API.

    SDK-level retries are disabled; callers retry with their own policy.
    """

    def __init__(
        self,
        model: str = "gpt-3.5-turbo",
        api_key: Optional[str] = None,
        temperature: float = 0.0,
        output_tokens: int = 256,
        timeout: float = 120.0,
        client: Optional[openai.OpenAI] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.output_tokens = output_tokens
        self.timeout = timeout
        self._client = client or openai.OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def complete(self, messages: list[dict[str, str]]) -> str:
        logger.debug(f"Requesting chat completion from {self.model} ({len(messages)} messages)")
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.output_tokens,
            )
        except openai.APITimeoutError as e:
            raise CompletionUnavailable(
                f"OpenAI completion request exceeded {self.timeout}s",
                service="openai",
                timed_out=True,
                original_error=e,
            ) from e
        except openai.APIError as e:
            raise CompletionUnavailable(
                f"OpenAI completion failed for model '{self.model}'",
                service="openai",
                original_error=e,
            ) from e

        if not response.choices:
            raise CompletionUnavailable("OpenAI returned no choices", service="openai")
        return (response.choices[0].message.content or "").strip()


def build_completer(config: GenerationConfig) -> ChatCompleter:
    if config.provider == "ollama":
        return OllamaChatCompleter(
            model=config.model,
            base_url=config.ollama_base_url,
            temperature=config.temperature,
            output_tokens=config.output_tokens,
            timeout=config.timeout,
        )
    if config.provider == "openai":
        return OpenAIChatCompleter(
            model=config.model,
            api_key=config.openai_api_key,
            temperature=config.temperature,
            output_tokens=config.output_tokens,
            timeout=config.timeout,
        )
    raise InvalidConfiguration(f"Unsupported completion provider: {config.provider}")
