from dataclasses import dataclass
import os
from typing import Optional

from common.retry import RetryPolicy

from .prompts import SYSTEM_PROMPT


@dataclass
class GenerationConfig:
    provider: str = "ollama"
    ollama_base_url: str = "http://localhost:11434"
    model: str = "llama3.1:latest"
    openai_api_key: Optional[str] = None
    temperature: float = 0.0
    output_tokens: int = 256
    max_context_tokens: int = 2048
    timeout: float = 120.0
    top_k: int = 5
    max_workers: int = 5
    max_attempts: int = 3
    retry_delay: float = 0.5
    system_prompt: str = SYSTEM_PROMPT

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.max_attempts, initial_delay=self.retry_delay)

    @classmethod
    def from_env(cls) -> "GenerationConfig":
        def _int(name: str, default: int) -> int:
            value = os.environ.get(name)
            return int(value) if value else default

        def _float(name: str, default: float) -> float:
            value = os.environ.get(name)
            return float(value) if value else default

        return cls(
            provider=os.environ.get("GENERATION_PROVIDER", cls.provider),
            ollama_base_url=os.environ.get("OLLAMA_BASE_URL", cls.ollama_base_url),
            model=os.environ.get("GENERATION_MODEL", cls.model),
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            temperature=_float("GENERATION_TEMPERATURE", cls.temperature),
            output_tokens=_int("GENERATION_OUTPUT_TOKENS", cls.output_tokens),
            max_context_tokens=_int("GENERATION_MAX_CONTEXT_TOKENS", cls.max_context_tokens),
            timeout=_float("GENERATION_TIMEOUT", cls.timeout),
            top_k=_int("GENERATION_TOP_K", cls.top_k),
            max_workers=_int("GENERATION_MAX_WORKERS", cls.max_workers),
            max_attempts=_int("GENERATION_MAX_ATTEMPTS", cls.max_attempts),
            retry_delay=_float("GENERATION_RETRY_DELAY", cls.retry_delay),
            system_prompt=os.environ.get("GENERATION_SYSTEM_PROMPT", cls.system_prompt),
        )
