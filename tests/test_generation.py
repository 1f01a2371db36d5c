"""Tests for generation — prompts, context budgeting, completers and GenerationService."""

import socket
from urllib.error import HTTPError, URLError

import httpx
import openai
import pytest
from unittest.mock import MagicMock, patch

from common.exceptions import CompletionUnavailable, InvalidConfiguration
from generation import (
    FALLBACK_ANSWER,
    SYSTEM_PROMPT,
    GenerationConfig,
    GenerationService,
    OllamaChatCompleter,
    OpenAIChatCompleter,
    build_completer,
    build_context,
    build_messages,
)


def _make_service(retriever, completer=None, **config_overrides) -> GenerationService:
    defaults = dict(max_attempts=3, retry_delay=0.0)
    defaults.update(config_overrides)
    completer = completer or MagicMock(complete=MagicMock(return_value="The fox is quick."))
    return GenerationService(retriever, completer=completer, config=GenerationConfig(**defaults))


# ---------------------------------------------------------------------------
# Prompts and context
# ---------------------------------------------------------------------------

class TestBuildMessages:
    def test_layout(self):
        messages = build_messages("Who is fast?", "context one\ncontext two")
        assert messages == [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": "context one\ncontext two"},
            {"role": "user", "content": "Who is fast?"},
        ]

    def test_without_context(self):
        messages = build_messages("Who is fast?", "")
        assert [m["role"] for m in messages] == ["system", "user"]

    def test_custom_system_prompt(self):
        assert build_messages("q", "c", system_prompt="Be brief.")[0]["content"] == "Be brief."

    def test_system_prompt_names_fallback(self):
        assert FALLBACK_ANSWER in SYSTEM_PROMPT


class TestBuildContext:
    def test_joins_with_newlines_in_rank_order(self):
        result = build_context("q", ["first", "second"], max_context_tokens=1000, system_prompt="sys")
        assert result.context_text == "first\nsecond"
        assert result.selected == ["first", "second"]

    def test_drops_blank_contexts(self):
        result = build_context("q", ["", "  ", "kept"], max_context_tokens=1000, system_prompt="sys")
        assert result.selected == ["kept"]

    def test_budget_keeps_best_context(self):
        contexts = ["word " * 40, "word " * 40]
        result = build_context("q", contexts, max_context_tokens=10, system_prompt="sys")
        assert result.selected == [contexts[0].strip()]
        assert result.available_tokens >= 0


# ---------------------------------------------------------------------------
# Completers
# ---------------------------------------------------------------------------

class TestOllamaChatCompleter:
    def test_posts_chat_request(self):
        with patch("generation.completer.post_json") as post:
            post.return_value = {"message": {"content": "  An answer. "}}
            completer = OllamaChatCompleter(model="llama3.1", base_url="http://ollama:11434/", timeout=9.0)
            answer = completer.complete([{"role": "user", "content": "hi"}])

        assert answer == "An answer."
        url, payload = post.call_args.args
        assert url == "http://ollama:11434/api/chat"
        assert payload["model"] == "llama3.1"
        assert payload["stream"] is False
        assert payload["options"]["temperature"] == 0.0
        assert post.call_args.kwargs["timeout"] == 9.0

    def test_timeout(self):
        with patch("generation.completer.post_json", side_effect=TimeoutError("slow")):
            with pytest.raises(CompletionUnavailable) as exc_info:
                OllamaChatCompleter().complete([{"role": "user", "content": "hi"}])
        assert exc_info.value.timed_out
        assert exc_info.value.service == "ollama"

    def test_connection_error(self):
        with patch("generation.completer.post_json", side_effect=ConnectionError("refused")):
            with pytest.raises(CompletionUnavailable) as exc_info:
                OllamaChatCompleter().complete([{"role": "user", "content": "hi"}])
        assert not exc_info.value.timed_out


class TestPostJson:
    def test_url_timeout_becomes_timeout_error(self):
        from generation.http_client import post_json

        with patch("generation.http_client.request.urlopen", side_effect=URLError(socket.timeout("timed out"))):
            with pytest.raises(TimeoutError):
                post_json("http://localhost:1/api/chat", {}, timeout=1)

    def test_unreachable_becomes_connection_error(self):
        from generation.http_client import post_json

        with patch("generation.http_client.request.urlopen", side_effect=URLError("refused")):
            with pytest.raises(ConnectionError):
                post_json("http://localhost:1/api/chat", {}, timeout=1)

    def test_non_json_body_becomes_runtime_error(self):
        from generation.http_client import post_json

        with patch("generation.http_client.request.urlopen") as urlopen:
            urlopen.return_value.__enter__.return_value.read.return_value = b"<html>Bad Gateway</html>"
            with pytest.raises(RuntimeError, match="Invalid JSON"):
                post_json("http://localhost:1/api/chat", {}, timeout=1)

    def test_non_json_body_is_completion_unavailable(self):
        with patch("generation.http_client.request.urlopen") as urlopen:
            urlopen.return_value.__enter__.return_value.read.return_value = b"not json"
            with pytest.raises(CompletionUnavailable) as exc_info:
                OllamaChatCompleter().complete([{"role": "user", "content": "hi"}])
        assert exc_info.value.service == "ollama"
        assert not exc_info.value.timed_out

    def test_http_status_becomes_runtime_error(self):
        from generation.http_client import post_json

        error = HTTPError("http://localhost:1/api/chat", 500, "boom", {}, None)
        with patch("generation.http_client.request.urlopen", side_effect=error):
            with pytest.raises(RuntimeError, match="HTTP 500"):
                post_json("http://localhost:1/api/chat", {}, timeout=1)


class TestOpenAIChatCompleter:
    def test_creates_completion(self):
        client = MagicMock()
        client.chat.completions.create.return_value = MagicMock(
            choices=[MagicMock(message=MagicMock(content="Fast."))]
        )
        completer = OpenAIChatCompleter(output_tokens=50, client=client)
        messages = [{"role": "user", "content": "hi"}]

        assert completer.complete(messages) == "Fast."
        client.chat.completions.create.assert_called_once_with(
            model="gpt-3.5-turbo",
            messages=messages,
            temperature=0.0,
            max_tokens=50,
        )

    def test_timeout(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = openai.APITimeoutError(
            request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        )
        with pytest.raises(CompletionUnavailable) as exc_info:
            OpenAIChatCompleter(client=client).complete([])
        assert exc_info.value.timed_out

    def test_no_choices(self):
        client = MagicMock()
        client.chat.completions.create.return_value = MagicMock(choices=[])
        with pytest.raises(CompletionUnavailable, match="no choices"):
            OpenAIChatCompleter(client=client).complete([])


class TestBuildCompleter:
    def test_ollama(self):
        completer = build_completer(GenerationConfig(model="mistral", output_tokens=64))
        assert isinstance(completer, OllamaChatCompleter)
        assert completer.model == "mistral"
        assert completer.output_tokens == 64

    def test_openai(self):
        config = GenerationConfig(provider="openai", model="gpt-3.5-turbo", openai_api_key="sk-test")
        assert isinstance(build_completer(config), OpenAIChatCompleter)

    def test_unknown(self):
        with pytest.raises(InvalidConfiguration):
            build_completer(GenerationConfig(provider="anthropic"))


# ---------------------------------------------------------------------------
# GenerationService
# ---------------------------------------------------------------------------

class TestAsk:
    def test_answers_from_retrieved_context(self, retriever, sample_text):
        retriever.ingest(sample_text)
        service = _make_service(retriever)

        result = service.ask("lazy dog", top_k=2)

        assert result.answer == "The fox is quick."
        assert result.contexts == ["the lazy dog and runs", "fox jumps over the lazy"]
        messages = service.completer.complete.call_args.args[0]
        assert messages[1]["content"] == "the lazy dog and runs\nfox jumps over the lazy"
        assert messages[2]["content"] == "lazy dog"
        assert result.metadata["hits"] == 2

    def test_empty_index_returns_fallback(self, retriever):
        service = _make_service(retriever)
        result = service.ask("anything")

        assert result.answer == FALLBACK_ANSWER
        assert result.contexts == []
        service.completer.complete.assert_not_called()

    def test_completion_retried(self, retriever, sample_text):
        retriever.ingest(sample_text)
        completer = MagicMock()
        completer.complete.side_effect = [CompletionUnavailable("busy"), "Recovered."]

        result = _make_service(retriever, completer).ask("fox")

        assert result.answer == "Recovered."
        assert completer.complete.call_count == 2

    def test_completion_failure_surfaces(self, retriever, sample_text):
        retriever.ingest(sample_text)
        completer = MagicMock()
        completer.complete.side_effect = CompletionUnavailable("down")

        with pytest.raises(CompletionUnavailable):
            _make_service(retriever, completer, max_attempts=2).ask("fox")
        assert completer.complete.call_count == 2

    def test_context_budget(self, retriever, sample_text):
        retriever.ingest(sample_text)
        service = _make_service(retriever)
        result = service.ask("lazy dog", top_k=4, max_context_tokens=1)
        assert len(result.contexts) == 1


class TestAskMany:
    def test_results_in_input_order(self, retriever, sample_text):
        retriever.ingest(sample_text)
        completer = MagicMock()
        completer.complete.side_effect = lambda messages: f"answer to {messages[-1]['content']}"
        service = _make_service(retriever, completer, max_workers=2)

        results = service.ask_many(["fox", "dog", "fast"])

        assert [r.answer for r in results] == ["answer to fox", "answer to dog", "answer to fast"]

    def test_first_failure_raised(self, retriever, sample_text):
        retriever.ingest(sample_text)
        service = _make_service(retriever)
        with pytest.raises(InvalidConfiguration):
            service.ask_many(["fox", ""])


class TestGenerationConfig:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("GENERATION_PROVIDER", "openai")
        monkeypatch.setenv("GENERATION_MODEL", "gpt-3.5-turbo")
        monkeypatch.setenv("GENERATION_OUTPUT_TOKENS", "50")
        monkeypatch.setenv("GENERATION_TEMPERATURE", "0.3")
        config = GenerationConfig.from_env()

        assert config.provider == "openai"
        assert config.model == "gpt-3.5-turbo"
        assert config.output_tokens == 50
        assert config.temperature == 0.3
        assert config.system_prompt == SYSTEM_PROMPT
