"""
Tests for the generation gateway with injected SDK clients.
"""

import asyncio
from types import SimpleNamespace

import pytest

from conftest import run
from src.claims.config import DEFAULT_MODELS, GenerationConfig
from src.claims.errors import UpstreamError
from src.claims.gateway import LLMGateway, MockGateway, create_gateway


class FakeMessages:
    """Stands in for AsyncAnthropic().messages."""

    def __init__(self, text="", error=None, delay=0.0):
        self.text = text
        self.error = error
        self.delay = delay
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.text)])


class FakeCompletions:
    """Stands in for AsyncOpenAI().chat.completions."""

    def __init__(self, text):
        self.text = text
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.text)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def claude_gateway(messages, timeout=5.0) -> LLMGateway:
    config = GenerationConfig(llm_provider="claude", api_key="test", timeout=timeout)
    return LLMGateway(config, client=SimpleNamespace(messages=messages))


class TestConfig:
    def test_default_models(self):
        assert GenerationConfig(llm_provider="Claude").llm_model == DEFAULT_MODELS["claude"]
        assert GenerationConfig(llm_provider="openai", llm_model="gpt-4o").llm_model == "gpt-4o"

    def test_validate(self):
        assert GenerationConfig(llm_provider="mock").validate()
        assert not GenerationConfig(llm_provider="claude").validate()
        assert GenerationConfig(llm_provider="claude", api_key="k").validate()
        assert not GenerationConfig(llm_provider="gemini", api_key="k").validate()

    def test_factory(self):
        assert isinstance(create_gateway(GenerationConfig(llm_provider="mock")), MockGateway)


class TestLLMGateway:
    def test_claude_text(self):
        messages = FakeMessages(text='{"ok": true}')
        assert run(claude_gateway(messages).generate("hello")) == '{"ok": true}'
        assert messages.calls[0]["messages"] == [{"role": "user", "content": "hello"}]

    def test_openai_text(self):
        completions = FakeCompletions('{"ok": true}')
        config = GenerationConfig(llm_provider="openai", api_key="test")
        client = SimpleNamespace(chat=SimpleNamespace(completions=completions))

        assert run(LLMGateway(config, client=client).generate("hello")) == '{"ok": true}'
        assert completions.calls[0]["temperature"] == 0.0

    def test_empty_response(self):
        with pytest.raises(UpstreamError):
            run(claude_gateway(FakeMessages(text="  ")).generate("hello"))

    def test_sdk_error(self):
        with pytest.raises(UpstreamError) as exc_info:
            run(claude_gateway(FakeMessages(error=ConnectionError("reset"))).generate("hello"))
        assert exc_info.value.stage == "generation"

    def test_timeout(self):
        gateway = claude_gateway(FakeMessages(text="late", delay=1.0), timeout=0.05)
        with pytest.raises(UpstreamError) as exc_info:
            run(gateway.generate("hello"))
        assert "timed out" in exc_info.value.message

    def test_unsupported_provider(self):
        with pytest.raises(ValueError):
            LLMGateway(GenerationConfig(llm_provider="gemini"))
