import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai

from llmchess_play import llm_client
from llmchess_play.errors import MissingCredential, ProviderError
from llmchess_play.llm_client import PROVIDERS, ProviderClient, _extract_text
from llmchess_play.prompting import SYSTEM


def _response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _fake_openai(create):
    instance = MagicMock()
    instance.chat.completions.create = create
    instance.close = AsyncMock()
    return MagicMock(return_value=instance), instance


class ProviderClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_complete_uses_provider_endpoint(self):
        factory, instance = _fake_openai(AsyncMock(return_value=_response("  ANSWER: e2e4\n")))
        with patch.object(llm_client, "AsyncOpenAI", factory):
            text = await ProviderClient(timeout_s=5, retries=0).complete("Cohere", "secret", "Your move")
        self.assertEqual(text, "ANSWER: e2e4")
        factory.assert_called_once_with(api_key="secret", base_url=PROVIDERS["Cohere"].base_url, timeout=5, max_retries=0)
        kwargs = instance.chat.completions.create.await_args.kwargs
        self.assertEqual(kwargs["model"], PROVIDERS["Cohere"].model)
        self.assertEqual(kwargs["messages"], [
            {"role": "system", "content": SYSTEM},
            {"role": "user", "content": "Your move"},
        ])
        instance.close.assert_awaited_once()

    async def test_missing_credential_makes_no_request(self):
        factory, _ = _fake_openai(AsyncMock())
        with patch.object(llm_client, "AsyncOpenAI", factory):
            with self.assertRaises(MissingCredential):
                await ProviderClient().complete("OpenAI GPT", "", "Your move")
        factory.assert_not_called()

    async def test_unknown_provider(self):
        with self.assertRaises(ProviderError):
            await ProviderClient().complete("Nonexistent", "secret", "Your move")

    async def test_status_error_becomes_provider_error(self):
        request = httpx.Request("POST", "https://example.test/chat/completions")
        error = openai.APIStatusError("rate limited", response=httpx.Response(429, request=request), body=None)
        factory, instance = _fake_openai(AsyncMock(side_effect=error))
        with patch.object(llm_client, "AsyncOpenAI", factory):
            with self.assertRaises(ProviderError) as ctx:
                await ProviderClient().complete("Google Gemini", "secret", "Your move")
        self.assertEqual(ctx.exception.status, 429)
        self.assertEqual(ctx.exception.provider, "Google Gemini")
        instance.close.assert_awaited_once()

    async def test_connection_error_becomes_provider_error(self):
        request = httpx.Request("POST", "https://example.test/chat/completions")
        factory, _ = _fake_openai(AsyncMock(side_effect=openai.APITimeoutError(request=request)))
        with patch.object(llm_client, "AsyncOpenAI", factory):
            with self.assertRaises(ProviderError) as ctx:
                await ProviderClient().complete("Google Gemini", "secret", "Your move")
        self.assertIsNone(ctx.exception.status)


class ExtractTextTests(unittest.TestCase):
    def test_string_content(self):
        self.assertEqual(_extract_text(_response("hello")), "hello")

    def test_list_content(self):
        rsp = _response([{"type": "text", "text": "a"}, {"type": "image"}, SimpleNamespace(text="b")])
        self.assertEqual(_extract_text(rsp), "a\nb")

    def test_empty_response(self):
        self.assertEqual(_extract_text(SimpleNamespace(choices=[])), "")


if __name__ == "__main__":
    unittest.main()
