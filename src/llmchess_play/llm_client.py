from __future__ import annotations
"""
LLM provider client over OpenAI-compatible chat endpoints.

Each supported provider ("Google Gemini", "OpenAI GPT", "Cohere") is reached through its
OpenAI-compatible base URL with the openai SDK, so the rest of the code only ever calls
complete(provider, credential, prompt) and gets raw text back.

The credential is handed to a client built for that single call and not kept afterwards.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Protocol
import logging

import openai
from openai import AsyncOpenAI

from .config import SETTINGS
from .errors import MissingCredential, ProviderError
from .prompting import SYSTEM

log = logging.getLogger("llm_client")

DEFAULT_PROVIDER = "Google Gemini"


@dataclass(frozen=True)
class ProviderSpec:
    base_url: str
    model: str


PROVIDERS: Dict[str, ProviderSpec] = {
    "Google Gemini": ProviderSpec(SETTINGS.gemini_base_url, SETTINGS.gemini_model),
    "OpenAI GPT": ProviderSpec(SETTINGS.openai_base_url, SETTINGS.openai_model),
    "Cohere": ProviderSpec(SETTINGS.cohere_base_url, SETTINGS.cohere_model),
}


class CompletionClient(Protocol):
    async def complete(self, provider: str, credential: str, prompt: str) -> str:
        ...


class ProviderClient:
    """Stateless completion client; one short-lived AsyncOpenAI per call."""

    def __init__(self, providers: Optional[Dict[str, ProviderSpec]] = None,
                 timeout_s: float | None = None, retries: int | None = None):
        self.providers = providers if providers is not None else PROVIDERS
        self.timeout_s = SETTINGS.request_timeout_s if timeout_s is None else timeout_s
        self.retries = SETTINGS.provider_retries if retries is None else retries

    def _spec(self, provider: str) -> ProviderSpec:
        spec = self.providers.get(provider)
        if spec is None:
            raise ProviderError(provider, f"unknown provider (expected one of {', '.join(self.providers)})")
        return spec

    async def complete(self, provider: str, credential: str, prompt: str) -> str:
        if not credential:
            raise MissingCredential(f"No API key provided for LLM provider {provider!r}")
        spec = self._spec(provider)
        client = AsyncOpenAI(api_key=credential, base_url=spec.base_url,
                             timeout=self.timeout_s, max_retries=self.retries)
        messages = [
            {"role": "system", "content": SYSTEM},
            {"role": "user", "content": prompt},
        ]
        try:
            rsp = await client.chat.completions.create(model=spec.model, messages=messages)
        except openai.APIStatusError as e:
            raise ProviderError(provider, e.message, status=e.status_code) from e
        except openai.APIConnectionError as e:
            # APITimeoutError is a subclass
            raise ProviderError(provider, str(e) or type(e).__name__) from e
        finally:
            await client.close()
        text = _extract_text(rsp)
        log.debug("%s replied (%d chars)", provider, len(text))
        return text.strip()


def _extract_text(rsp) -> str:
    if hasattr(rsp, "choices") and rsp.choices:
        msg = rsp.choices[0].message
        content = getattr(msg, "content", None)
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = []
            for c in content:
                if isinstance(c, dict):
                    if c.get("type") == "text" and isinstance(c.get("text"), str):
                        parts.append(c["text"])
                    continue
                t = getattr(c, "text", None)
                if isinstance(t, str):
                    parts.append(t)
            return "\n".join(parts)
    return ""
