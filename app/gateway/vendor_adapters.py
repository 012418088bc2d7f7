"""Vendor-Specific Adapters — protocol-level handling for each AI provider.

Each adapter turns a prompt into the vendor's HTTP protocol, sends it and
maps the vendor JSON onto a ``RawProviderResponse`` (text, sources,
citations). ``ProviderInvoker`` then derives brand / competitor signals
from the answer text.

Vendor-specific behaviors:
  - OpenAI: Chat Completions; web search via a search-preview model, url_citation annotations
  - Anthropic: Messages API; web_search tool, text-block citations + search result blocks
  - Google: generateContent; google_search tool, groundingMetadata chunks, SAFETY → error
  - Perplexity: OpenAI-compatible with native citations and search_results

Any failure surfaces as ``ProviderError`` carrying the HTTP status and
response headers when there was a response.
"""

from __future__ import annotations

import dataclasses
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import httpx

from app.analysis.citations import extract_domain, is_search_proxy
from app.analysis.mentions import analyze_answer_text, enhance_citations_with_mentions
from app.core.config import Settings, settings as default_settings
from app.core.logging import redact_secrets
from app.gateway.registry import PROVIDER_CONFIGS, api_key_for
from app.gateway.types import CitationRef, RawProviderResponse, SourceRef

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are an AI assistant analyzing brand visibility and rankings.
When responding to prompts about tools, platforms, or services:
1. Provide rankings with specific positions (1st, 2nd, etc.)
2. Focus on the companies mentioned in the prompt
3. Be objective and factual{factual_suffix}
4. Explain briefly why each tool is ranked where it is
5. If you don't have enough information about a specific company, you can mention that
6. {knowledge_rule}"""

WEB_SEARCH_SUFFIX = (
    "\n\nPlease search for current, factual information to answer this question. "
    "Focus on recent data and real user opinions."
)

TEMPERATURE = 0.7
MAX_TOKENS = 4096


def build_system_prompt(use_web_search: bool) -> str:
    if use_web_search:
        return SYSTEM_PROMPT.format(
            factual_suffix=", using current web information when available",
            knowledge_rule="Prioritize recent, factual information from web searches",
        )
    return SYSTEM_PROMPT.format(factual_suffix="", knowledge_rule="Use your knowledge base")


def build_user_prompt(prompt_text: str, use_web_search: bool) -> str:
    return prompt_text + WEB_SEARCH_SUFFIX if use_web_search else prompt_text


class ProviderError(Exception):
    """Raised when a provider call fails.

    ``status_code`` is None for transport errors and timeouts.
    ``response_headers`` keys are lowercased.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_headers: dict[str, str] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_headers = response_headers or {}


def _citation(url: str, title: str = "", snippet: str = "") -> CitationRef:
    return CitationRef(url=url, title=title or "", source=extract_domain(url) if url else "", snippet=snippet or "")


def _dedupe_citations(citations: list[CitationRef]) -> list[CitationRef]:
    seen: set[str] = set()
    unique = []
    for citation in citations:
        if citation.url and citation.url not in seen:
            seen.add(citation.url)
            unique.append(citation)
    return unique


class BaseProviderAdapter(ABC):
    """Base class for all provider adapters."""

    provider_id: str
    display_name: str
    default_model: str

    def __init__(
        self,
        api_key: str,
        model: str = "",
        timeout: float = 90.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model or self.default_model
        self.timeout = timeout
        self._transport = transport

    @abstractmethod
    async def send(self, prompt_text: str, use_web_search: bool) -> RawProviderResponse:
        """Send the prompt to the vendor and return text, sources and citations."""
        ...

    async def _post(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload, headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise ProviderError(f"{self.display_name} timeout after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.display_name} request failed: {redact_secrets(str(e))}") from e

        if resp.status_code >= 400:
            raise ProviderError(
                f"{self.display_name} API error {resp.status_code}: {redact_secrets(resp.text[:300])}",
                status_code=resp.status_code,
                response_headers={k.lower(): v for k, v in resp.headers.items()},
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(f"{self.display_name} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise ProviderError(f"{self.display_name} returned an unexpected payload")
        return data


# ---------------------------------------------------------------------------
# OpenAI Adapter
# ---------------------------------------------------------------------------


class OpenAIAdapter(BaseProviderAdapter):
    """OpenAI Chat Completions adapter."""

    provider_id = "openai"
    display_name = "OpenAI"
    default_model = "gpt-4o-mini"
    search_model = "gpt-4o-mini-search-preview"
    api_url = "https://api.openai.com/v1/chat/completions"

    def build_payload(self, prompt_text: str, use_web_search: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": build_system_prompt(use_web_search)},
                {"role": "user", "content": build_user_prompt(prompt_text, use_web_search)},
            ],
            "max_tokens": MAX_TOKENS,
        }
        if use_web_search:
            # Search models reject sampling parameters
            payload["model"] = self.search_model
            payload["web_search_options"] = {"search_context_size": "high"}
        else:
            payload["temperature"] = TEMPERATURE
        return payload

    async def send(self, prompt_text: str, use_web_search: bool) -> RawProviderResponse:
        data = await self._post(
            self.api_url,
            self.build_payload(prompt_text, use_web_search),
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
        )

        choices = data.get("choices") or []
        if not choices:
            raise ProviderError("OpenAI returned no choices")
        message = choices[0].get("message") or {}
        text = message.get("content") or ""

        citations = []
        for annotation in message.get("annotations") or []:
            if annotation.get("type") != "url_citation":
                continue
            ref = annotation.get("url_citation") or {}
            start, end = ref.get("start_index"), ref.get("end_index")
            snippet = text[start:end] if isinstance(start, int) and isinstance(end, int) else ""
            citations.append(_citation(ref.get("url", ""), ref.get("title", ""), snippet))
        citations = _dedupe_citations(citations)

        return RawProviderResponse(
            text=text,
            sources=tuple(SourceRef(url=c.url, title=c.title) for c in citations),
            citations=tuple(citations),
            model_version=data.get("model", self.model),
        )


# ---------------------------------------------------------------------------
# Anthropic Adapter
# ---------------------------------------------------------------------------


class AnthropicAdapter(BaseProviderAdapter):
    """Anthropic Messages API adapter with the server-side web search tool."""

    provider_id = "anthropic"
    display_name = "Anthropic"
    default_model = "claude-sonnet-4-20250514"
    api_url = "https://api.anthropic.com/v1/messages"
    api_version = "2023-06-01"

    def build_payload(self, prompt_text: str, use_web_search: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
            "system": build_system_prompt(use_web_search),
            "messages": [{"role": "user", "content": build_user_prompt(prompt_text, use_web_search)}],
        }
        if use_web_search:
            payload["tools"] = [
                {
                    "type": "web_search_20250305",
                    "name": "web_search",
                    "max_uses": 5,
                    "user_location": {"type": "approximate", "country": "US"},
                }
            ]
        return payload

    async def send(self, prompt_text: str, use_web_search: bool) -> RawProviderResponse:
        data = await self._post(
            self.api_url,
            self.build_payload(prompt_text, use_web_search),
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": self.api_version,
                "Content-Type": "application/json",
            },
        )

        text_parts: list[str] = []
        sources: list[SourceRef] = []
        citations: list[CitationRef] = []
        for block in data.get("content") or []:
            block_type = block.get("type")
            if block_type == "text":
                text_parts.append(block.get("text", ""))
                for cited in block.get("citations") or []:
                    if cited.get("url"):
                        citations.append(_citation(cited["url"], cited.get("title", ""), cited.get("cited_text", "")))
            elif block_type == "web_search_tool_result":
                results = block.get("content")
                # An error result carries a dict instead of a list
                if not isinstance(results, list):
                    continue
                for result in results:
                    if result.get("type") == "web_search_result" and result.get("url"):
                        sources.append(SourceRef(url=result["url"], title=result.get("title", "")))

        citations = _dedupe_citations(citations)
        if not citations:
            citations = _dedupe_citations([_citation(s.url, s.title) for s in sources])

        return RawProviderResponse(
            text="".join(text_parts),
            sources=tuple(sources),
            citations=tuple(citations),
            model_version=data.get("model", self.model),
        )


# ---------------------------------------------------------------------------
# Google Adapter (Gemini)
# ---------------------------------------------------------------------------


class GoogleAdapter(BaseProviderAdapter):
    """Google Gemini adapter with search grounding and SAFETY filter detection."""

    provider_id = "google"
    display_name = "Google"
    default_model = "gemini-2.5-flash"
    api_url_template = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    def build_payload(self, prompt_text: str, use_web_search: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": build_user_prompt(prompt_text, use_web_search)}]}],
            # System instruction is separate from contents in the Gemini API
            "systemInstruction": {"parts": [{"text": build_system_prompt(use_web_search)}]},
            "generationConfig": {"temperature": TEMPERATURE, "maxOutputTokens": MAX_TOKENS},
        }
        if use_web_search:
            payload["tools"] = [{"google_search": {}}]
        return payload

    async def send(self, prompt_text: str, use_web_search: bool) -> RawProviderResponse:
        data = await self._post(
            self.api_url_template.format(model=self.model),
            self.build_payload(prompt_text, use_web_search),
            headers={"Content-Type": "application/json"},
            params={"key": self.api_key},
        )

        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason", "")
            if block_reason:
                raise ProviderError(f"Google blocked the prompt: {block_reason}")
            raise ProviderError("Google returned no candidates")

        candidate = candidates[0]
        if candidate.get("finishReason") == "SAFETY":
            raise ProviderError("Google safety filter blocked the response")

        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts if "text" in p)

        sources: list[SourceRef] = []
        citations: list[CitationRef] = []
        grounding = candidate.get("groundingMetadata") or {}
        for chunk in grounding.get("groundingChunks") or []:
            web = chunk.get("web") or {}
            uri = web.get("uri", "")
            if not uri or is_search_proxy(uri):
                continue
            sources.append(SourceRef(url=uri, title=web.get("title", "")))
            citations.append(_citation(uri, web.get("title", "")))

        return RawProviderResponse(
            text=text,
            sources=tuple(sources),
            citations=tuple(_dedupe_citations(citations)),
            model_version=data.get("modelVersion", self.model),
        )


# ---------------------------------------------------------------------------
# Perplexity Adapter
# ---------------------------------------------------------------------------


class PerplexityAdapter(BaseProviderAdapter):
    """Perplexity adapter with native citation extraction. Always searches."""

    provider_id = "perplexity"
    display_name = "Perplexity"
    default_model = "sonar"
    api_url = "https://api.perplexity.ai/chat/completions"

    def build_payload(self, prompt_text: str, use_web_search: bool) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": build_system_prompt(use_web_search)},
                {"role": "user", "content": build_user_prompt(prompt_text, use_web_search)},
            ],
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
        }

    async def send(self, prompt_text: str, use_web_search: bool) -> RawProviderResponse:
        data = await self._post(
            self.api_url,
            self.build_payload(prompt_text, use_web_search),
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
        )

        choices = data.get("choices") or []
        if not choices:
            raise ProviderError("Perplexity returned no choices")
        text = (choices[0].get("message") or {}).get("content") or ""

        sources = [
            SourceRef(url=r["url"], title=r.get("title", ""), snippet=r.get("snippet", ""))
            for r in data.get("search_results") or []
            if isinstance(r, dict) and r.get("url")
        ]
        titles = {s.url: s.title for s in sources}
        # Perplexity native citations
        citations = [_citation(url, titles.get(url, "")) for url in data.get("citations") or [] if isinstance(url, str)]
        if not citations:
            citations = [_citation(s.url, s.title, s.snippet) for s in sources]

        return RawProviderResponse(
            text=text,
            sources=tuple(sources),
            citations=tuple(_dedupe_citations(citations)),
            model_version=data.get("model", self.model),
        )


# ---------------------------------------------------------------------------
# Adapter registry
# ---------------------------------------------------------------------------

ADAPTER_REGISTRY: dict[str, type[BaseProviderAdapter]] = {
    "openai": OpenAIAdapter,
    "anthropic": AnthropicAdapter,
    "google": GoogleAdapter,
    "perplexity": PerplexityAdapter,
}


def get_adapter(provider_id: str, api_key: str, **kwargs) -> BaseProviderAdapter:
    """Factory: get the appropriate adapter for a provider."""
    cls = ADAPTER_REGISTRY.get(provider_id)
    if cls is None:
        raise ProviderError(f"No adapter registered for provider: {provider_id}")
    return cls(api_key=api_key, **kwargs)


# ---------------------------------------------------------------------------
# Invoker
# ---------------------------------------------------------------------------


class ProviderInvoker:
    """Sends one prompt to one provider and enriches the answer.

    Enrichment: search-proxy citations dropped, citation mentioned
    companies filled in, brand / competitor signals derived from the text.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or default_settings
        self._transport = transport
        self._adapters: dict[str, BaseProviderAdapter] = {}

    def adapter_for(self, provider_id: str) -> BaseProviderAdapter:
        adapter = self._adapters.get(provider_id)
        if adapter is None:
            descriptor = PROVIDER_CONFIGS.get(provider_id)
            adapter = get_adapter(
                provider_id,
                api_key_for(provider_id, self.settings),
                model=descriptor.model if descriptor else "",
                timeout=self.settings.provider_timeout_seconds,
                transport=self._transport,
            )
            self._adapters[provider_id] = adapter
        return adapter

    async def invoke(
        self,
        prompt_text: str,
        provider_id: str,
        brand_name: str,
        competitor_names: Sequence[str],
        use_web_search: bool = True,
    ) -> RawProviderResponse:
        descriptor = PROVIDER_CONFIGS.get(provider_id)
        web_search = use_web_search and bool(descriptor and descriptor.capabilities.web_search)

        raw = await self.adapter_for(provider_id).send(prompt_text, web_search)

        companies = [brand_name, *competitor_names]
        citations = [c for c in raw.citations if not is_search_proxy(c.url)]
        citations = enhance_citations_with_mentions(citations, raw.text, companies)
        analysis = analyze_answer_text(raw.text, brand_name, competitor_names)

        logger.debug(
            "%s answered: %d chars, %d citations, brand_mentioned=%s",
            provider_id,
            len(raw.text),
            len(citations),
            analysis.brand_mentioned,
        )
        return dataclasses.replace(
            raw,
            citations=tuple(citations),
            brand_mentioned=analysis.brand_mentioned,
            brand_position=analysis.brand_position,
            sentiment=analysis.sentiment,
            confidence=analysis.confidence,
            competitors=tuple(analysis.competitors),
            rankings=tuple(analysis.rankings),
        )
