"""
Provider adapters and the provider registry.

Rationale:
- Every provider does the same thing around its wire call: cap and render the
  dataset into the prompt, call the model, extract JSON, validate the chart.
  That flow lives once in ProviderAdapter; the vendor part is a composed
  completion from `llm_client`.
- Suggestions are a soft extra. They never raise; any failure yields [].
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from .errors import InputError, ParseError, UnsupportedProviderError
from .extractor import extract_json
from .llm_client import (
    OLLAMA_ENDPOINT,
    OPENAI_COMPATIBLE_ENDPOINT,
    OPENAI_ENDPOINT,
    AnthropicCompletion,
    Completion,
    GeminiCompletion,
    OpenAIShapedCompletion,
)
from .prompting import build_suggestion_prompt, build_system_prompt
from .schemas import ChartSpec, DynamicData, Provider, ProviderConfig, safe_validate

logger = logging.getLogger(__name__)


async def parse_chart(raw_text: str) -> ChartSpec:
    """Raw model text -> validated ChartSpec, or ParseError."""
    parsed = extract_json(raw_text)
    if isinstance(parsed, dict) and isinstance(parsed.get("type"), str):
        parsed["type"] = parsed["type"].upper()

    result = await safe_validate(ChartSpec, parsed)
    if not result.success:
        logger.warning(f"Model returned an invalid chart: {result.error}")
        raise ParseError(f"Invalid chart structure: {result.error}")
    return result.data


def parse_suggestions(raw_text: str) -> List[str]:
    parsed = extract_json(raw_text)
    suggestions = parsed.get("suggestions") if isinstance(parsed, dict) else None
    if not isinstance(suggestions, list):
        return []
    return [s.strip() for s in suggestions if isinstance(s, str) and s.strip()]


class ProviderAdapter:
    """Uniform generate / generate_suggestions over one vendor completion."""

    def __init__(self, label: str, completion: Completion):
        self.label = label
        self.completion = completion

    async def generate(
        self,
        prompt: str,
        system_prompt_template: str,
        config: ProviderConfig,
        dynamic_data: Optional[DynamicData] = None,
    ) -> ChartSpec:
        if dynamic_data is None:
            raise InputError("Please upload a dataset first")

        system_prompt = build_system_prompt(system_prompt_template, dynamic_data)
        raw = await self.completion(config, system_prompt, prompt)
        logger.debug(f"{self.label} raw response: {raw[:1000]}")
        return await parse_chart(raw)

    async def generate_suggestions(
        self,
        system_prompt_template: str,
        config: ProviderConfig,
        dynamic_data: DynamicData,
    ) -> List[str]:
        # The chart template is not used: suggestions have their own fixed prompt.
        try:
            if dynamic_data is None:
                raise InputError("Please upload a dataset first")
            raw = await self.completion(config, None, build_suggestion_prompt(dynamic_data))
            return parse_suggestions(raw)
        except Exception as e:
            logger.warning(f"{self.label} suggestion generation failed: {type(e).__name__}: {e}")
            return []


AdapterFactory = Callable[[Optional[httpx.AsyncBaseTransport]], ProviderAdapter]


def _gemini(transport: Optional[httpx.AsyncBaseTransport] = None) -> ProviderAdapter:
    # the SDK owns its own transport
    return ProviderAdapter("Google Gemini", GeminiCompletion())


def _openai(transport: Optional[httpx.AsyncBaseTransport] = None) -> ProviderAdapter:
    return ProviderAdapter("OpenAI", OpenAIShapedCompletion(OPENAI_ENDPOINT, transport))


def _openai_compatible(transport: Optional[httpx.AsyncBaseTransport] = None) -> ProviderAdapter:
    return ProviderAdapter("OpenAI Compatible API", OpenAIShapedCompletion(OPENAI_COMPATIBLE_ENDPOINT, transport))


def _ollama(transport: Optional[httpx.AsyncBaseTransport] = None) -> ProviderAdapter:
    return ProviderAdapter("Ollama", OpenAIShapedCompletion(OLLAMA_ENDPOINT, transport))


def _anthropic(transport: Optional[httpx.AsyncBaseTransport] = None) -> ProviderAdapter:
    return ProviderAdapter("Anthropic", AnthropicCompletion(transport))


ADAPTER_FACTORIES: Dict[Provider, AdapterFactory] = {
    Provider.GOOGLE: _gemini,
    Provider.OPENAI: _openai,
    Provider.OPENAI_COMPATIBLE: _openai_compatible,
    Provider.ANTHROPIC: _anthropic,
    Provider.OLLAMA: _ollama,
}


def build_adapter(
    provider: Any,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    registry: Optional[Dict[Provider, AdapterFactory]] = None,
) -> ProviderAdapter:
    factory = (ADAPTER_FACTORIES if registry is None else registry).get(provider)
    if factory is None:
        raise UnsupportedProviderError(f"Provider {provider} is not supported")
    return factory(transport)
