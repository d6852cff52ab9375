"""
LLM wire clients, one per vendor protocol.

Rationale:
- Each client is called as (config, system_prompt, user_prompt) -> raw text.
  Everything vendor specific (request shape, auth, reply shape) stays here.
- Vendor failures are mapped to the shared error types in `errors`, so nothing
  above this module sees SDK or HTTP details.
- Every call runs under a deadline (60s cloud, 30s local). No retries.
- The HTTP transport and the Gemini client factory are injectable for tests.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from .errors import (
    AuthError,
    ChartGenerationError,
    ConfigError,
    ParseError,
    RateLimitError,
    RequestTimeoutError,
    UpstreamError,
)
from .schemas import ChatMessage, ProviderConfig

logger = logging.getLogger(__name__)

CLOUD_TIMEOUT_SECONDS = 60.0
LOCAL_TIMEOUT_SECONDS = 30.0

OPENAI_BASE_URL = "https://api.openai.com/v1"
ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_MAX_TOKENS = 4096

# Signature shared by every wire client.
Completion = Callable[[ProviderConfig, Optional[str], str], Awaitable[str]]


def _timeout_error(label: str, seconds: float) -> RequestTimeoutError:
    return RequestTimeoutError(
        f"{label} request timed out after {seconds:g} seconds. Try a simpler query."
    )


async def with_deadline(call: Awaitable[Any], seconds: float, label: str) -> Any:
    """
    Await `call`, cancelling it once `seconds` have passed.
    The timer is released however the call ends.
    """
    try:
        return await asyncio.wait_for(call, timeout=seconds)
    except asyncio.TimeoutError:
        raise _timeout_error(label, seconds) from None


def raise_for_status(label: str, response: httpx.Response) -> None:
    """Map a non-2xx vendor response to AuthError / RateLimitError / UpstreamError."""
    if response.is_success:
        return
    status = response.status_code
    if status in (401, 403):
        raise AuthError(f"{label} rejected the API key. Please check your settings.")
    if status == 429:
        raise RateLimitError(f"{label} rate limit exceeded. Please try again later.")
    body = response.text
    logger.error(f"{label} API error {status}: {body[:1000]}")
    raise UpstreamError(f"{label} API error (HTTP {status})", status_code=status, body=body)


async def post_json(
    label: str,
    url: str,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Any:
    """POST `payload` and return the decoded JSON reply, with errors mapped."""
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(url, headers=headers, json=payload)
    except httpx.TimeoutException:
        raise _timeout_error(label, timeout) from None
    except httpx.TransportError as e:
        logger.error(f"Could not reach {label} at {url}: {type(e).__name__}: {e}")
        raise UpstreamError(f"Unable to connect to {label}. Check that it is reachable.", body=str(e)) from e

    raise_for_status(label, response)
    try:
        return response.json()
    except ValueError as e:
        raise ParseError(f"{label} returned a response that is not JSON") from e


@dataclass(frozen=True)
class OpenAIShapedEndpoint:
    """How to reach one chat-completions style service."""

    label: str
    timeout: float
    default_base_url: Optional[str] = None
    api_prefix: str = ""
    path: str = "/chat/completions"
    requires_api_key: bool = True
    send_auth: bool = True
    json_mode: bool = True


OPENAI_ENDPOINT = OpenAIShapedEndpoint(
    label="OpenAI",
    timeout=CLOUD_TIMEOUT_SECONDS,
    default_base_url=OPENAI_BASE_URL,
)

OPENAI_COMPATIBLE_ENDPOINT = OpenAIShapedEndpoint(
    label="OpenAI Compatible API",
    timeout=CLOUD_TIMEOUT_SECONDS,
    requires_api_key=False,
)

# Ollama serves the chat-completions protocol under /v1.
OLLAMA_ENDPOINT = OpenAIShapedEndpoint(
    label="Ollama",
    timeout=LOCAL_TIMEOUT_SECONDS,
    api_prefix="/v1",
    requires_api_key=False,
    send_auth=False,
)


class OpenAIShapedCompletion:
    """Chat-completions client shared by OpenAI, compatible endpoints and Ollama."""

    def __init__(self, endpoint: OpenAIShapedEndpoint, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.endpoint = endpoint
        self.transport = transport

    @property
    def label(self) -> str:
        return self.endpoint.label

    def url_for(self, config: ProviderConfig) -> str:
        base = self.endpoint.default_base_url or config.base_url
        if not base:
            raise ConfigError(f"Base URL is required for {self.label}")
        base = base.rstrip("/")
        prefix = self.endpoint.api_prefix
        if prefix and not base.endswith(prefix):
            base += prefix
        return base + self.endpoint.path

    def headers_for(self, config: ProviderConfig) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.endpoint.send_auth and config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        return headers

    @staticmethod
    def build_messages(system_prompt: Optional[str], user_prompt: str) -> List[ChatMessage]:
        messages = []
        if system_prompt:
            messages.append(ChatMessage(role="system", content=system_prompt))
        messages.append(ChatMessage(role="user", content=user_prompt))
        return messages

    def build_payload(self, config: ProviderConfig, messages: List[ChatMessage]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": config.model,
            "messages": [m.model_dump() for m in messages],
        }
        if self.endpoint.json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def __call__(self, config: ProviderConfig, system_prompt: Optional[str], user_prompt: str) -> str:
        if self.endpoint.requires_api_key and not config.api_key:
            raise ConfigError(f"{self.label} API key is required")
        url = self.url_for(config)
        payload = self.build_payload(config, self.build_messages(system_prompt, user_prompt))

        logger.info(f"Calling {self.label} model {config.model}")
        data = await with_deadline(
            post_json(self.label, url, self.headers_for(config), payload, self.endpoint.timeout, self.transport),
            self.endpoint.timeout,
            self.label,
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ParseError(f"{self.label} returned an unexpected response shape") from e
        if not content:
            raise ParseError(f"Empty response from {self.label}")
        return content


class AnthropicCompletion:
    """Messages API client. The system prompt is a top-level field, not a message."""

    label = "Anthropic"

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        url: str = ANTHROPIC_MESSAGES_URL,
        timeout: float = CLOUD_TIMEOUT_SECONDS,
    ):
        self.transport = transport
        self.url = url
        self.timeout = timeout

    def build_payload(self, config: ProviderConfig, system_prompt: Optional[str], user_prompt: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": config.model,
            "max_tokens": ANTHROPIC_MAX_TOKENS,
            "messages": [ChatMessage(role="user", content=user_prompt).model_dump()],
        }
        if system_prompt:
            payload["system"] = system_prompt
        return payload

    async def __call__(self, config: ProviderConfig, system_prompt: Optional[str], user_prompt: str) -> str:
        if not config.api_key:
            raise ConfigError("Anthropic API key is required")
        headers = {
            "x-api-key": config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

        logger.info(f"Calling {self.label} model {config.model}")
        data = await with_deadline(
            post_json(
                self.label,
                self.url,
                headers,
                self.build_payload(config, system_prompt, user_prompt),
                self.timeout,
                self.transport,
            ),
            self.timeout,
            self.label,
        )
        try:
            text_blocks = [b["text"] for b in data["content"] if b.get("type", "text") == "text"]
        except (KeyError, TypeError) as e:
            raise ParseError("Anthropic returned an unexpected response shape") from e
        if not text_blocks or not text_blocks[0]:
            raise ParseError("Empty response from Anthropic")
        return text_blocks[0]


def default_gemini_client(api_key: str, timeout: float) -> Any:
    """One client per call, so concurrent requests never share a key."""
    return genai.Client(
        api_key=api_key,
        http_options=genai_types.HttpOptions(timeout=int(timeout * 1000)),
    )


def _map_gemini_error(e: genai_errors.APIError) -> ChartGenerationError:
    code = getattr(e, "code", None)
    message = str(e)
    # Gemini answers 400 INVALID_ARGUMENT for a bad key
    if code in (401, 403) or (code == 400 and "API key" in message):
        return AuthError("Invalid Google API key. Please check your settings.")
    if code == 429:
        return RateLimitError("Google API rate limit exceeded. Please try again later.")
    logger.error(f"Google Gemini API error {code}: {message[:1000]}")
    return UpstreamError(f"Google Gemini API error (HTTP {code})", status_code=code, body=message)


class GeminiCompletion:
    """
    Gemini via the google-genai SDK. There is no system role in the request
    used here: system instructions are prepended to the single user block.
    """

    label = "Google Gemini"

    def __init__(
        self,
        client_factory: Optional[Callable[[str, float], Any]] = None,
        timeout: float = CLOUD_TIMEOUT_SECONDS,
    ):
        self.client_factory = client_factory or default_gemini_client
        self.timeout = timeout

    @staticmethod
    def build_contents(system_prompt: Optional[str], user_prompt: str) -> List[genai_types.Content]:
        text = f"{system_prompt}\n\nUser Query: {user_prompt}" if system_prompt else user_prompt
        return [genai_types.Content(role="user", parts=[genai_types.Part(text=text)])]

    async def __call__(self, config: ProviderConfig, system_prompt: Optional[str], user_prompt: str) -> str:
        if not config.api_key:
            raise ConfigError("Google API key is required")
        client = self.client_factory(config.api_key, self.timeout)

        logger.info(f"Calling {self.label} model {config.model}")
        try:
            response = await with_deadline(
                client.aio.models.generate_content(
                    model=config.model,
                    contents=self.build_contents(system_prompt, user_prompt),
                    config=genai_types.GenerateContentConfig(response_mime_type="application/json"),
                ),
                self.timeout,
                self.label,
            )
        except genai_errors.APIError as e:
            raise _map_gemini_error(e) from e
        except httpx.TimeoutException:
            raise _timeout_error(self.label, self.timeout) from None
        except httpx.TransportError as e:
            logger.error(f"Could not reach {self.label}: {type(e).__name__}: {e}")
            raise UpstreamError(f"Unable to connect to {self.label}.", body=str(e)) from e
        finally:
            # each call owns its client, so its connection pool goes with it
            await client.aio.aclose()

        text = getattr(response, "text", None)
        if not text:
            raise ParseError("Empty response from Google Gemini")
        return text
