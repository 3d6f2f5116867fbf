"""
Constrained text generation with ordered provider fallback.

Stages hand LLMService a system prompt and a user prompt; the service tries
each configured provider in order (Anthropic first, OpenAI second by default)
and returns the first successful completion. Whether a failure should advance
to the next provider is decided by a single predicate, so the fallback policy
lives in one place instead of inside each provider.
"""

import asyncio
import json
import logging
import random
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Optional

import anthropic
import httpx
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from rexai.config import settings

logger = logging.getLogger(__name__)

JSON_ONLY_INSTRUCTION = "\n\nRespond ONLY with valid JSON, no markdown code blocks or extra text."

_CONNECTION_ERRORS = (anthropic.APIConnectionError, openai.APIConnectionError, httpx.TransportError)


def _strip_markdown_json(text: str) -> str:
    """Strip markdown code block wrappers from JSON text."""
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()
    return text


def _fix_trailing_commas(text: str) -> str:
    """Fix trailing commas in JSON (common LLM error)."""
    text = re.sub(r",\s*}", "}", text)
    text = re.sub(r",\s*]", "]", text)
    return text


def parse_json_response(text: str) -> Any:
    """
    Decode a model response into JSON.

    Raises:
        LLMResponseError: If the text is empty or not valid JSON after cleanup
    """
    if not text or not text.strip():
        raise LLMResponseError("Empty response from text generation", response_content=text or "")

    cleaned = _fix_trailing_commas(_strip_markdown_json(text.strip()))
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise LLMResponseError(
            f"Response is not valid JSON: {e.msg}", response_content=text, original_exception=e
        ) from e


def retry_on_connection_error(max_attempts=3, base_delay=1.0):
    """
    Retry decorator for provider calls that may fail due to transient network issues.

    Args:
        max_attempts: Maximum retry attempts (default 3)
        base_delay: Base delay in seconds for exponential backoff (default 1.0)
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except _CONNECTION_ERRORS as e:
                    last_exception = e

                    if attempt < max_attempts - 1:
                        # Exponential backoff with jitter
                        delay = base_delay * (2**attempt)
                        jitter = delay * 0.1 * (2 * random.random() - 1)  # ±10% random variance
                        sleep_time = delay + jitter

                        logger.warning(
                            "Connection error on attempt %d/%d, retrying in %.1fs...",
                            attempt + 1,
                            max_attempts,
                            sleep_time,
                        )
                        await asyncio.sleep(sleep_time)
                    else:
                        logger.error("All %d attempts failed", max_attempts)

            raise ServiceUnavailableError(
                "Text generation service temporarily unavailable after retries"
            ) from last_exception

        return wrapper

    return decorator


@dataclass
class LLMCompletion:
    text: str
    provider: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    duration_ms: int = 0


@dataclass
class LLMUsageRecord:
    """One provider attempt, successful or not, for usage logging."""

    purpose: str
    provider: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    success: bool = True
    error: Optional[str] = None


# =============================================================================
# PROVIDERS
# =============================================================================


class LLMProvider(ABC):
    """A text-generation backend. Implementations translate SDK errors into house exceptions."""

    name: str = ""
    model: str = ""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool,
    ) -> LLMCompletion:
        ...


class AnthropicProvider(LLMProvider):
    name = "anthropic"

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self.api_key = api_key if api_key is not None else settings.anthropic_api_key
        self.model = model or settings.anthropic_model
        self._client: AsyncAnthropic | None = None

    def _get_client(self) -> AsyncAnthropic:
        if not self.api_key:
            raise ProviderConfigurationError("Anthropic API key is not configured")
        if self._client is None:
            timeout = httpx.Timeout(timeout=settings.llm_timeout, connect=settings.llm_connect_timeout)
            self._client = AsyncAnthropic(api_key=self.api_key, timeout=timeout)
        return self._client

    @retry_on_connection_error(max_attempts=3, base_delay=1.0)
    async def _create(self, **params):
        return await self._get_client().messages.create(**params)

    async def complete(self, system_prompt, user_prompt, temperature, max_tokens, json_mode):
        system = system_prompt + JSON_ONLY_INSTRUCTION if json_mode else system_prompt
        started = time.monotonic()
        try:
            response = await self._create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.RateLimitError as e:
            raise RateLimitError("Anthropic rate limit exceeded") from e
        except anthropic.NotFoundError as e:
            raise ModelNotFoundError(f"Anthropic model not found: {self.model}") from e
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise ProviderConfigurationError("Anthropic credentials rejected") from e
        except anthropic.APIStatusError as e:
            if e.status_code >= 500:
                raise ServiceUnavailableError("Anthropic service error") from e
            raise ValueError(f"Request error: {e.message}") from e

        # Join text blocks; tool or thinking blocks carry no text attribute
        text = "".join(block.text for block in response.content if hasattr(block, "text"))
        if not text.strip():
            raise ServiceUnavailableError("Anthropic returned no text content")

        return LLMCompletion(
            text=text,
            provider=self.name,
            model=self.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            duration_ms=int((time.monotonic() - started) * 1000),
        )


class OpenAIProvider(LLMProvider):
    name = "openai"

    def __init__(self, api_key: str | None = None, model: str | None = None, base_url: str | None = None):
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.model = model or settings.openai_model
        self.base_url = base_url or settings.openai_base_url
        self._client: AsyncOpenAI | None = None

    def _get_client(self) -> AsyncOpenAI:
        if not self.api_key:
            raise ProviderConfigurationError("OpenAI API key is not configured")
        if self._client is None:
            timeout = httpx.Timeout(timeout=settings.llm_timeout, connect=settings.llm_connect_timeout)
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url, timeout=timeout)
        return self._client

    @retry_on_connection_error(max_attempts=3, base_delay=1.0)
    async def _create(self, **params):
        return await self._get_client().chat.completions.create(**params)

    async def complete(self, system_prompt, user_prompt, temperature, max_tokens, json_mode):
        params = {
            "model": self.model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        if json_mode:
            params["response_format"] = {"type": "json_object"}

        started = time.monotonic()
        try:
            response = await self._create(**params)
        except openai.RateLimitError as e:
            raise RateLimitError("OpenAI rate limit exceeded") from e
        except openai.NotFoundError as e:
            raise ModelNotFoundError(f"OpenAI model not found: {self.model}") from e
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise ProviderConfigurationError("OpenAI credentials rejected") from e
        except openai.APIStatusError as e:
            if e.status_code >= 500:
                raise ServiceUnavailableError("OpenAI service error") from e
            raise ValueError(f"Request error: {e.message}") from e

        text = response.choices[0].message.content if response.choices else None
        if not text or not text.strip():
            raise ServiceUnavailableError("OpenAI returned no text content")

        usage = response.usage
        return LLMCompletion(
            text=text,
            provider=self.name,
            model=self.model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            duration_ms=int((time.monotonic() - started) * 1000),
        )


PROVIDER_REGISTRY: dict[str, Callable[[], LLMProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
}


def build_providers(order: list[str]) -> list[LLMProvider]:
    """Instantiate providers by name, preserving the configured order."""
    providers = []
    for name in order:
        factory = PROVIDER_REGISTRY.get(name.strip().lower())
        if factory is None:
            raise ValueError(f"Unknown text generation provider: {name}")
        providers.append(factory())
    return providers


def should_try_next_provider(error: Exception) -> bool:
    """Fallback predicate: transient, quota and configuration failures advance the chain."""
    return isinstance(
        error, (ServiceUnavailableError, RateLimitError, ModelNotFoundError, ProviderConfigurationError)
    )


# =============================================================================
# SERVICE
# =============================================================================


class LLMService:
    """Ordered provider chain with JSON decoding and a single corrective reprompt."""

    def __init__(
        self,
        providers: list[LLMProvider] | None = None,
        should_fall_back: Callable[[Exception], bool] = should_try_next_provider,
    ):
        self.providers = providers if providers is not None else build_providers(settings.llm_provider_order)
        self.should_fall_back = should_fall_back
        self.usage: list[LLMUsageRecord] = []

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.3,
        max_tokens: int | None = None,
        json_mode: bool = True,
        purpose: str = "generation",
    ) -> str:
        """
        Return the first successful completion across the provider chain.

        Raises:
            AllProvidersFailedError: Every provider failed with a fall-through error
            Exception: The first error the fallback predicate rejects
        """
        max_tokens = max_tokens or settings.llm_max_tokens
        errors: list[Exception] = []

        for provider in self.providers:
            try:
                completion = await provider.complete(
                    system_prompt, user_prompt, temperature, max_tokens, json_mode
                )
            except Exception as e:
                self.usage.append(
                    LLMUsageRecord(purpose, provider.name, provider.model, success=False, error=str(e))
                )
                if not self.should_fall_back(e):
                    raise
                logger.warning("Provider %s failed for %s (%s), trying next", provider.name, purpose, e)
                errors.append(e)
                continue

            self.usage.append(
                LLMUsageRecord(
                    purpose,
                    completion.provider,
                    completion.model,
                    input_tokens=completion.input_tokens,
                    output_tokens=completion.output_tokens,
                )
            )
            logger.info(
                "%s completed by %s/%s in %dms", purpose, completion.provider, completion.model, completion.duration_ms
            )
            return completion.text

        raise AllProvidersFailedError(errors)

    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.3,
        max_tokens: int | None = None,
        purpose: str = "generation",
        max_retries: int = 1,
    ) -> Any:
        """
        Generate and decode a JSON response.

        On a decode failure the model is reprompted with the error, up to
        max_retries times, before LLMResponseError propagates.
        """
        prompt = user_prompt
        for attempt in range(1 + max_retries):
            text = await self.generate(
                system_prompt,
                prompt,
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=True,
                purpose=purpose,
            )
            try:
                return parse_json_response(text)
            except LLMResponseError as e:
                logger.warning(
                    "Invalid JSON for %s (attempt %d/%d): %s", purpose, attempt + 1, 1 + max_retries, e
                )
                if attempt >= max_retries:
                    raise
                prompt = (
                    f"{user_prompt}\n\nYour previous response was not valid JSON ({e}). "
                    "Return only the JSON object described above."
                )

        raise LLMResponseError("Response is not valid JSON", response_content="")

    def models_used(self) -> Optional[str]:
        """Comma-separated provider/model pairs that produced successful completions."""
        seen = []
        for record in self.usage:
            label = f"{record.provider}/{record.model}"
            if record.success and label not in seen:
                seen.append(label)
        return ",".join(seen) or None

    def reset_usage(self) -> list[LLMUsageRecord]:
        records, self.usage = self.usage, []
        return records


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================


class ServiceUnavailableError(Exception):
    """Text generation provider is temporarily unavailable."""

    pass


class RateLimitError(Exception):
    """Rate limit exceeded."""

    pass


class ModelNotFoundError(Exception):
    """Configured model does not exist for this provider."""

    pass


class ProviderConfigurationError(Exception):
    """Provider is missing credentials or rejected them."""

    pass


class AllProvidersFailedError(ServiceUnavailableError):
    """Every provider in the chain failed with a fall-through error."""

    def __init__(self, errors: list[Exception]):
        self.errors = errors
        summary = "; ".join(f"{type(e).__name__}: {e}" for e in errors) or "no providers configured"
        super().__init__(f"All text generation providers failed ({summary})")


class LLMResponseError(ValueError):
    """Model response could not be decoded into the expected JSON shape."""

    def __init__(self, message: str, response_content: str = "", original_exception: Exception | None = None):
        super().__init__(message)
        self.response_content = response_content
        self.original_exception = original_exception
