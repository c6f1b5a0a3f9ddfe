"""LLM client wrapper around litellm.

Sends documentation prompts to a chat-completion model, retrying rate
limits and server errors with exponential backoff, and turns transport
failures into CompletionError with a stable, human-readable message.
"""

import asyncio
import time
from typing import Awaitable, Callable

import click
import litellm
from litellm import acompletion

from express_openapi.generator.prompt import (
    build_multiple_routes_prompt,
    build_route_prompt,
    extract_yaml,
    validate_response,
)
from express_openapi.parser.base import RouteRecord

DEFAULT_MODEL = "openrouter/google/gemma-3-12b-it:free"
DEFAULT_TIMEOUT = 60.0

TEMPERATURE = 0.2
SINGLE_MAX_TOKENS = 2000
BATCH_MAX_TOKENS = 4000
MAX_RETRIES = 3

NETWORK_ERROR = "Network error. Please check your internet connection."
EMPTY_RESPONSE = "Empty response from AI model"

PREAMBLE = (
    "You are an expert API documentation assistant.\n"
    "Generate clear, accurate OpenAPI 3.1 documentation."
)


class CompletionError(Exception):
    """A completion request failed; ``str(error)`` is safe to show users."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _status_code(error: Exception) -> int | None:
    """HTTP status of a failure that got a response, else None."""
    # litellm reports connection failures and timeouts with synthetic status codes.
    if isinstance(error, (litellm.Timeout, litellm.APIConnectionError)):
        return None
    status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


def is_retryable(error: Exception) -> bool:
    status = _status_code(error)
    return status is not None and (status == 429 or status >= 500)


def to_completion_error(error: Exception) -> CompletionError:
    """Map a transport failure to a CompletionError."""
    if isinstance(error, CompletionError):
        return error
    if isinstance(error, (litellm.Timeout, litellm.APIConnectionError)):
        return CompletionError(NETWORK_ERROR)

    detail = getattr(error, "message", None) or str(error)
    status = _status_code(error)
    if status is None:
        return CompletionError(f"Unexpected error: {detail}")
    if status == 400:
        return CompletionError(f"Bad Request: {detail}", status)
    if status == 401:
        return CompletionError("Invalid API key. Please check your API key.", status)
    if status == 429:
        return CompletionError("Rate limit exceeded. Please try again later.", status)
    if status in (500, 502, 503, 504):
        return CompletionError(f"Completion service server error ({status}). Please try again.", status)
    return CompletionError(f"API error: {detail}", status)


def _first_content(response) -> str | None:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None)


class LlmClient:
    """Async wrapper for documentation calls via litellm."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        api_base: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_key = api_key
        self.model = model or DEFAULT_MODEL
        self.api_base = api_base
        self.timeout = timeout
        self._sleep = sleep

    async def generate_documentation(self, route: RouteRecord, code_snippet: str | None = None) -> str:
        """Return the YAML path fragment the model wrote for one route."""
        click.echo(f"  Generating documentation for {route.method} {route.path}")
        prompt = build_route_prompt(route, code_snippet)
        return await self._generate(prompt, SINGLE_MAX_TOKENS)

    async def generate_batch_documentation(self, routes: list[RouteRecord]) -> str:
        click.echo(f"  Generating documentation for {len(routes)} routes")
        prompt = build_multiple_routes_prompt(routes)
        return await self._generate(prompt, BATCH_MAX_TOKENS)

    async def test_connection(self) -> bool:
        """True if the model answers a trivial prompt. Never raises."""
        try:
            response = await acompletion(
                **self._request_args([{"role": "user", "content": "Say hello in one word"}])
            )
            return bool(_first_content(response))
        except Exception as e:
            click.echo(f"  Connection test failed: {to_completion_error(e)}", err=True)
            return False

    async def _generate(self, prompt: str, max_tokens: int) -> str:
        started = time.monotonic()
        messages = [{"role": "user", "content": f"{PREAMBLE}\n\n{prompt}"}]
        try:
            response = await self._send_with_retry(
                self._request_args(messages, temperature=TEMPERATURE, max_tokens=max_tokens)
            )
            content = _first_content(response)
        except Exception as e:
            raise to_completion_error(e) from e

        if not content:
            raise CompletionError(EMPTY_RESPONSE)

        click.echo(f"  Documentation generated in {time.monotonic() - started:.1f}s")
        yaml_text = extract_yaml(content)
        check = validate_response(yaml_text)
        if not check.is_valid:
            click.echo(f"  AI response validation warnings: {'; '.join(check.errors)}", err=True)
        return yaml_text

    async def _send_with_retry(self, request: dict):
        attempt = 0
        while True:
            try:
                return await acompletion(**request)
            except Exception as e:
                if attempt >= MAX_RETRIES or not is_retryable(e):
                    raise
                delay = 2 ** attempt
                attempt += 1
                click.echo(f"  Request failed, retrying in {delay}s ({attempt}/{MAX_RETRIES})...", err=True)
                await self._sleep(delay)

    def _request_args(self, messages: list[dict], **params) -> dict:
        request = {
            "model": self.model,
            "messages": messages,
            "timeout": self.timeout,
            "num_retries": 0,
            **params,
        }
        if self.api_key:
            request["api_key"] = self.api_key
        if self.api_base:
            request["api_base"] = self.api_base
        return request
