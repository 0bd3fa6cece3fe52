"""LiteLLM token source for live chat rendering.

Streams text deltas from any provider LiteLLM supports. Transient
failures while opening the stream are retried with exponential backoff;
authentication and bad-request errors are raised immediately.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator

import litellm

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from livellm.schemas.config import ModelConfig
from livellm.schemas.protocol import UsageInfo

logger = logging.getLogger(__name__)

# Max retries for transient failures
_MAX_RETRIES = 3
_BASE_BACKOFF = 1.0  # seconds

# Instructions that teach the model the component fence syntax
COMPONENT_SYSTEM_PROMPT = """\
You can embed interactive components in your markdown answers.
Write a fenced block whose info string is livellm:<type> and whose body
is a single JSON object, for example:

```livellm:alert
{"type": "warning", "text": "Back up your data first."}
```

Available components:
- badge: {"text": str, "color": green|red|blue|yellow|gray|purple}
- alert: {"type": info|success|warning|error, "text": str}
- progress: {"value": number, "max": number, "label": str}
- choice: {"question": str, "options": [str, ...]}
- confirm: {"text": str, "confirmLabel": str, "cancelLabel": str}
"""


def short_error_reason(error: Exception) -> str:
    """Map a LiteLLM error to a short, user-friendly reason."""
    error_str = str(error).lower()
    if "rate" in error_str or "429" in error_str:
        return "rate limit"
    if "timeout" in error_str or isinstance(error, TimeoutError):
        return "timeout"
    if "503" in error_str or "unavailable" in error_str:
        return "service unavailable"
    if "connection" in error_str:
        return "connection error"
    return str(error)[:80]


class LiteLLMTokenSource:
    """Async iterator of completion deltas for one configured model."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._api_key = os.environ.get(config.api_key_env, "") if config.api_key_env else ""
        self.usage: UsageInfo | None = None

    @property
    def model_id(self) -> str:
        return self._config.model

    @property
    def display_name(self) -> str:
        return self._config.display_name or self._config.model

    def _build_kwargs(self, messages: list[dict[str, str]]) -> dict:
        kwargs: dict = {
            "model": self._config.model,
            "messages": messages,
            "timeout": float(self._config.timeout),
            "stream": True,
        }
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base
        return kwargs

    async def stream(
        self,
        messages: list[dict[str, str]],
        system: str = COMPONENT_SYSTEM_PROMPT,
    ) -> AsyncIterator[str]:
        """Yield text deltas for a chat completion.

        Raises:
            TimeoutError: If opening the stream times out after all retries.
            RuntimeError: On auth/bad-request errors or exhausted retries.
        """
        full_messages = [{"role": "system", "content": system}, *messages] if system else messages
        response = await self._open_with_retry(self._build_kwargs(full_messages))

        last_chunk = None
        async for chunk in response:
            last_chunk = chunk
            if chunk.choices and chunk.choices[0].delta:
                delta = chunk.choices[0].delta.content or ""
                if delta:
                    yield delta

        usage = getattr(last_chunk, "usage", None) if last_chunk else None
        if usage:
            self.usage = UsageInfo(
                prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
                total_tokens=getattr(usage, "total_tokens", 0) or 0,
            )

    async def _open_with_retry(self, kwargs: dict):
        """Call litellm.acompletion(stream=True), retrying transient failures."""
        last_error: Exception | None = None

        for attempt in range(_MAX_RETRIES):
            try:
                return await litellm.acompletion(**kwargs)
            except TimeoutError:
                last_error = TimeoutError(
                    f"Streaming call timed out after {kwargs.get('timeout')}s "
                    f"(attempt {attempt + 1}/{_MAX_RETRIES})"
                )
            except litellm.AuthenticationError:
                raise RuntimeError(
                    f"Authentication failed for {self._config.model}. "
                    f"Check that {self._config.api_key_env} is set correctly."
                ) from None
            except litellm.BadRequestError as e:
                raise RuntimeError(f"Bad request to {self._config.model}: {e}") from e
            except (
                litellm.RateLimitError,
                litellm.ServiceUnavailableError,
                litellm.InternalServerError,
                litellm.APIConnectionError,
            ) as e:
                last_error = e

            if attempt < _MAX_RETRIES - 1:
                backoff = _BASE_BACKOFF * (2**attempt)
                logger.warning(
                    "Streaming retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1, _MAX_RETRIES, self.display_name,
                    short_error_reason(last_error), backoff,
                )
                await asyncio.sleep(backoff)

        if isinstance(last_error, TimeoutError):
            raise last_error
        raise RuntimeError(
            f"Streaming call to {self._config.model} failed after "
            f"{_MAX_RETRIES} retries: {last_error}"
        ) from last_error
