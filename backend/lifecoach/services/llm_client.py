"""Single chat-completion call against the OpenAI-compatible provider."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

import openai

from lifecoach.core.config import settings
from lifecoach.core.errors import AuthError, NetworkError, ProviderRequestError, ProviderServerError, RateLimited

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class Usage:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class Completion:
    text: str
    usage: Usage


def build_client(api_key: str) -> openai.OpenAI:
    return openai.OpenAI(
        api_key=api_key,
        base_url=settings.provider_base_url,
        timeout=settings.provider_timeout_seconds,
        max_retries=0,
    )


def retry_after_seconds(exc: openai.APIStatusError) -> Optional[float]:
    headers = getattr(getattr(exc, "response", None), "headers", None) or {}
    value = headers.get("retry-after")
    if value is None:
        millis = headers.get("retry-after-ms")
        if millis is None:
            return None
        try:
            return float(millis) / 1000
        except (TypeError, ValueError):
            return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def estimate_tokens(text: str) -> int:
    return max(1, len(text) // CHARS_PER_TOKEN) if text else 0


class ProviderClient:
    """Issue one completion per call; retries belong to the gateway.

    SDK exceptions are translated into the ``ProviderError`` family so the
    gateway can report each outcome to the credential pool.
    """

    def __init__(
        self,
        client_factory: Callable[[str], Any] = build_client,
        *,
        model: str | None = None,
        temperature: float | None = None,
    ):
        self._client_factory = client_factory
        self.model = model or settings.provider_model
        self.temperature = settings.provider_temperature if temperature is None else temperature
        self._clients: Dict[str, Any] = {}
        self._lock = Lock()

    def _client_for(self, secret: str) -> Any:
        with self._lock:
            client = self._clients.get(secret)
            if client is None:
                client = self._client_factory(secret)
                self._clients[secret] = client
            return client

    def complete(self, secret: str, messages: List[Dict[str, str]], max_tokens: int) -> Completion:
        client = self._client_for(secret)
        try:
            completion = client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=max_tokens,
            )
        except openai.RateLimitError as exc:
            raise RateLimited(str(exc), retry_after=retry_after_seconds(exc)) from exc
        except (openai.AuthenticationError, openai.PermissionDeniedError) as exc:
            raise AuthError(str(exc), status_code=exc.status_code) from exc
        except openai.InternalServerError as exc:
            raise ProviderServerError(str(exc), status_code=exc.status_code) from exc
        except openai.APIStatusError as exc:
            if exc.status_code >= 500:
                raise ProviderServerError(str(exc), status_code=exc.status_code) from exc
            raise ProviderRequestError(str(exc), status_code=exc.status_code) from exc
        except (openai.APITimeoutError, openai.APIConnectionError) as exc:
            raise NetworkError(str(exc)) from exc

        text = ""
        if completion.choices:
            text = completion.choices[0].message.content or ""
        return Completion(text=text, usage=self._usage(completion, messages, text))

    @staticmethod
    def _usage(completion: Any, messages: List[Dict[str, str]], text: str) -> Usage:
        usage = getattr(completion, "usage", None)
        prompt = getattr(usage, "prompt_tokens", None)
        generated = getattr(usage, "completion_tokens", None)
        if prompt is None or generated is None:
            # Some compatible providers omit usage; fall back to a character estimate.
            prompt = sum(estimate_tokens(message.get("content", "")) for message in messages)
            generated = estimate_tokens(text)
            logger.debug("Provider omitted usage; estimated %s+%s tokens", prompt, generated)
        return Usage(prompt_tokens=int(prompt), completion_tokens=int(generated), total_tokens=int(prompt) + int(generated))
