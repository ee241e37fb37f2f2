"""
Generation fallback router.

Drives an ordered sequence of image-generation attempts across the configured
providers and, within each provider, across its path templates. The router is
a finite state machine over ``(provider_index, path_index)``:

* a successful attempt ends the request (first success wins);
* a failed attempt moves to the provider's next path, if any;
* after a provider's last path the router moves to the next provider only if
  one of the provider's attempts failed for a reason unrelated to the prompt
  (bad credentials, timeout, DNS, refused connection, or a 2xx without an
  image); otherwise the request is exhausted.

Attempts run strictly one at a time, each under its own deadline. Cancelling
the calling task cancels the in-flight attempt and stops the sequence.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import httpx

from chimera.utils.logging import get_logger

from . import error_classifier
from .exceptions import FALLBACK_TRIGGERS, ErrorKind, NormalizationError
from .models import (
    AttemptFailure,
    AttemptSuccess,
    GenerationAttempt,
    GenerationExhausted,
    GenerationOutcome,
    GenerationSuccess,
    ProviderEndpoint,
    public_url,
)
from .normalizer import ResponseNormalizer

logger = get_logger(__name__)

DEFAULT_ATTEMPT_TIMEOUT = 60.0


@dataclass(frozen=True)
class RouterState:
    """Position of the router in the provider/path sequence."""

    provider_index: int
    path_index: int


def _safe_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return text


def is_fallback_trigger(attempt: GenerationAttempt) -> bool:
    """True if the attempt failed for a reason unrelated to the prompt."""
    outcome = attempt.outcome
    if not isinstance(outcome, AttemptFailure):
        return False
    return outcome.kind in FALLBACK_TRIGGERS or outcome.malformed_payload


class GenerationFallbackRouter:
    """Tries generation providers and their paths in priority order."""

    def __init__(
        self,
        providers: Sequence[ProviderEndpoint],
        normalizer: Optional[ResponseNormalizer] = None,
        client: Optional[httpx.AsyncClient] = None,
        attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT,
    ):
        self.providers = tuple(providers)
        self.normalizer = normalizer or ResponseNormalizer()
        self.attempt_timeout = attempt_timeout
        self._client = client or httpx.AsyncClient(timeout=attempt_timeout)
        self._owns_client = client is None

        logger.info(
            "Generation router initialized with providers: "
            + ", ".join(p.provider_id for p in self.providers)
        )

    @property
    def total_paths(self) -> int:
        return sum(len(p.paths) for p in self.providers)

    async def generate(self, prompt: str, size: str) -> GenerationOutcome:
        """
        Generate one image, falling back across providers as needed.

        Args:
            prompt: Opaque prompt text
            size: Image size such as "1024x1024"

        Returns:
            GenerationSuccess with the base64 image, or GenerationExhausted
            with every attempt made and the kind of the last failure
        """
        if not prompt:
            raise ValueError("Prompt must not be empty")

        attempts: List[GenerationAttempt] = []
        provider_attempts: List[GenerationAttempt] = []
        state: Optional[RouterState] = RouterState(0, 0) if self.providers else None

        while state is not None:
            provider = self.providers[state.provider_index]
            attempt = await self._attempt(
                provider, provider.paths[state.path_index], prompt, size
            )
            attempts.append(attempt)
            provider_attempts.append(attempt)

            if isinstance(attempt.outcome, AttemptSuccess):
                logger.info(
                    f"Generation succeeded via {provider.provider_id} "
                    f"after {len(attempts)} attempt(s)"
                )
                return GenerationSuccess(
                    image_b64=attempt.outcome.image_b64, attempts=tuple(attempts)
                )

            next_state = self._transition(state, provider_attempts)
            if next_state is not None and next_state.provider_index != state.provider_index:
                logger.info(
                    f"Falling back from {provider.provider_id} to "
                    f"{self.providers[next_state.provider_index].provider_id}"
                )
                provider_attempts = []
            state = next_state

        last_kind = attempts[-1].error_kind if attempts else None
        logger.error(
            f"Generation exhausted after {len(attempts)} attempt(s); "
            f"last error: {last_kind.value if last_kind else 'none'}"
        )
        return GenerationExhausted(attempts=tuple(attempts), last_error_kind=last_kind)

    def _transition(
        self, state: RouterState, provider_attempts: Sequence[GenerationAttempt]
    ) -> Optional[RouterState]:
        """Next state after a failed attempt, or None when the request is exhausted."""
        provider = self.providers[state.provider_index]
        if state.path_index + 1 < len(provider.paths):
            return RouterState(state.provider_index, state.path_index + 1)

        next_provider = state.provider_index + 1
        if next_provider >= len(self.providers):
            return None

        if any(is_fallback_trigger(a) for a in provider_attempts):
            return RouterState(next_provider, 0)

        logger.info(
            f"Not falling back from {provider.provider_id}: "
            "failures are not transport or credential related"
        )
        return None

    async def _attempt(
        self, provider: ProviderEndpoint, path: str, prompt: str, size: str
    ) -> GenerationAttempt:
        url = provider.resolve_url(path)
        payload = {"model": provider.model_id, "prompt": prompt, "size": size, "n": 1}
        logger.debug(f"Attempting {provider.provider_id} at {public_url(url)}")

        try:
            response = await asyncio.wait_for(
                self._client.post(url, json=payload, headers=provider.auth_headers()),
                timeout=self.attempt_timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            attempt = GenerationAttempt(
                provider_id=provider.provider_id,
                url=url,
                outcome=AttemptFailure(ErrorKind.TIMEOUT, "Request timeout"),
            )
            self._log_failure(attempt)
            return attempt
        except httpx.HTTPError as e:
            kind = error_classifier.classify(None, None, transport_error=e)
            attempt = GenerationAttempt(
                provider_id=provider.provider_id,
                url=url,
                outcome=AttemptFailure(kind, f"{type(e).__name__}: {e}"),
            )
            self._log_failure(attempt)
            return attempt

        body = _safe_json(response.text)

        if not response.is_success:
            kind = error_classifier.classify(response.status_code, body)
            attempt = GenerationAttempt(
                provider_id=provider.provider_id,
                url=url,
                outcome=AttemptFailure(kind, body),
                http_status=response.status_code,
            )
            self._log_failure(attempt)
            return attempt

        try:
            image_b64 = self.normalizer.normalize(provider.provider_id, body)
        except NormalizationError as e:
            attempt = GenerationAttempt(
                provider_id=provider.provider_id,
                url=url,
                outcome=AttemptFailure(
                    ErrorKind.UPSTREAM_OTHER, e.message, malformed_payload=True
                ),
                http_status=response.status_code,
            )
            self._log_failure(attempt)
            return attempt

        return GenerationAttempt(
            provider_id=provider.provider_id,
            url=url,
            outcome=AttemptSuccess(image_b64),
            http_status=response.status_code,
        )

    def _log_failure(self, attempt: GenerationAttempt) -> None:
        logger.warning(
            f"Attempt against {attempt.provider_id} failed: {attempt.error_kind.value}",
            extra={
                "provider": attempt.provider_id,
                "url": public_url(attempt.url),
                "status": attempt.http_status,
            },
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
