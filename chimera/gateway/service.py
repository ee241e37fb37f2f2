"""
Capability gateway facade.

The UI layer talks to the gateway through two operations, ``classify`` and
``generate``. Both return plain dictionaries: either a usable result or a
structured failure naming the error kind. Neither ever carries credentials,
tokens or query strings.
"""

from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Union

import httpx

from chimera.utils.logging import get_logger

from .classification_cache import ClassificationCache, RecordStore
from .classification_client import ClassificationClient
from .exceptions import AuthError, UpstreamError
from .models import GenerationSuccess, ImageIdentity, public_attempts
from .router import GenerationFallbackRouter
from .token_manager import TokenManager

if TYPE_CHECKING:
    from chimera.config.settings import GatewayConfig

logger = get_logger(__name__)


class CapabilityGateway:
    """Entry point for classification and generation requests."""

    def __init__(
        self,
        router: GenerationFallbackRouter,
        cache: Optional[ClassificationCache] = None,
        default_size: str = "1024x1024",
    ):
        self.router = router
        self.cache = cache
        self.default_size = default_size
        self._clients = []

    @classmethod
    def from_config(cls, config: "GatewayConfig") -> "CapabilityGateway":
        """Wire the gateway components from a configuration built at start-up."""
        classify_http = httpx.AsyncClient(timeout=config.classify_timeout)
        generate_http = httpx.AsyncClient(timeout=config.attempt_timeout)

        cache = None
        if config.classification_credentials is not None:
            cache = ClassificationCache(
                token_manager=TokenManager(config.token_url, client=classify_http),
                client=ClassificationClient(config.classify_url, client=classify_http),
                credentials=config.classification_credentials,
                top_n=config.classify_top_n,
                store=RecordStore(config.records_dir),
            )
        else:
            logger.warning("No classification credentials configured")

        gateway = cls(
            router=GenerationFallbackRouter(
                config.generation_providers,
                client=generate_http,
                attempt_timeout=config.attempt_timeout,
            ),
            cache=cache,
            default_size=config.default_image_size,
        )
        gateway._clients = [classify_http, generate_http]
        return gateway

    @property
    def can_classify(self) -> bool:
        return self.cache is not None

    async def classify(
        self,
        identity: Union[ImageIdentity, str],
        image_bytes: Union[bytes, Callable[[], bytes]],
    ) -> Dict[str, Any]:
        """
        Classify an image, reusing the cached record for its identity.

        Args:
            identity: Image identity (or a raw identity string)
            image_bytes: Image contents, or a callable loading them on a miss

        Returns:
            ``{"labels", "fromCache", "logId", "identity"}`` on success,
            ``{"kind", "detail"}`` on failure
        """
        if self.cache is None:
            return {
                "kind": AuthError.kind,
                "detail": "Classification credentials are not configured",
            }
        if not isinstance(identity, ImageIdentity):
            identity = ImageIdentity(identity)

        try:
            record, from_cache = await self.cache.classify(identity, image_bytes)
        except (AuthError, UpstreamError) as e:
            logger.error(f"Classification of {identity} failed: {e.message}")
            return e.to_failure()

        return {
            "identity": str(record.identity),
            "labels": [label.to_dict() for label in record.labels],
            "fromCache": from_cache,
            "logId": record.log_id,
        }

    async def generate(self, prompt: str, size: Optional[str] = None) -> Dict[str, Any]:
        """
        Render a prompt through the generation providers.

        Returns:
            ``{"imageBase64", "attempts"}`` on success,
            ``{"kind", "attempts", "detail"}`` when every candidate failed
        """
        outcome = await self.router.generate(prompt, size or self.default_size)

        if isinstance(outcome, GenerationSuccess):
            return {
                "imageBase64": outcome.image_b64,
                "attempts": public_attempts(outcome.attempts),
            }

        kind = outcome.last_error_kind.value if outcome.last_error_kind else "no_provider"
        if outcome.attempts:
            detail = f"All {len(outcome.attempts)} generation attempt(s) failed; last error: {kind}"
        else:
            detail = "No generation provider is configured"
        return {
            "kind": kind,
            "attempts": public_attempts(outcome.attempts),
            "detail": detail,
        }

    async def aclose(self) -> None:
        for client in self._clients:
            await client.aclose()
        self._clients = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
