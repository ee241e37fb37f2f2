"""
Response normalization for image-generation providers.

Each provider returns the generated image under its own JSON path. The
normalizer knows those paths and extracts the base64 image uniformly.
"""

import json
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple, Union

from chimera.utils.logging import get_logger

from .exceptions import NormalizationError

logger = get_logger(__name__)

PathStep = Union[str, int]
JsonPath = Tuple[PathStep, ...]

# OpenAI-compatible images API
DEFAULT_IMAGE_PATHS: Tuple[JsonPath, ...] = (("data", 0, "b64_json"),)


def _lookup(body: Any, path: Sequence[PathStep]) -> Any:
    current = body
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or not -len(current) <= step < len(current):
                return None
            current = current[step]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(step)
    return current


def _format_path(path: Sequence[PathStep]) -> str:
    text = ""
    for step in path:
        text += f"[{step}]" if isinstance(step, int) else f".{step}"
    return text.lstrip(".")


class ResponseNormalizer:
    """Extracts base64 image bytes from provider-specific success payloads."""

    def __init__(self, paths: Optional[Dict[str, Iterable[JsonPath]]] = None):
        self._paths: Dict[str, Tuple[JsonPath, ...]] = {}
        for provider_id, candidates in (paths or {}).items():
            self.register(provider_id, candidates)

    def register(self, provider_id: str, candidates: Iterable[JsonPath]) -> None:
        """Set the JSON paths tried, in order, for a provider's responses."""
        candidates = tuple(tuple(path) for path in candidates)
        if not candidates:
            raise ValueError(f"No image paths given for provider {provider_id}")
        self._paths[provider_id] = candidates

    def paths_for(self, provider_id: str) -> Tuple[JsonPath, ...]:
        return self._paths.get(provider_id, DEFAULT_IMAGE_PATHS)

    def normalize(self, provider_id: str, raw_body: Any) -> str:
        """
        Extract the base64-encoded image from a 2xx response body.

        Args:
            provider_id: Provider that produced the body
            raw_body: Parsed JSON, or the raw text/bytes of the response

        Returns:
            The base64 image string

        Raises:
            NormalizationError: If no candidate path holds a non-empty string
        """
        body = raw_body
        if isinstance(body, (bytes, bytearray)):
            body = body.decode("utf-8", errors="replace")
        if isinstance(body, str):
            try:
                body = json.loads(body)
            except ValueError:
                raise NormalizationError(
                    "Response body is not JSON", provider=provider_id
                )

        candidates = self.paths_for(provider_id)
        for path in candidates:
            value = _lookup(body, path)
            if isinstance(value, str) and value:
                return value

        expected = ", ".join(_format_path(path) for path in candidates)
        logger.debug(f"No image found for {provider_id} (expected {expected})")
        raise NormalizationError(
            f"Response carries no image at {expected}",
            provider=provider_id,
            metadata={"expected_paths": expected},
        )
