"""
Client for the remote vision (animal classification) service.

The provider takes a form-encoded base64 image and returns a ranked list of
labels: ``{"log_id": ..., "result": [{"name": ..., "score": ...}, ...]}``.
Scores arrive as strings on some API versions and are coerced to floats.
"""

import base64
from typing import Any, List, Optional

import httpx

from chimera.utils.logging import get_logger

from .exceptions import UpstreamError
from .models import ClassificationRecord, ImageIdentity, RankedLabel

logger = get_logger(__name__)


def _parse_labels(items: Any, top_n: int) -> List[RankedLabel]:
    labels: List[RankedLabel] = []
    for item in items or []:
        if not isinstance(item, dict) or "name" not in item:
            continue
        try:
            score = float(item.get("score", 0))
        except (TypeError, ValueError):
            score = 0.0
        labels.append(RankedLabel(name=str(item["name"]), score=min(1.0, max(0.0, score))))
        if len(labels) >= top_n:
            break
    return labels


class ClassificationClient:
    """Performs one classification call against the vision provider."""

    PROVIDER = "classification"

    def __init__(
        self,
        classify_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.classify_url = classify_url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def classify_remote(
        self,
        token: str,
        image_bytes: bytes,
        top_n: int,
        identity: Optional[ImageIdentity] = None,
    ) -> ClassificationRecord:
        """
        Classify an image.

        Args:
            token: Bearer token from the TokenManager
            image_bytes: Raw image file contents
            top_n: Maximum number of ranked labels to request
            identity: Identity to stamp on the record

        Returns:
            A fresh ClassificationRecord

        Raises:
            UpstreamError: On transport failure, non-2xx status, or an error
                payload in a 2xx response
        """
        if top_n < 1:
            raise ValueError("top_n must be at least 1")
        if identity is None:
            identity = ImageIdentity("upload")

        form = {
            "image": base64.b64encode(image_bytes).decode("ascii"),
            "top_num": str(top_n),
        }

        try:
            response = await self._client.post(
                self.classify_url, params={"access_token": token}, data=form
            )
        except httpx.HTTPError as e:
            logger.error(f"Classification request failed: {type(e).__name__}")
            raise UpstreamError(
                f"Classification endpoint unreachable: {type(e).__name__}",
                provider=self.PROVIDER,
            ) from e

        try:
            data = response.json()
        except ValueError:
            data = response.text

        if not response.is_success:
            logger.error(f"Classification failed with status {response.status_code}")
            raise UpstreamError(
                f"Classification failed: {response.status_code}",
                status=response.status_code,
                body=data,
                provider=self.PROVIDER,
            )

        if not isinstance(data, dict):
            raise UpstreamError(
                "Classification response is not a JSON object",
                status=response.status_code,
                body=data,
                provider=self.PROVIDER,
            )

        if "error_code" in data:
            logger.error(f"Classification returned error code {data['error_code']}")
            raise UpstreamError(
                f"Classification failed: {data.get('error_msg') or data['error_code']}",
                status=response.status_code,
                body=data,
                provider=self.PROVIDER,
            )

        labels = _parse_labels(data.get("result"), top_n)
        log_id = data.get("log_id")
        logger.info(
            f"Classified {identity} into {len(labels)} labels",
            extra={"identity": str(identity), "log_id": log_id},
        )
        return ClassificationRecord(
            identity=identity,
            labels=tuple(labels),
            log_id=str(log_id) if log_id is not None else None,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
