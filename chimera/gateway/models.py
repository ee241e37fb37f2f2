"""
Data model for the capability gateway.

Classification records are immutable once created; generation attempts and
outcomes are request-scoped values that are never shared between requests.
"""

import os
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

import httpx

from .exceptions import ErrorKind


@dataclass(frozen=True)
class ImageIdentity:
    """Stable cache key derived from an image's logical name, not its bytes."""

    value: str

    def __post_init__(self):
        if not self.value or not self.value.strip():
            raise ValueError("Image identity cannot be empty")
        if "/" in self.value or "\\" in self.value or self.value in (".", ".."):
            raise ValueError(f"Image identity cannot contain a path: {self.value!r}")

    @classmethod
    def from_filename(cls, filename: str) -> "ImageIdentity":
        """Derive the identity from a file name: "ele_tail fur.jpg" -> "ele_tail_fur"."""
        stem = os.path.splitext(os.path.basename(filename.strip()))[0]
        return cls(re.sub(r"\s+", "_", stem.strip()))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RankedLabel:
    """One label of a classification result."""

    name: str
    score: float

    def __post_init__(self):
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"Label score must be within [0, 1], got {self.score}")

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "score": self.score}


@dataclass(frozen=True)
class ClassificationRecord:
    """Result of one successful upstream classification call."""

    identity: ImageIdentity
    labels: Tuple[RankedLabel, ...]
    log_id: Optional[str]
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize in the provider's shape, plus identity and creation time."""
        return {
            "identity": str(self.identity),
            "log_id": self.log_id,
            "result": [label.to_dict() for label in self.labels],
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], identity: Optional[ImageIdentity] = None
    ) -> "ClassificationRecord":
        """
        Rebuild a record from its serialized form.

        Files written by older tooling only carry ``log_id`` and ``result``;
        the identity then has to be supplied by the caller.
        """
        if identity is None:
            identity = ImageIdentity(data["identity"])

        labels = tuple(
            RankedLabel(name=str(item["name"]), score=float(item.get("score", 0)))
            for item in data.get("result") or []
            if "name" in item
        )
        created_at = data.get("created_at")
        log_id = data.get("log_id")
        return cls(
            identity=identity,
            labels=labels,
            log_id=str(log_id) if log_id is not None else None,
            created_at=(
                datetime.fromisoformat(created_at)
                if created_at
                else datetime.now(timezone.utc)
            ),
        )


@dataclass(frozen=True)
class ClientCredentials:
    """Long-lived credential pair exchanged for a bearer token."""

    client_id: str
    client_secret: str = field(repr=False)


@dataclass(frozen=True)
class ProviderEndpoint:
    """Static configuration of one image-generation provider."""

    provider_id: str
    base_host: str
    paths: Tuple[str, ...]
    model_id: str
    auth_scheme: str = "Bearer"
    api_key: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        if not self.paths:
            raise ValueError(f"Provider {self.provider_id} has no path templates")

    def resolve_url(self, path: str) -> str:
        return str(httpx.URL(self.base_host).join(path))

    def auth_headers(self) -> Dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"{self.auth_scheme} {self.api_key}"}


def public_url(url: str) -> str:
    """Reduce a URL to scheme, host and path so no query or userinfo leaks."""
    parsed = httpx.URL(url)
    host = parsed.host
    if parsed.port:
        host = f"{host}:{parsed.port}"
    return f"{parsed.scheme}://{host}{parsed.path}"


@dataclass(frozen=True)
class AttemptSuccess:
    image_b64: str = field(repr=False)


@dataclass(frozen=True)
class AttemptFailure:
    kind: ErrorKind
    detail: Any = None
    # 2xx whose payload could not be normalized
    malformed_payload: bool = False


@dataclass(frozen=True)
class GenerationAttempt:
    """One provider/path request made while serving a generation request."""

    provider_id: str
    url: str
    outcome: Union[AttemptSuccess, AttemptFailure]
    http_status: Optional[int] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, AttemptSuccess)

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        if isinstance(self.outcome, AttemptFailure):
            return self.outcome.kind
        return None

    def public_dict(self) -> Dict[str, Any]:
        """The attempt as shown to callers: no credentials, no query strings."""
        return {
            "providerId": self.provider_id,
            "url": public_url(self.url),
            "status": self.http_status,
            "kind": self.error_kind.value if self.error_kind else None,
        }


@dataclass(frozen=True)
class GenerationSuccess:
    image_b64: str = field(repr=False)
    attempts: Tuple[GenerationAttempt, ...] = ()


@dataclass(frozen=True)
class GenerationExhausted:
    attempts: Tuple[GenerationAttempt, ...]
    last_error_kind: Optional[ErrorKind]


GenerationOutcome = Union[GenerationSuccess, GenerationExhausted]


def public_attempts(attempts: Tuple[GenerationAttempt, ...]) -> List[Dict[str, Any]]:
    return [attempt.public_dict() for attempt in attempts]
