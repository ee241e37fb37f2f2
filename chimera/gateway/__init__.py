"""
AI capability gateway.

Identity-addressed caching in front of the classification provider, and an
ordered, timeout-guarded fallback sequence across image-generation providers.
"""

from .classification_cache import ClassificationCache, RecordStore, SingleFlight
from .classification_client import ClassificationClient
from .exceptions import (
    AuthError,
    ErrorKind,
    GatewayError,
    ImageNotFoundError,
    InvalidImagePathError,
    NormalizationError,
    UpstreamError,
)
from .models import (
    ClassificationRecord,
    ClientCredentials,
    GenerationAttempt,
    GenerationExhausted,
    GenerationSuccess,
    ImageIdentity,
    ProviderEndpoint,
    RankedLabel,
)
from .normalizer import ResponseNormalizer
from .router import GenerationFallbackRouter
from .token_manager import TokenManager

__all__ = [
    "AuthError",
    "ClassificationCache",
    "ClassificationClient",
    "ClassificationRecord",
    "ClientCredentials",
    "ErrorKind",
    "GatewayError",
    "GenerationAttempt",
    "GenerationExhausted",
    "GenerationFallbackRouter",
    "GenerationSuccess",
    "ImageIdentity",
    "ImageNotFoundError",
    "InvalidImagePathError",
    "NormalizationError",
    "ProviderEndpoint",
    "RankedLabel",
    "RecordStore",
    "ResponseNormalizer",
    "SingleFlight",
    "TokenManager",
    "UpstreamError",
]
