"""
Gateway configuration.

All credentials, hosts, model ids and limits live in one ``GatewayConfig``
built at start-up. Nothing outside this module reads the environment.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from chimera.gateway.models import ClientCredentials, ProviderEndpoint

DEFAULT_OPENAI_HOST = "https://api.openai.com"
DEFAULT_IMAGE_MODEL = "gpt-image-1"
DEFAULT_SCHOOL_IMAGE_MODEL = "openai.gpt-image-1"
DEFAULT_IMAGE_SIZE = "1024x1024"

DEFAULT_TOKEN_URL = "https://aip.baidubce.com/oauth/2.0/token"
DEFAULT_CLASSIFY_URL = "https://aip.baidubce.com/rest/2.0/image-classify/v1/animal"

OPENAI_PATHS = ("/v1/images/generations",)
# The gateway documents the versioned path; the bare one is kept for older deployments.
SCHOOL_PATHS = ("/v1/images/generations", "/images/generations")


@dataclass
class GatewayConfig:
    """Complete gateway configuration."""

    generation_providers: Tuple[ProviderEndpoint, ...] = ()
    default_image_size: str = DEFAULT_IMAGE_SIZE
    attempt_timeout: float = 60.0

    classification_credentials: Optional[ClientCredentials] = None
    token_url: str = DEFAULT_TOKEN_URL
    classify_url: str = DEFAULT_CLASSIFY_URL
    classify_top_n: int = 10
    classify_timeout: float = 30.0

    images_dir: Path = field(default_factory=lambda: Path("data") / "animals")
    records_dir: Path = field(default_factory=lambda: Path("data") / "animals")

    @classmethod
    def from_environment(cls) -> "GatewayConfig":
        """Create configuration from environment variables."""
        # Imported here: the package __init__ imports this module
        from chimera.config import get_env, get_float_env, get_int_env

        api_key = get_env("OPENAI_API_KEY")
        providers: List[ProviderEndpoint] = [
            ProviderEndpoint(
                provider_id="openai",
                base_host=get_env("OPENAI_HOST", DEFAULT_OPENAI_HOST),
                paths=OPENAI_PATHS,
                model_id=get_env("IMAGE_MODEL", DEFAULT_IMAGE_MODEL),
                api_key=api_key,
            )
        ]

        school_host = get_env("LLM_HOST") or get_env("CORNELL_LLM_HOST")
        if school_host:
            providers.append(
                ProviderEndpoint(
                    provider_id="school",
                    base_host=school_host,
                    paths=SCHOOL_PATHS,
                    model_id=get_env(
                        "SCHOOL_IMAGE_MODEL", DEFAULT_SCHOOL_IMAGE_MODEL
                    ).strip(),
                    api_key=api_key,
                )
            )

        client_id = get_env("BAIDU_AK")
        client_secret = get_env("BAIDU_SK")
        credentials = (
            ClientCredentials(client_id=client_id, client_secret=client_secret)
            if client_id and client_secret
            else None
        )

        images_dir = Path(get_env("IMAGES_DIR", str(Path("data") / "animals")))
        return cls(
            generation_providers=tuple(providers),
            default_image_size=get_env("IMAGE_SIZE", DEFAULT_IMAGE_SIZE),
            attempt_timeout=get_float_env("GENERATION_ATTEMPT_TIMEOUT", 60.0),
            classification_credentials=credentials,
            token_url=get_env("CLASSIFY_TOKEN_URL", DEFAULT_TOKEN_URL),
            classify_url=get_env("CLASSIFY_URL", DEFAULT_CLASSIFY_URL),
            classify_top_n=get_int_env("CLASSIFY_TOP_NUM", 10),
            classify_timeout=get_float_env("CLASSIFY_TIMEOUT", 30.0),
            images_dir=images_dir,
            records_dir=Path(get_env("RECORDS_DIR", str(images_dir))),
        )

    @property
    def has_generation_key(self) -> bool:
        return any(p.api_key for p in self.generation_providers)

    @property
    def has_classification_credentials(self) -> bool:
        return self.classification_credentials is not None

    def describe_providers(self) -> List[Dict[str, Any]]:
        """Provider order without credentials, for hints and the CLI."""
        return [
            {
                "providerId": p.provider_id,
                "host": p.base_host,
                "paths": list(p.paths),
                "model": p.model_id,
            }
            for p in self.generation_providers
        ]
