"""
Configuration package for the Chimera gateway.

Environment variables are read here and nowhere else. ``load_config`` builds
one ``GatewayConfig`` at process start; components receive it (or the parts
they need) explicitly.
"""

import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv


def get_env(name: str, default: Optional[Any] = None) -> Any:
    """
    Get an environment variable with a default value.

    Args:
        name: Name of the environment variable
        default: Default value if the environment variable is not set

    Returns:
        Value of the environment variable or the default
    """
    return os.getenv(name, default)


def get_int_env(name: str, default: int = 0) -> int:
    """
    Get an integer environment variable.

    Args:
        name: Name of the environment variable
        default: Default value if the environment variable is not set

    Returns:
        Integer value of the environment variable
    """
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def get_float_env(name: str, default: float = 0.0) -> float:
    """
    Get a float environment variable.

    Args:
        name: Name of the environment variable
        default: Default value if the environment variable is not set

    Returns:
        Float value of the environment variable
    """
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def load_config(env_file: Optional[str] = None) -> "GatewayConfig":
    """
    Load configuration from environment variables and/or .env files.

    Args:
        env_file: Optional path to a .env file to load

    Returns:
        The gateway configuration
    """
    if env_file:
        load_dotenv(env_file, override=True)
    else:
        env_paths = [
            ".env",
            ".env.local",
            f".env.{os.getenv('ENVIRONMENT', 'development')}",
        ]

        for env_path in env_paths:
            if Path(env_path).exists():
                load_dotenv(env_path, override=True)

    return GatewayConfig.from_environment()


from chimera.config.settings import GatewayConfig  # noqa: E402

__all__ = [
    "GatewayConfig",
    "get_env",
    "get_float_env",
    "get_int_env",
    "load_config",
]
