"""
Gateway API endpoints

REST endpoints used by the installation's wizard UI: listing the catalog
images, classifying an image by identity, and generating an image from a
prompt.
"""

import base64
import binascii
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from chimera.catalog import ImageCatalog
from chimera.config import GatewayConfig, load_config
from chimera.gateway.exceptions import ImageNotFoundError, InvalidImagePathError
from chimera.gateway.models import ImageIdentity
from chimera.gateway.service import CapabilityGateway
from chimera.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["gateway"])


class IdentifyRequest(BaseModel):
    """Request model for classifying an image."""

    filename: Optional[str] = Field(None, description="Catalog image file name")
    imageBase64: Optional[str] = Field(None, description="Base64 image contents")
    identity: Optional[str] = Field(
        None, description="Identity of an uploaded image (cache key)"
    )


class GenerateRequest(BaseModel):
    """Request model for generating an image."""

    prompt: Optional[str] = Field(None, description="Prompt text")
    size: Optional[str] = Field(None, description="Image size, e.g. 1024x1024")


# Process-wide instances, built on first use and replaced in tests
_config: Optional[GatewayConfig] = None
_gateway: Optional[CapabilityGateway] = None


def get_config() -> GatewayConfig:
    """Dependency to get the gateway configuration."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_gateway(config: GatewayConfig = Depends(get_config)) -> CapabilityGateway:
    """Dependency to get the gateway instance."""
    global _gateway
    if _gateway is None:
        _gateway = CapabilityGateway.from_config(config)
    return _gateway


def get_catalog(config: GatewayConfig = Depends(get_config)) -> ImageCatalog:
    """Dependency to get the image catalog."""
    return ImageCatalog(config.images_dir)


async def shutdown_gateway() -> None:
    global _gateway
    if _gateway is not None:
        await _gateway.aclose()
        _gateway = None


@router.get("/animals/list")
async def list_animals(catalog: ImageCatalog = Depends(get_catalog)) -> Dict[str, Any]:
    """List the selectable images."""
    try:
        images = catalog.list_images()
    except ImageNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return {"images": images, "count": len(images)}


@router.get("/animals/identify")
async def identify_hint(gateway: CapabilityGateway = Depends(get_gateway)) -> Dict[str, Any]:
    return {
        "ok": True,
        "hint": 'POST { "filename": "ele_1.jpg" } or { "imageBase64": "...", "identity": "..." }',
        "has_credentials": gateway.can_classify,
    }


@router.post("/animals/identify")
async def identify_animal(
    request: IdentifyRequest,
    gateway: CapabilityGateway = Depends(get_gateway),
    catalog: ImageCatalog = Depends(get_catalog),
):
    """Classify a catalog image or an uploaded one, reusing cached results."""
    if not gateway.can_classify:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Missing classification credentials",
                "hint": "Set BAIDU_AK and BAIDU_SK in .env.local",
            },
        )

    if request.imageBase64:
        name = request.identity or request.filename
        if not name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="identity is required with imageBase64",
            )
        try:
            image = base64.b64decode(request.imageBase64, validate=True)
            identity = ImageIdentity.from_filename(name)
        except (binascii.Error, ValueError) as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        result = await gateway.classify(identity, image)

    elif request.filename:
        try:
            path = catalog.resolve(request.filename)
        except InvalidImagePathError as e:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
        except ImageNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
        result = await gateway.classify(
            ImageIdentity.from_filename(path.name), path.read_bytes
        )

    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="No image provided"
        )

    if "kind" in result:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=result)
    return {"success": True, **result}


@router.get("/image")
async def image_hint(config: GatewayConfig = Depends(get_config)) -> Dict[str, Any]:
    return {
        "ok": True,
        "hint": 'POST { "prompt": "..." }',
        "providers": config.describe_providers(),
        "has_key": config.has_generation_key,
    }


@router.post("/image")
async def generate_image(
    request: GenerateRequest,
    gateway: CapabilityGateway = Depends(get_gateway),
    config: GatewayConfig = Depends(get_config),
):
    """Generate an image, falling back across providers."""
    if not request.prompt:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing prompt")
    if not config.has_generation_key:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Missing OPENAI_API_KEY",
                "hint": "Set OPENAI_API_KEY in .env.local",
            },
        )

    result = await gateway.generate(request.prompt, request.size)
    if "kind" in result:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=result)
    return result
