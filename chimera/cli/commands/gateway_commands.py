"""Gateway command implementations"""

import asyncio
import base64
import json
from dataclasses import replace
from pathlib import Path
from typing import Optional

import click

from chimera.gateway.models import ImageIdentity
from chimera.gateway.service import CapabilityGateway


async def _run_identify(config, image_path: Path) -> dict:
    async with CapabilityGateway.from_config(config) as gateway:
        return await gateway.classify(
            ImageIdentity.from_filename(image_path.name), image_path.read_bytes
        )


async def _run_generate(config, prompt: str, size: Optional[str]) -> dict:
    async with CapabilityGateway.from_config(config) as gateway:
        return await gateway.generate(prompt, size)


@click.command()
@click.argument("image_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--records-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for <identity>.animal.json records",
)
@click.pass_context
def identify(ctx, image_path: Path, records_dir: Optional[Path]):
    """Classify a local image and store the record"""
    config = ctx.obj["config"]
    if not config.has_classification_credentials:
        click.echo("Error: set BAIDU_AK and BAIDU_SK in .env.local", err=True)
        ctx.exit(1)
    if records_dir:
        config = replace(config, records_dir=records_dir)

    result = asyncio.run(_run_identify(config, image_path))
    click.echo(json.dumps(result, ensure_ascii=False, indent=2))
    if "kind" in result:
        ctx.exit(1)


@click.command()
@click.argument("prompt")
@click.option("--size", help="Image size, e.g. 1024x1024")
@click.option(
    "--out",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the generated image to this file",
)
@click.pass_context
def generate(ctx, prompt: str, size: Optional[str], out: Optional[Path]):
    """Render a prompt through the generation providers"""
    config = ctx.obj["config"]
    if not config.has_generation_key:
        click.echo("Error: set OPENAI_API_KEY in .env.local", err=True)
        ctx.exit(1)

    result = asyncio.run(_run_generate(config, prompt, size))

    for attempt in result["attempts"]:
        click.echo(
            f"{attempt['providerId']:<10} {attempt['url']} "
            f"status={attempt['status']} kind={attempt['kind'] or 'ok'}"
        )

    if "kind" in result:
        click.echo(f"Error: {result['detail']}", err=True)
        ctx.exit(1)

    if out:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(base64.b64decode(result["imageBase64"]))
        click.echo(f"Saved image to {out}")
    else:
        click.echo(result["imageBase64"])


@click.command()
@click.pass_context
def providers(ctx):
    """Show the generation provider fallback order"""
    config = ctx.obj["config"]
    if not config.generation_providers:
        click.echo("No generation providers configured")
        return

    for position, provider in enumerate(config.describe_providers(), start=1):
        click.echo(f"{position}. {provider['providerId']} ({provider['model']}) {provider['host']}")
        for path in provider["paths"]:
            click.echo(f"     {path}")


@click.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8000, type=int, help="Bind port")
def serve(host: str, port: int):
    """Run the HTTP API"""
    import uvicorn

    uvicorn.run("chimera.app:app", host=host, port=port)
