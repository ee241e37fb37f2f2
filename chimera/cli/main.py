#!/usr/bin/env python3
"""
Chimera CLI
Command-line access to the capability gateway.
"""

import click

from chimera.config import load_config

from .commands import gateway_commands


@click.group()
@click.version_option(package_name="chimera")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--env-file", type=click.Path(dir_okay=False), help="Load settings from this .env file")
@click.pass_context
def cli(ctx, verbose, env_file):
    """
    Chimera gateway CLI

    Classify installation images and render prompts through the configured
    generation providers.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if "config" not in ctx.obj:
        ctx.obj["config"] = load_config(env_file)

    if verbose:
        import logging

        for name in list(logging.root.manager.loggerDict):
            if name.startswith("chimera"):
                logging.getLogger(name).setLevel(logging.DEBUG)


cli.add_command(gateway_commands.identify)
cli.add_command(gateway_commands.generate)
cli.add_command(gateway_commands.providers)
cli.add_command(gateway_commands.serve)


if __name__ == "__main__":
    cli()
