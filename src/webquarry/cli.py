"""Command-line interface for webquarry."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

import click
import structlog

from webquarry import __version__
from webquarry.config import Config, load_config
from webquarry.container import ServiceContainer
from webquarry.errors import WebQuarryError
from webquarry.observability import configure_logging

logger = structlog.get_logger(__name__)


def _load(ctx: click.Context) -> Config:
    config = load_config(ctx.obj["config_path"])
    config.monitoring.log_level = ctx.obj["log_level"] or config.monitoring.log_level
    configure_logging(config.monitoring)
    return config


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True), help="Configuration file path")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level (overrides the configuration file)",
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], log_level: Optional[str]) -> None:
    """webquarry - web content acquisition tools for language models."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else None
    ctx.obj["log_level"] = log_level


@cli.command()
@click.option("--host", default=None, help="Host to bind to")
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]) -> None:
    """Serve the tools over HTTP."""
    from webquarry.web.main import run_web_server

    config = _load(ctx)
    if host:
        config.web.host = host
    if port:
        config.web.port = port
    run_web_server(ServiceContainer(config, ctx.obj["config_path"]))


@cli.command()
@click.argument("tool")
@click.option("--params", "params_json", default="{}", help="Tool parameters as a JSON object")
@click.pass_context
def run(ctx: click.Context, tool: str, params_json: str) -> None:
    """Run one TOOL and print its result as JSON."""
    try:
        params = json.loads(params_json)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--params") from e

    config = _load(ctx)

    async def invoke() -> Any:
        async with ServiceContainer(config, ctx.obj["config_path"]) as container:
            return await container.executor.execute(tool, params)

    try:
        result = asyncio.run(invoke())
    except WebQuarryError as e:
        click.echo(json.dumps({"error": {"code": e.code, "message": e.message}}, indent=2), err=True)
        sys.exit(1)

    if isinstance(result, str):
        click.echo(result)
    else:
        click.echo(json.dumps(result, indent=2, ensure_ascii=False))


@cli.command(name="tools")
@click.pass_context
def list_tools(ctx: click.Context) -> None:
    """List the available tools."""
    container = ServiceContainer(_load(ctx), ctx.obj["config_path"])
    for spec in container.executor.list_tools():
        click.echo(f"{spec['name']:<30} {spec['description']}")


@cli.command()
@click.pass_context
def validate_config(ctx: click.Context) -> None:
    """Validate the current configuration."""
    try:
        config = load_config(ctx.obj["config_path"])
    except Exception as e:
        click.echo(f"Configuration validation failed: {e}", err=True)
        sys.exit(1)
    click.echo(config.model_dump_json(indent=2))


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
