"""
Aerie CLI.

Commands:
    openapi - Export the OpenAPI document for a set of controllers
    routes  - List the routes a set of controllers binds
"""

import sys
from typing import Optional, Tuple

import click

from . import __version__
from .config import AppConfig, load_config
from .controller.registry import MetadataRegistry
from .faults import Fault
from .loader import ControllerLoader
from .middleware import MiddlewareRegistry
from .openapi.generator import OpenApiGenerator


def _load_registry(sources: Tuple[str, ...]) -> MetadataRegistry:
    registry = MetadataRegistry()
    for cls in ControllerLoader().load(sources):
        registry.register(cls)
    registry.freeze()
    return registry


def _fail(message: str) -> None:
    click.secho(f"  ✗ {message}", fg="red", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="aerie")
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True, dir_okay=False),
              help='YAML or JSON config file')
@click.pass_context
def cli(ctx, config_path: Optional[str]):
    """Controller/endpoint framework tooling.

    \b
    Quick start:
      aerie routes controllers/
      aerie openapi controllers/ --format yml --output openapi.yml
    """
    ctx.ensure_object(dict)
    try:
        ctx.obj['config'] = load_config(config_path)
    except Fault as e:
        _fail(f"Config error: {e.message}")


@cli.command('openapi')
@click.argument('sources', nargs=-1, required=True)
@click.option('--format', 'fmt', type=click.Choice(['json', 'yml']), default='json',
              help='Output format')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write to file instead of stdout')
@click.pass_context
def openapi(ctx, sources: Tuple[str, ...], fmt: str, output: Optional[str]):
    """
    Export the OpenAPI document for controllers in SOURCES.

    Examples:
      aerie openapi controllers/
      aerie openapi myapi.controllers --format yml -o openapi.yml
    """
    config: AppConfig = ctx.obj['config']
    try:
        registry = _load_registry(sources)
        document = OpenApiGenerator(registry, MiddlewareRegistry(), config).export(fmt)
    except Fault as e:
        _fail(e.message)

    if output:
        with open(output, "w") as f:
            f.write(document)
        click.secho(f"  ✓ Wrote {output}", fg="green")
    else:
        click.echo(document)


@cli.command('routes')
@click.argument('sources', nargs=-1, required=True)
@click.pass_context
def routes(ctx, sources: Tuple[str, ...]):
    """List METHOD PATH -> endpoint for controllers in SOURCES."""
    config: AppConfig = ctx.obj['config']
    try:
        registry = _load_registry(sources)
    except Fault as e:
        _fail(e.message)

    base = "/" + config.base.strip("/") if config.base and config.base.strip("/") else ""
    for endpoint in registry.endpoints.values():
        method = endpoint.http_method or "?"
        click.echo(f"{method:7} {base}{endpoint.full_path:40} {endpoint.identity}")


def main():
    """Entry point for `aerie` command."""
    cli(obj={})


if __name__ == '__main__':
    main()
