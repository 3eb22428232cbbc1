"""noderesolve command line: resolve import specifiers the way the wrapped loader would."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
from rich.markup import escape

from .console import console
from .console import error_console
from .errors import ResolutionError
from .loader import MemoryLoader
from .logging_setup import init_json_logging
from .resolution import Resolver
from .resources.fetch import ResourceFetcher
from .resources.fetch import path_to_url
from .settings import ResolverSettings
from .settings import load_settings


def _as_address(value: str) -> str:
    """Accept either an address or a local path."""
    if "://" in value:
        return value
    return path_to_url(Path(value).resolve())


async def _resolve_all(
    specifiers: tuple[str, ...],
    referrer: str | None,
    base_url: str,
    settings: ResolverSettings,
) -> tuple[list[tuple[str, str | None, str | None]], dict]:
    """Resolve each specifier in turn.

    Returns:
        Tuple of (results, cumulative configuration); each result is
        (specifier, address or None, error message or None)
    """
    fetcher = ResourceFetcher(max_redirects=settings.max_redirects)
    resolver = Resolver(fetcher.exists, fetcher.fetch, settings)
    loader = resolver.wrap(MemoryLoader(base_url, settings.default_extension))

    results: list[tuple[str, str | None, str | None]] = []
    try:
        for specifier in specifiers:
            try:
                address = await loader.resolve(specifier, referrer)
            except ResolutionError as e:
                results.append((specifier, None, str(e)))
                continue
            results.append((specifier, address, None))
    finally:
        await fetcher.aclose()

    return results, resolver.context.config.snapshot()


@click.group()
@click.version_option(package_name="noderesolve")
def cli():
    """noderesolve - Node.js style package resolution for module loaders."""


@cli.command()
@click.argument("specifiers", nargs=-1, required=True)
@click.option("--from", "referrer", default=None, help="Importing file (address or local path)")
@click.option("--base-url", default=None, help="Loader base URL (default: current directory)")
@click.option("--registry", default=None, help="Registry base URL for packages not installed locally")
@click.option("--show-config", is_flag=True, help="Print the synthesized loader configuration")
@click.option("--log-file", default=None, help="Write JSONL diagnostics to this file")
def resolve(
    specifiers: tuple[str, ...],
    referrer: str | None,
    base_url: str | None,
    registry: str | None,
    show_config: bool,
    log_file: str | None,
):
    """Resolve SPECIFIERS to verified addresses."""
    if log_file:
        init_json_logging(log_file, "DEBUG")

    settings = load_settings()
    if registry:
        settings.registry_url = registry if registry.endswith("/") else registry + "/"

    base = _as_address(base_url) if base_url else path_to_url(Path.cwd())
    if not base.endswith("/"):
        base += "/"

    results, config = asyncio.run(
        _resolve_all(specifiers, _as_address(referrer) if referrer else None, base, settings)
    )

    failed = False
    for specifier, address, error in results:
        if error is not None:
            failed = True
            error_console.print(f"[red]✗[/red] [cyan]{escape(specifier)}[/cyan]: {escape(error)}")
        else:
            console.print(f"[green]✓[/green] [cyan]{escape(specifier)}[/cyan] -> {escape(address or '')}")

    if show_config:
        console.print_json(data=config)

    if failed:
        sys.exit(1)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
