# cli.py
from __future__ import annotations

import asyncio
import sys
from typing import Callable

import click

from grammarkit.install import InstallOptions, Installer
from grammarkit.registry import Registry, load_registry
from grammarkit.settings import Settings
from grammarkit.ui.console import Console, get_console, set_console


def load_installer(config: str | None) -> Installer:
    """
    Build an Installer from the parser config file and environment.

    Raises:
        SystemExit: If the config file cannot be found or loaded
    """
    console = get_console()
    settings = Settings.from_env(config_path=config)
    cfg = settings.config_path

    if not cfg.exists():
        console.print_error(
            "No parser config found",
            f"Could not find parser config: {cfg}",
            suggestion="Create a grammarkit_parsers.py or specify one explicitly:\n  grammarkit --config my_parsers.py install lua",
        )
        sys.exit(1)

    try:
        registry: Registry = load_registry(cfg)
    except Exception as e:
        console.print_error(
            "Failed to load parser config",
            f"Could not load parsers from {cfg}",
            details=[str(e)],
        )
        if console.debug:
            import traceback
            traceback.print_exc()
        sys.exit(1)

    return Installer(
        registry,
        settings,
        console=console,
        prompt=lambda question: click.confirm(question, default=False),
    )


def _execute(installer: Installer, sync: bool, work: Callable[[], object]) -> None:
    """Run a batch in the requested mode and exit non-zero if anything failed."""
    console = get_console()
    try:
        if sync:
            work()
        else:
            async def _batch() -> None:
                work()
                await installer.orchestrator.drain()

            asyncio.run(_batch())
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    tracker = installer.tracker
    console.print_summary(tracker.started, tracker.finished, tracker.failed)
    if tracker.failed:
        sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and full command output)",
)
@click.option(
    "--config",
    default=None,
    help="Parser config file (defaults to grammarkit_parsers.py or $GRAMMARKIT_CONFIG)",
)
@click.pass_context
def cli(ctx, debug, config):
    """grammarkit: build and manage tree-sitter parsers."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["config"] = config


@cli.command()
@click.argument("targets", nargs=-1, required=True)
@click.option("--force", is_flag=True, default=False, help="Reinstall without asking")
@click.option("--sync/--async", "sync", default=False, show_default=True, help="Build one parser at a time")
@click.option("--generate", is_flag=True, default=False, help="Generate sources from grammar.js before compiling")
@click.option("--exclude-ignored", is_flag=True, default=False, help="Skip parsers listed in IGNORED")
@click.pass_context
def install(ctx, targets, force, sync, generate, exclude_ignored):
    """Install parsers (names, group aliases, or `all`)."""
    installer = load_installer(ctx.obj["config"])
    options = InstallOptions(
        force=force,
        sync=sync,
        generate_from_grammar=generate,
        exclude_ignored=exclude_ignored,
    )
    _execute(installer, sync, lambda: installer.install(targets, options))


@cli.command()
@click.argument("targets", nargs=-1)
@click.option("--sync/--async", "sync", default=False, show_default=True, help="Build one parser at a time")
@click.pass_context
def update(ctx, targets, sync):
    """Rebuild parsers whose installed revision is out of date."""
    installer = load_installer(ctx.obj["config"])
    _execute(installer, sync, lambda: installer.update(targets, sync=sync))


@cli.command()
@click.argument("targets", nargs=-1, required=True)
@click.pass_context
def uninstall(ctx, targets):
    """Remove installed parsers (names, group aliases, or `all`)."""
    installer = load_installer(ctx.obj["config"])
    problems = []
    _execute(installer, True, lambda: problems.extend(installer.uninstall(targets)))
    if problems:
        sys.exit(1)


@cli.command()
@click.pass_context
def info(ctx):
    """List available parsers and whether they are installed."""
    installer = load_installer(ctx.obj["config"])
    get_console().print_parser_list(installer.info())


@cli.command()
@click.argument("target")
@click.pass_context
def revision(ctx, target):
    """Show wanted vs installed revision of one parser."""
    installer = load_installer(ctx.obj["config"])
    resolver = installer.resolver
    console = get_console()
    try:
        wanted = resolver.resolve(target)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)
    console.print_info(f"wanted:    {wanted or '(unpinned)'}")
    console.print_info(f"installed: {resolver.installed_revision(target) or '(none)'}")
    console.print_info(f"needs update: {'yes' if resolver.needs_update(target) else 'no'}")


if __name__ == "__main__":
    cli()
