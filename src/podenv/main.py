import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .cli_config import (
    ComprehensiveConfig,
    apply_config_data,
    create_sample_config,
    get_config,
    load_config_file,
    validate_config_values,
)
from .dependency import format_version
from .error_handling import ManifestError, setup_error_handling
from .registry import Registry, load_file, merge_all, serialize
from .structured_logging import configure_logging, log_manifest_written

__version__ = "1.0.0"

console = Console()
err_console = Console(stderr=True)


def load_registries(file_paths: Tuple[str, ...]) -> Registry:
    """Load every file and merge them into one registry."""
    try:
        return merge_all(load_file(file_path) for file_path in file_paths)
    except ManifestError as e:
        raise click.ClickException(str(e))
    except ValueError as e:
        raise click.ClickException(f"Failed to load manifest: {e}")


def write_manifest(registry: Registry, output_file: Optional[str]) -> None:
    """Serialize a registry to a file, or to stdout when no file is given."""
    text = serialize(registry)

    if output_file:
        try:
            with open(output_file, "w", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            raise click.ClickException(f"Failed to write manifest: {e}")
        log_manifest_written(output_file, len(registry))
        err_console.print(
            f"✅ Wrote {len(registry)} dependencies to {output_file}", style="green"
        )
    else:
        click.echo(text, nl=False)
        log_manifest_written(None, len(registry))


def output_json_results(registry: Registry, file_paths: List[str]) -> None:
    """Print a registry as JSON."""
    results = {"sources": file_paths, "total_dependencies": len(registry)}
    results.update(registry.to_dict())
    click.echo(json.dumps(results, indent=2, ensure_ascii=False))


def output_console_results(registry: Registry, title: str) -> None:
    table = Table(title=title)
    table.add_column("Dependency", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Macro identifier", style="dim")

    for record in registry:
        table.add_row(record.name, record.version_string, record.identifier)

    console.print(table)
    console.print(f"{len(registry)} dependencies", style="bold")


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(ctx, version):
    """
    📦 podenv: dependency version manifests

    Reads, merges and writes the generated header that records which pods
    are installed and at which version.
    """
    if version:
        console.print(f"podenv version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        return

    logging_config = get_config().logging
    log_level = logging_config.log_level
    configure_logging(log_level)
    setup_error_handling(
        log_level=getattr(logging, log_level.upper(), logging.WARNING),
        log_format=logging_config.log_format,
    )


@cli.command()
@click.argument(
    "file_paths",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, readable=True, dir_okay=False),
)
@click.option(
    "--output-format",
    type=click.Choice(["console", "json"]),
    default=None,
    help="Output format (defaults to manifest.output_format)",
)
def show(file_paths: Tuple[str, ...], output_format: Optional[str]):
    """List the dependencies recorded in one or more manifests."""
    registry = load_registries(file_paths)
    output_format = output_format or get_config().manifest.output_format

    if output_format == "json":
        output_json_results(registry, list(file_paths))
    else:
        output_console_results(registry, ", ".join(Path(p).name for p in file_paths))


@cli.command()
@click.argument("file_path", type=click.Path(exists=True, readable=True, dir_okay=False))
@click.argument("name")
@click.option(
    "--min-version",
    default=None,
    help="Also require the dependency to be at least this version (e.g. 1.9.0)",
)
def check(file_path: str, name: str, min_version: Optional[str]):
    """Exit 0 if NAME is installed (and new enough), 1 otherwise."""
    registry = load_registries((file_path,))

    if not registry.is_available(name):
        console.print(f"❌ {name} is not available", style="red")
        sys.exit(1)

    version = registry.version_of(name)
    if min_version is not None:
        try:
            satisfied = registry.meets_minimum(name, min_version)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--min-version")
        if not satisfied:
            console.print(
                f"❌ {name} {format_version(version)} is older than {min_version}",
                style="red",
            )
            sys.exit(1)

    console.print(f"✅ {name} {format_version(version)}", style="green")


@cli.command("version")
@click.argument("file_path", type=click.Path(exists=True, readable=True, dir_okay=False))
@click.argument("name")
def version_command(file_path: str, name: str):
    """Print the version of NAME; fails if it is not installed."""
    registry = load_registries((file_path,))
    try:
        click.echo(format_version(registry.version_of(name)))
    except ManifestError as e:
        raise click.ClickException(str(e))


@cli.command()
@click.argument(
    "file_paths",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, readable=True, dir_okay=False),
)
@click.option("--output", "-o", "output_file", type=click.Path(), help="Write to file")
def merge(file_paths: Tuple[str, ...], output_file: Optional[str]):
    """Merge manifest fragments; conflicting versions fail the build."""
    write_manifest(load_registries(file_paths), output_file)


@cli.command()
@click.argument("file_path", type=click.Path(exists=True, readable=True, dir_okay=False))
@click.option("--output", "-o", "output_file", type=click.Path(), help="Write to file")
def normalize(file_path: str, output_file: Optional[str]):
    """Rewrite a manifest in canonical form."""
    write_manifest(load_registries((file_path,)), output_file)


@cli.command()
@click.argument("lock_file", type=click.Path(exists=True, readable=True, dir_okay=False))
@click.option("--output", "-o", "output_file", type=click.Path(), help="Write to file")
def generate(lock_file: str, output_file: Optional[str]):
    """Generate a manifest from the installed pods in a Podfile.lock."""
    if not lock_file.lower().endswith(".lock"):
        raise click.ClickException(f"Not a lock file: {lock_file}")
    write_manifest(load_registries((lock_file,)), output_file)


@cli.command()
def info():
    """Show the manifest format, supported files and usage examples."""
    prefix = get_config().manifest.macro_prefix
    info_text = f"""
[bold blue]📋 Supported Files:[/bold blue]

• [green]*-environment.h / *.h / *.txt[/green] - Generated #define manifest
• [green]*.json[/green] - JSON manifest (as written by [cyan]show --output-format json[/cyan])
• [green]Podfile.lock[/green] - Installed pods, input for [cyan]generate[/cyan]

[bold blue]🧱 Manifest Block:[/bold blue]

  // CocoaLumberjack/Core
  #define {prefix}_POD_AVAILABLE_CocoaLumberjack_Core
  #define {prefix}_VERSION_MAJOR_CocoaLumberjack_Core 1
  #define {prefix}_VERSION_MINOR_CocoaLumberjack_Core 9
  #define {prefix}_VERSION_PATCH_CocoaLumberjack_Core 2

[bold blue]🌍 Environment Variables:[/bold blue]

• [cyan]PODENV_MACRO_PREFIX[/cyan] - Macro prefix (default COCOAPODS)
• [cyan]PODENV_INCLUDE_PREAMBLE[/cyan] - Write the explanatory header comment
• [cyan]PODENV_OUTPUT_FORMAT[/cyan] - Default output format for show
• [cyan]PODENV_LOG_LEVEL[/cyan] - Log level

[bold blue]📄 Configuration Files:[/bold blue]

• [green].podenv.json[/green] / [green].podenv.toml[/green] - Project-level config
• [green]~/.config/podenv/config.json[/green] - User-level config

[bold blue]💡 Usage Examples:[/bold blue]

  # Generate the header from the lock file
  podenv generate Podfile.lock -o Pods-environment.h

  # Gate a build step on a dependency
  podenv check Pods-environment.h YapDatabase --min-version 2.6.0

  # Combine fragments
  podenv merge app-environment.h tests-environment.h -o Pods-environment.h
"""
    console.print(
        Panel(
            info_text,
            title="[bold]podenv Information[/bold]",
            border_style="blue",
        )
    )


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".podenv.json",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_sample_config())
    except OSError as e:
        raise click.ClickException(f"Failed to create config file: {e}")

    console.print(f"✅ Created configuration file at {config_path}", style="green")


@config.command("show")
def config_show():
    """Show current configuration settings."""
    current_config = get_config()

    console.print(Panel("[bold blue]🔧 Configuration[/bold blue]", border_style="blue"))

    console.print("\n[bold cyan]🧱 Manifest Settings:[/bold cyan]")
    console.print(f"  Macro Prefix: {current_config.manifest.macro_prefix}")
    console.print(f"  Include Preamble: {current_config.manifest.include_preamble}")
    console.print(f"  Output Format: {current_config.manifest.output_format}")

    console.print("\n[bold cyan]🔒 Input Limits:[/bold cyan]")
    console.print(f"  Max File Size: {current_config.security.max_file_size_mb} MB")
    console.print(f"  Max Lines: {current_config.security.max_lines_per_file}")
    console.print(
        f"  Allowed Extensions: {', '.join(current_config.security.allowed_file_extensions)}"
    )

    console.print("\n[bold cyan]📝 Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")


@config.command("validate")
@click.argument("config_file", type=click.Path(exists=True))
def config_validate(config_file: str):
    """Validate a configuration file."""
    config_data = load_config_file(Path(config_file))

    if not isinstance(config_data, dict):
        raise click.ClickException(f"Could not load config from {config_file}")

    candidate = ComprehensiveConfig()
    apply_config_data(candidate, config_data)
    errors = validate_config_values(candidate)

    if errors:
        console.print("❌ Configuration validation failed:", style="red")
        for error in errors:
            console.print(f"  • {error}", style="red")
        sys.exit(1)

    console.print(f"✅ Configuration is valid: {config_file}", style="green")


if __name__ == "__main__":
    cli()
