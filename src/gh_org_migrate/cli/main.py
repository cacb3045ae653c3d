"""Main CLI entry point for the GitHub organization migration tool."""

import sys
import asyncio
from typing import Any, Dict, Optional
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .. import __version__
from ..config.config import Config, ConfigurationError, PACKAGE_TYPES
from ..utils.logging import setup_logging
from ..migration.engine import COMPONENTS, MigrationEngine
from ..migration.strategy import MigrationReport

# Human-readable output goes to stderr; stdout carries only the JSON report.
console = Console(stderr=True)

DEFAULT_CONFIG_PATHS = ['config.yaml', 'config.yml', '.gh-org-migrate.yaml']


@click.group()
@click.version_option(version=__version__, prog_name='gh-org-migrate')
@click.option(
    '--config',
    '-c',
    type=click.Path(),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging',
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """GitHub Organization Migration Tool - Migrate teams, variables, secrets, packages and LFS objects between GitHub organizations."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    setup_logging('DEBUG' if verbose else 'INFO')


@cli.command()
@click.option(
    '--output',
    '-o',
    default='config.yaml',
    help='Output configuration file path',
)
def init(output: str) -> None:
    """Initialize a new configuration file."""
    console.print(
        Panel.fit(
            '[bold green]GitHub Organization Migration Tool[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    try:
        Config.create_template(output)
        console.print(f'[green]✓[/green] Configuration template created at: {output}')
        console.print(
            f'[yellow]Please edit {output} with your organization details[/yellow]'
        )
    except OSError as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(1)


@cli.command()
@click.argument('component')
@click.option('--source-org', help='Source organization')
@click.option('--target-org', help='Target organization')
@click.option(
    '--dry-run',
    type=click.BOOL,
    is_flag=False,
    flag_value=True,
    default=None,
    help='Only report what would change (default: true; use --dry-run false to migrate)',
)
@click.option('--verbose', '-v', 'verbose_flag', is_flag=True, help='Enable verbose logging')
@click.option(
    '--package-type',
    type=click.Choice(PACKAGE_TYPES),
    help='Package ecosystem (required for packages)',
)
@click.option('--username-mapping-file', help='CSV mapping source to target usernames')
@click.option('--secrets-file', help='CSV of secrets to migrate')
@click.option('--concurrency', type=int, help='Concurrent downloads/uploads per batch')
@click.pass_context
def migrate(
    ctx: click.Context,
    component: str,
    source_org: Optional[str],
    target_org: Optional[str],
    dry_run: Optional[bool],
    verbose_flag: bool,
    package_type: Optional[str],
    username_mapping_file: Optional[str],
    secrets_file: Optional[str],
    concurrency: Optional[int],
) -> None:
    """Migrate COMPONENT (variables, teams, secrets, packages or lfs)."""
    if verbose_flag:
        ctx.obj['verbose'] = True

    if component not in COMPONENTS:
        console.print(
            f'[red]✗[/red] Unknown component {component!r}. '
            f'Choose one of: {", ".join(COMPONENTS)}'
        )
        sys.exit(1)

    overrides = {
        'source': {'org': source_org},
        'target': {'org': target_org},
        'migration': {
            'dry_run': dry_run,
            'package_type': package_type,
            'username_mapping_file': username_mapping_file,
            'secrets_file': secrets_file,
            'concurrency': concurrency,
        },
    }

    try:
        config = _load_config(ctx, overrides)
    except ConfigurationError as e:
        console.print(f'[red]✗[/red] {e}')
        sys.exit(1)

    _setup_logging_with_config(ctx, config)

    mode = 'dry run' if config.migration.dry_run else 'live migration'
    console.print(
        Panel.fit(
            f'[bold blue]GitHub Organization Migration Tool[/bold blue]\n'
            f'Migrating {component}: {config.source.org} → {config.target.org} ({mode})',
            border_style='blue',
        )
    )
    if config.migration.dry_run:
        console.print('[yellow]Running in dry-run mode - no changes will be made[/yellow]')

    try:
        engine = MigrationEngine(config)
        report = asyncio.run(engine.run(component))
    except Exception as e:
        console.print(f'[red]✗[/red] Migration failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)

    _display_migration_summary(report)
    click.echo(report.to_json())


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Check that the source and target tokens authenticate."""
    console.print(
        Panel.fit(
            '[bold cyan]GitHub Organization Migration Tool[/bold cyan]\nValidating access...',
            border_style='cyan',
        )
    )

    try:
        config = _load_config(ctx)
        logins = MigrationEngine(config).validate_connectivity()
    except Exception as e:
        console.print(f'[red]✗[/red] Validation failed: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)

    failed = False
    for side, org in (('source', config.source.org), ('target', config.target.org)):
        login = logins.get(side)
        if login:
            console.print(f'[green]✓[/green] {side} ({org}): authenticated as {login}')
        else:
            console.print(f'[red]✗[/red] {side} ({org}): authentication failed')
            failed = True

    if failed:
        sys.exit(1)
    console.print('[green]✓[/green] Configuration validation completed')


def _load_config(
    ctx: click.Context, overrides: Optional[Dict[str, Any]] = None
) -> Config:
    """Load configuration from file or environment, applying CLI overrides."""
    config_path = ctx.obj.get('config_path')

    if config_path:
        return Config.from_file(config_path, overrides)

    for path in DEFAULT_CONFIG_PATHS:
        if Path(path).exists():
            return Config.from_file(path, overrides)

    return Config.from_env(overrides)


def _setup_logging_with_config(ctx: click.Context, config: Config) -> None:
    """Setup logging with configuration from config file."""
    log_level = 'DEBUG' if ctx.obj.get('verbose') else config.logging.level
    setup_logging(
        level=log_level, log_file=config.logging.file, log_format=config.logging.format
    )


def _display_migration_summary(report: MigrationReport) -> None:
    """Display migration summary results."""
    table = Table(title=f'{report.component.title()} Migration Summary')
    table.add_column('Status', style='cyan')
    table.add_column('Items', style='green')

    for status, count in report.summary.items():
        table.add_row(status.replace('_', ' ').title(), str(count))
    table.add_row('Errors', str(len(report.errors)), style='red' if report.errors else None)

    console.print(table)

    if report.completed_at:
        duration = report.completed_at - report.started_at
        console.print(f'\n[blue]Migration Duration:[/blue] {duration}')

    if report.errors:
        console.print(f'\n[red]Errors ({len(report.errors)}):[/red]')
        for error in report.errors[:5]:
            console.print(f'  • {error}')
        if len(report.errors) > 5:
            console.print(f'  ... and {len(report.errors) - 5} more errors')


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print('\n[red]Migration interrupted by user[/red]')
        sys.exit(1)
    except Exception as e:
        console.print(f'[red]Error: {e}[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()
