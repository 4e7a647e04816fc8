from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import click

EXIT_GENERAL_ERROR = 1
EXIT_VALIDATION_ERROR = 2
EXIT_CANCELLED = 3


def _parse_env(pairs: tuple[str, ...]) -> dict[str, str]:
    env: dict[str, str] = {}
    for pair in pairs:
        if '=' not in pair:
            raise click.BadParameter(f"expected NAME=VALUE, got {pair!r}", param_hint='--env')
        name, value = pair.split('=', 1)
        env[name] = value
    return env


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress most output')
@click.option('--log-file', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Also write log messages to this file')
@click.pass_context
def cli(ctx, verbose: bool, quiet: bool, log_file: Optional[Path]):
    """privbroker: run commands with elevated privileges behind a password prompt."""
    from privbroker.utils.logging_config import setup_cli_logging

    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet

    setup_cli_logging(verbose=verbose, quiet=quiet, log_file=log_file)


@cli.command('run', context_settings={'ignore_unknown_options': True})
@click.option('--facility', default=None, help='Elevation facility (sudo, pkexec)')
@click.option('--locale', default=None, help='Prompt language, e.g. de or pt-BR')
@click.option('--askpass', 'askpass_path', default=None, help='Path to the askpass helper')
@click.option('--env', 'env_pairs', multiple=True, metavar='NAME=VALUE', help='Export a variable in the elevated shell')
@click.option('--shell', 'as_shell', is_flag=True, help='Treat the arguments as one shell command line')
@click.argument('command', nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_context
def run_cmd(ctx, facility: Optional[str], locale: Optional[str], askpass_path: Optional[str],
            env_pairs: tuple[str, ...], as_shell: bool, command: tuple[str, ...]):
    """Run COMMAND with elevated privileges."""
    from privbroker.config import load_broker_config
    from privbroker.errors import get_description, get_title
    from privbroker.managers.broker import Broker
    from privbroker.models import Cancelled, Succeeded

    environment = _parse_env(env_pairs)
    try:
        config = load_broker_config(facility=facility, locale=locale, askpass_path=askpass_path)
        broker = Broker(config=config)
        result = broker.run(' '.join(command) if as_shell else list(command), environment=environment or None)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(EXIT_VALIDATION_ERROR)
        return

    if isinstance(result, Succeeded):
        # bytes, so output that is not UTF-8 reaches the caller unchanged
        if result.stdout:
            click.echo(result.stdout_bytes, nl=False)
        if result.stderr:
            click.echo(result.stderr_bytes, nl=False, err=True)
        ctx.exit(result.exit_code)
    elif isinstance(result, Cancelled):
        msg = 'Authentication cancelled'
        if result.reason.value != 'unknown':
            msg += f" ({result.reason.value})"
        click.echo(click.style(msg, fg='yellow'), err=True)
        ctx.exit(EXIT_CANCELLED)
    else:
        click.echo(click.style(get_title(result), fg='red'), err=True)
        description = get_description(result)
        if description:
            click.echo(description, err=True)
        ctx.exit(EXIT_GENERAL_ERROR)


@cli.command('status')
def status_cmd():
    """Show elevation status, prompt locale and available facilities."""
    from privbroker.locales import detect_locale, resolve_askpass_path
    from privbroker.managers.facility_registry import get_default_registry
    from privbroker.utils.privilege import is_elevated

    locale = detect_locale()
    helper = resolve_askpass_path(locale)
    euid = os.geteuid() if hasattr(os, 'geteuid') else None
    click.echo(f"euid: {euid}")
    click.echo(f"elevated: {is_elevated()}")
    click.echo(f"locale: {locale}")
    click.echo(f"askpass: {helper if helper else click.style('not found', fg='red')}")
    registry = get_default_registry()
    for fac in registry.get_all_facilities():
        avail = click.style('available', fg='green') if fac.is_available() else click.style('missing', fg='yellow')
        info = registry.get_facility_info(fac.get_name()) or {}
        line = f"facility {click.style(fac.get_name(), fg='cyan')}: {avail}"
        if info.get('description'):
            line += f" - {info['description']}"
        click.echo(line)


@cli.command('locales')
def locales_cmd():
    """List supported prompt languages."""
    from privbroker.locales import VARIANTS, askpass_command_name

    for code, variant in VARIANTS.items():
        click.echo(f"{click.style(code.ljust(6), fg='cyan')} {askpass_command_name(code):<26} {variant.title}")


@cli.group('config')
def config_group():
    """Configuration operations"""
    pass


@config_group.command('show')
def config_show():
    """Show effective configuration values and where they come from."""
    from privbroker.config import get_allowed_keys, get_effective_value

    for key in get_allowed_keys():
        try:
            info = get_effective_value(key)
        except ValueError as e:
            click.echo(f"{key}: {click.style(f'invalid ({e})', fg='red')}")
            continue
        if info is None:
            continue
        source = 'env' if info['env'] is not None else 'config' if info['config'] is not None else 'default'
        click.echo(f"{key} = {info['effective']!r} ({source})")


@config_group.command('set')
@click.argument('key')
@click.argument('value')
def config_set(key: str, value: str):
    """Validate and persist a configuration value."""
    from privbroker.config import get_allowed_keys, set_config_value

    if key not in get_allowed_keys():
        click.echo(f"Unknown key: {key}", err=True)
        raise SystemExit(EXIT_VALIDATION_ERROR)
    if not set_config_value(key, value):
        click.echo(f"Failed to set {key}", err=True)
        raise SystemExit(EXIT_VALIDATION_ERROR)
    click.echo(f"Set {key} = {value}")


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
