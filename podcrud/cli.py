import dataclasses
import functools
from typing import Any, Callable

import click

from podcrud._cogs.clients import errors, watching
from podcrud._cogs.configs import configuration
from podcrud._cogs.structs import credentials
from podcrud._core.actions import loggers
from podcrud._core.engines import waiting
from podcrud._core.reactor import running, scenario


@dataclasses.dataclass()
class CLIControls:
    """ Controls of the walkthrough, which are impossible to pass via CLI. """
    vault: credentials.Vault | None = None
    settings: configuration.ClientSettings | None = None


class LogFormatParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in loggers.LogFormat])

    def convert(self, value: Any, param: Any, ctx: Any) -> loggers.LogFormat:
        if isinstance(value, loggers.LogFormat):
            return value
        else:
            name: str = super().convert(value, param, ctx)
            return loggers.LogFormat[name.upper()]


def logging_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to configure logging in all commands the same way."""
    @click.option('-v', '--verbose', is_flag=True)
    @click.option('-d', '--debug', is_flag=True)
    @click.option('-q', '--quiet', is_flag=True)
    @click.option('--log-format', type=LogFormatParamType(), default='full')
    @click.option('--log-refkey', type=str)
    @click.option('--log-prefix/--no-log-prefix', default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(verbose: bool, quiet: bool, debug: bool,
                log_format: loggers.LogFormat = loggers.LogFormat.FULL,
                log_prefix: bool | None = False,
                log_refkey: str | None = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


@click.version_option(prog_name='podcrud')
@click.group(name='podcrud', context_settings=dict(
    auto_envvar_prefix='PODCRUD',
))
def main() -> None:
    pass


@main.command()
@logging_options
@click.option('-n', '--namespace', type=str, default=None)
@click.option('--name', type=str, default=None)
@click.option('--image', type=str, default=None)
@click.option('--timeout', 'running_timeout', type=float, default=None)
@click.option('--wait-deletion', 'deletion_timeout', type=float, default=None)
@click.make_pass_decorator(CLIControls, ensure=True)
def run(
        __controls: CLIControls,
        namespace: str | None,
        name: str | None,
        image: str | None,
        running_timeout: float | None,
        deletion_timeout: float | None,
) -> None:
    """ Walk a pod through its lifecycle: create, wait, get, patch, list, delete. """
    settings = __controls.settings if __controls.settings is not None else configuration.ClientSettings()
    if namespace is not None:
        settings.pod.namespace = namespace
    if name is not None:
        settings.pod.name = name
    if image is not None:
        settings.pod.image = image
    if running_timeout is not None:
        settings.waiting.running_timeout = running_timeout
    if deletion_timeout is not None:
        settings.waiting.deletion_timeout = deletion_timeout

    try:
        outcome = running.run(
            settings=settings,
            vault=__controls.vault,
        )
    except (scenario.ScenarioError,
            waiting.ConditionTimeoutError,
            watching.WatchingError,
            credentials.LoginError) as e:
        raise click.ClickException(str(e)) from e
    except errors.APIError as e:
        raise click.ClickException(f"API error {e.status}: {e.message or 'no details'}") from e

    found = ', '.join(outcome.listed) or 'nothing'
    click.echo(f"Pod {outcome.namespace}/{outcome.name}: "
               f"{'created' if outcome.created else 'reused'}, "
               f"patched to version {outcome.resource_version}, "
               f"listed {found}, "
               f"{'deleted' if outcome.deleted_immediately else 'deletion started'}.")
