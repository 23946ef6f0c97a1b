import asyncio
import functools
import json
from typing import Any, Callable, Optional

import click
import yaml

from kwatch._cogs.clients import capabilities, context as contexts
from kwatch._cogs.structs import bodies, references
from kwatch._core.actions import loggers
from kwatch._core.intents import errors as watch_errors
from kwatch._core.intents import readiness
from kwatch._kits import watchers

DEFAULT_SERVER = 'http://localhost:8001'  # as served by `kubectl proxy`
DEFAULT_NAMESPACE = 'default'


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
                log_prefix: Optional[bool] = False,
                log_refkey: Optional[str] = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


def target_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator with the API & scope options shared by all commands. """
    @click.option('-s', '--server', type=str, default=DEFAULT_SERVER, show_default=True)
    @click.option('-n', '--namespace', type=str, default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return fn(*args, **kwargs)

    return wrapper


@click.version_option(prog_name='kwatch')
@click.group(name='kwatch', context_settings=dict(
    auto_envvar_prefix='KWATCH',
))
def main() -> None:
    pass


@main.command()
@logging_options
@target_options
@click.option('-l', '--selector', 'labels', type=str, default=None)
@click.option('-o', '--output', type=click.Choice(['name', 'json', 'yaml']), default='name')
@click.argument('resource')
@click.argument('name', required=False)
def watch(
        resource: str,
        name: Optional[str],
        labels: Optional[str],
        namespace: Optional[str],
        server: str,
        output: str,
) -> None:
    """ Watch the objects and print their changes until interrupted. """
    if name and labels:
        raise click.UsageError("Either a name or a label selector can be used, not both.")
    watcher_resource = _parse_resource(resource)
    scope = _parse_namespace(watcher_resource, namespace, named=bool(name))
    asyncio.run(_watch(server=server, resource=watcher_resource, namespace=scope,
                       name=name, labels=labels, output=output))


@main.command()
@logging_options
@target_options
@click.option('--for', 'condition', type=click.Choice(['ready', 'exists', 'absent']),
              default='ready', show_default=True)
@click.option('--require-existing', is_flag=True)
@click.option('-t', '--timeout', type=float, default=None)
@click.argument('resource')
@click.argument('name')
def wait(
        resource: str,
        name: str,
        namespace: Optional[str],
        server: str,
        condition: str,
        require_existing: bool,
        timeout: Optional[float],
) -> None:
    """ Wait until the object is ready, exists, or is absent. """
    watcher_resource = _parse_resource(resource)
    scope = _parse_namespace(watcher_resource, namespace, named=True)
    try:
        asyncio.run(_wait(server=server, resource=watcher_resource, namespace=scope,
                          name=name, condition=condition, require_existing=require_existing,
                          timeout=timeout))
    except asyncio.TimeoutError:
        raise click.ClickException(f"Timed out waiting for {resource}/{name} to be {condition}.")
    except watch_errors.WatchError as e:
        raise click.ClickException(str(e))
    click.echo(f"{resource}/{name} is {condition}.")


async def _watch(
        *,
        server: str,
        resource: references.Resource,
        namespace: references.Namespace,
        name: Optional[str],
        labels: Optional[str],
        output: str,
) -> None:
    async with contexts.APIContext(server) as context:
        api = capabilities.KubeResourceAPI(context)
        watcher = watchers.ResourceWatcher(resource, api=api, namespace=namespace)
        callbacks = dict(
            on_add=functools.partial(_echo, 'ADDED', resource=resource, output=output),
            on_modify=functools.partial(_echo, 'MODIFIED', resource=resource, output=output),
            on_delete=functools.partial(_echo, 'DELETED', resource=resource, output=output),
        )
        if name is not None:
            await watcher.watch_by_name(name, **callbacks)
        elif labels is not None:
            await watcher.watch_by_label(labels, **callbacks)
        else:
            await watcher.watch_all(**callbacks)


async def _wait(
        *,
        server: str,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        condition: str,
        require_existing: bool,
        timeout: Optional[float],
) -> None:
    async with contexts.APIContext(server) as context:
        api = capabilities.KubeResourceAPI(context)
        watcher = watchers.ResourceWatcher(resource, api=api, namespace=namespace)
        if condition == 'absent':
            coro = watcher.wait_absent(name)
        elif condition == 'exists':
            coro = watcher.wait_ready(name, require_existing=require_existing,
                                      predicate=readiness.exists)
        else:
            coro = watcher.wait_ready(name, require_existing=require_existing)
        await asyncio.wait_for(coro, timeout=timeout)


def _echo(verb: str, body: bodies.Body, *, resource: references.Resource, output: str) -> None:
    click.echo(format_event(verb, body, resource=resource, output=output))


def format_event(
        verb: str,
        body: bodies.Body,
        *,
        resource: references.Resource,
        output: str = 'name',
) -> str:
    if output == 'json':
        return json.dumps({'type': verb, 'object': dict(body.raw)})
    elif output == 'yaml':
        return yaml.safe_dump({'type': verb, 'object': dict(body.raw)},
                              explicit_start=True, sort_keys=False).rstrip('\n')
    else:
        return f"{verb}\t{resource.plural}/{body.key}"


def _parse_resource(spec: str) -> references.Resource:
    try:
        return references.find_resource(spec)
    except LookupError as e:
        raise click.BadParameter(str(e), param_hint='RESOURCE') from e


def _parse_namespace(
        resource: references.Resource,
        namespace: Optional[str],
        *,
        named: bool,
) -> references.Namespace:
    # A specific namespaced object can only be read in a specific namespace, as in kubectl.
    if not resource.namespaced:
        return None
    elif namespace:
        return references.NamespaceName(namespace)
    elif named:
        return references.NamespaceName(DEFAULT_NAMESPACE)
    else:
        return None
