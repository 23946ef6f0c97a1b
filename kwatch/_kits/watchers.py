"""
One watching engine, instantiated per resource kind.

A thin facade that binds the generic watch & wait operations to one resource
kind, one API client, one scope (namespace), and one set of settings.
The binding is immutable: `with_namespace` returns a new watcher, and the
original one remains usable as it was. The watchers share nothing but the API
client, so any number of them can be used concurrently.
"""
import dataclasses
from typing import Optional

from kwatch._cogs.clients import capabilities, errors
from kwatch._cogs.configs import configuration
from kwatch._cogs.structs import bodies, references
from kwatch._core.actions import invocation
from kwatch._core.intents import errors as watch_errors
from kwatch._core.intents import readiness, sessions
from kwatch._core.reactor import dispatching, waiting


@dataclasses.dataclass(frozen=True)
class ResourceWatcher:
    resource: references.Resource
    api: capabilities.ResourceAPI
    namespace: references.Namespace = None
    settings: configuration.WatcherSettings = dataclasses.field(
        default_factory=configuration.WatcherSettings)

    def with_namespace(self, namespace: references.Namespace) -> "ResourceWatcher":
        return dataclasses.replace(self, namespace=namespace)

    def with_settings(self, settings: configuration.WatcherSettings) -> "ResourceWatcher":
        return dataclasses.replace(self, settings=settings)

    def target(
            self,
            name: Optional[str] = None,
            labels: Optional[references.LabelSelector] = None,
    ) -> references.WatchTarget:
        return references.WatchTarget(resource=self.resource, namespace=self.namespace,
                                      name=name, labels=labels)

    async def watch_by_name(
            self,
            name: str,
            *,
            on_add: Optional[invocation.Invokable] = None,
            on_modify: Optional[invocation.Invokable] = None,
            on_delete: Optional[invocation.Invokable] = None,
            session: Optional[sessions.WatchSession] = None,
    ) -> None:
        await dispatching.watch(self.api, self.target(name=name),
                                on_add=on_add, on_modify=on_modify, on_delete=on_delete,
                                settings=self.settings, session=session)

    async def watch_by_label(
            self,
            labels: references.LabelSelector,
            *,
            on_add: Optional[invocation.Invokable] = None,
            on_modify: Optional[invocation.Invokable] = None,
            on_delete: Optional[invocation.Invokable] = None,
            session: Optional[sessions.WatchSession] = None,
    ) -> None:
        await dispatching.watch(self.api, self.target(labels=labels),
                                on_add=on_add, on_modify=on_modify, on_delete=on_delete,
                                settings=self.settings, session=session)

    async def watch_all(
            self,
            *,
            on_add: Optional[invocation.Invokable] = None,
            on_modify: Optional[invocation.Invokable] = None,
            on_delete: Optional[invocation.Invokable] = None,
            session: Optional[sessions.WatchSession] = None,
    ) -> None:
        await dispatching.watch(self.api, self.target(),
                                on_add=on_add, on_modify=on_modify, on_delete=on_delete,
                                settings=self.settings, session=session)

    async def is_ready(
            self,
            name: str,
            *,
            predicate: Optional[waiting.Predicate] = None,
    ) -> bool:
        """
        Check the readiness of the named object once, without watching.

        Unlike "not ready", an absent object is reported as `NotFoundError`.
        """
        predicate = predicate if predicate is not None else readiness.get_predicate(self.resource)
        target = self.target(name=name)
        try:
            raw_body = await self.api.get(target)
        except errors.APINotFoundError as e:
            raise watch_errors.NotFoundError(f"{target} does not exist.") from e
        return bool(await invocation.invoke(predicate, bodies.Body(raw_body)))

    async def wait_ready(
            self,
            name: str,
            *,
            require_existing: bool = False,
            predicate: Optional[waiting.Predicate] = None,
            session: Optional[sessions.WatchSession] = None,
    ) -> bodies.Body:
        predicate = predicate if predicate is not None else readiness.get_predicate(self.resource)
        return await waiting.wait_until(self.api, self.target(name=name), predicate,
                                        require_existing=require_existing,
                                        settings=self.settings, session=session)

    async def wait_absent(
            self,
            name: str,
            *,
            session: Optional[sessions.WatchSession] = None,
    ) -> None:
        await waiting.wait_until_absent(self.api, self.target(name=name),
                                        settings=self.settings, session=session)
