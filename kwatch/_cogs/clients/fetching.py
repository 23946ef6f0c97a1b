from typing import Collection, List, Tuple

from kwatch._cogs.clients import api, context as contexts
from kwatch._cogs.configs import configuration
from kwatch._cogs.helpers import typedefs
from kwatch._cogs.structs import bodies, references


async def list_objs(
        *,
        context: contexts.APIContext,
        settings: configuration.WatcherSettings,
        target: references.WatchTarget,
        logger: typedefs.Logger,
) -> Tuple[Collection[bodies.RawBody], str]:
    """
    List the objects of the target: by name, by labels, or all of them.

    If the target has no namespace, the cluster-wide call is used.
    For the namespaced resources, it lists the objects in all namespaces.
    """
    rsp = await api.get(
        url=target.get_url(params=target.selector_params()),
        context=context,
        settings=settings,
        logger=logger,
    )

    items: List[bodies.RawBody] = []
    resource_version = rsp.get('metadata', {}).get('resourceVersion', None)
    for item in rsp.get('items', []):
        if 'kind' in rsp:
            item.setdefault('kind', rsp['kind'][:-4] if rsp['kind'][-4:] == 'List' else rsp['kind'])
        if 'apiVersion' in rsp:
            item.setdefault('apiVersion', rsp['apiVersion'])
        items.append(item)

    return items, resource_version


async def read_obj(
        *,
        context: contexts.APIContext,
        settings: configuration.WatcherSettings,
        target: references.WatchTarget,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Read one specific object of the target by its name.

    Raises `errors.APINotFoundError` if the object does not exist.
    """
    if target.name is None:
        raise ValueError(f"Only the targets with names can be read: {target}")
    obj: bodies.RawBody = await api.get(
        url=target.get_url(name=target.name),
        context=context,
        settings=settings,
        logger=logger,
    )
    return obj
