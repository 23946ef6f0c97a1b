"""
The main kwatch module for all the exported functions & classes.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the library's top-level interface,
# as it is seen by the users. So, we export the individual functions.

from kwatch._cogs.configs.configuration import (
    WatcherSettings,
    NetworkingSettings,
    WatchingSettings,
)
from kwatch._cogs.helpers.typedefs import (
    Logger,
)
from kwatch._cogs.helpers.versions import (
    version as __version__,
)
from kwatch._cogs.clients.context import (
    APIContext,
)
from kwatch._cogs.clients.capabilities import (
    ResourceAPI,
    KubeResourceAPI,
)
from kwatch._cogs.clients.errors import (
    TransportError,
    TransientDisconnect,
    APIError,
    APIUnauthorizedError,
    APIForbiddenError,
    APINotFoundError,
    APIConflictError,
    APITooManyRequestsError,
    APIServerError,
)
from kwatch._cogs.structs.bodies import (
    Body,
    RawBody,
)
from kwatch._cogs.structs.events import (
    EventType,
    ChangeEvent,
)
from kwatch._cogs.structs.references import (
    Resource,
    WatchTarget,
    find_resource,
    PODS,
    SERVICES,
    CONFIGMAPS,
    SECRETS,
    SERVICEACCOUNTS,
    PERSISTENTVOLUMECLAIMS,
    REPLICATIONCONTROLLERS,
    NAMESPACES,
    NODES,
    PERSISTENTVOLUMES,
    DEPLOYMENTS,
    DAEMONSETS,
    STATEFULSETS,
    REPLICASETS,
    JOBS,
    CRONJOBS,
    INGRESSES,
    INGRESSCLASSES,
    NETWORKPOLICIES,
    ROLES,
    ROLEBINDINGS,
    CLUSTERROLES,
    CLUSTERROLEBINDINGS,
    STORAGECLASSES,
)
from kwatch._core.actions.loggers import (
    configure,
    LogFormat,
    TargetLogger,
)
from kwatch._core.intents.errors import (
    WatchError,
    WatchConnectionError,
    NotFoundError,
    DeletedError,
    StoppedError,
)
from kwatch._core.intents.readiness import (
    exists,
    deployment_ready,
    pod_ready,
    node_ready,
    statefulset_ready,
    daemonset_ready,
    replicaset_ready,
    replicationcontroller_ready,
    job_complete,
    job_finished,
    replicas_ready,
    get_predicate,
)
from kwatch._core.intents.sessions import (
    WatchSession,
)
from kwatch._core.reactor.dispatching import (
    watch,
)
from kwatch._core.reactor.waiting import (
    wait_until,
    wait_until_absent,
)
from kwatch._kits.watchers import (
    ResourceWatcher,
)

__all__ = [
    'WatcherSettings', 'NetworkingSettings', 'WatchingSettings',
    'Logger', 'configure', 'LogFormat', 'TargetLogger',
    'APIContext', 'ResourceAPI', 'KubeResourceAPI',
    'TransportError', 'TransientDisconnect',
    'APIError', 'APIUnauthorizedError', 'APIForbiddenError', 'APINotFoundError',
    'APIConflictError', 'APITooManyRequestsError', 'APIServerError',
    'Body', 'RawBody', 'EventType', 'ChangeEvent',
    'Resource', 'WatchTarget', 'find_resource',
    'PODS', 'SERVICES', 'CONFIGMAPS', 'SECRETS', 'SERVICEACCOUNTS',
    'PERSISTENTVOLUMECLAIMS', 'REPLICATIONCONTROLLERS', 'NAMESPACES', 'NODES',
    'PERSISTENTVOLUMES', 'DEPLOYMENTS', 'DAEMONSETS', 'STATEFULSETS', 'REPLICASETS',
    'JOBS', 'CRONJOBS', 'INGRESSES', 'INGRESSCLASSES', 'NETWORKPOLICIES',
    'ROLES', 'ROLEBINDINGS', 'CLUSTERROLES', 'CLUSTERROLEBINDINGS', 'STORAGECLASSES',
    'WatchError', 'WatchConnectionError', 'NotFoundError', 'DeletedError', 'StoppedError',
    'exists', 'deployment_ready', 'pod_ready', 'node_ready', 'statefulset_ready',
    'daemonset_ready', 'replicaset_ready', 'replicationcontroller_ready',
    'job_complete', 'job_finished', 'replicas_ready', 'get_predicate',
    'WatchSession', 'watch', 'wait_until', 'wait_until_absent',
    'ResourceWatcher',
    '__version__',
]
