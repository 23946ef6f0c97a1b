import dataclasses
import re
import urllib.parse
from typing import Dict, Iterator, List, Mapping, NewType, Optional, Union

# A specific really existing addressable namespace (at least, the one assumed to be so).
# Made as a NewType for stricter type-checking to avoid collisions with other strings.
NamespaceName = NewType('NamespaceName', str)

# A namespace reference usable in the API calls. `None` means cluster-wide API calls.
Namespace = Optional[NamespaceName]

# Label selectors: either as in the API (``"app=web,tier!=db"``) or as a mapping of exact values.
LabelSelector = Union[str, Mapping[str, str]]

# Detect conventional API versions: e.g. in "deployments.v1.apps".
K8S_VERSION_PATTERN = re.compile(r'^v\d+(?:(?:alpha|beta)\d+)?$')


@dataclasses.dataclass(frozen=True, eq=False, repr=False)
class Resource:
    """
    A reference to a very specific built-in resource kind.

    It is used to form the K8s API URLs. Generally, K8s API only needs
    an API group, an API version, and a plural name of the resource.
    All other names are remembered for lookups and for logging.
    """

    group: str
    """
    The resource's API group; e.g. ``"apps"``, ``"batch"``.
    For Core v1 API resources, an empty string: ``""``.
    """

    version: str
    """
    The resource's API version; e.g. ``"v1"``, ``"v1beta1"``, etc.
    """

    plural: str
    """
    The resource's plural name; e.g. ``"pods"``, ``"deployments"``.
    It is used as an API endpoint, together with API group & version.
    """

    kind: Optional[str] = None
    """
    The resource's kind (as in YAML files); e.g. ``"Pod"``, ``"Deployment"``.
    """

    singular: Optional[str] = None
    """
    The resource's singular name; e.g. ``"pod"``, ``"deployment"``.
    """

    namespaced: Optional[bool] = None
    """
    Whether the resource is namespaced (``True``) or cluster-scoped (``False``).
    """

    def __hash__(self) -> int:
        return hash((self.group, self.version, self.plural))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Resource):
            self_tuple = (self.group, self.version, self.plural)
            other_tuple = (other.group, other.version, other.plural)
            return self_tuple == other_tuple
        else:
            return NotImplemented

    def __repr__(self) -> str:
        return f'{self.plural}.{self.version}.{self.group}'.strip('.')

    def __iter__(self) -> Iterator[str]:
        return iter((self.group, self.version, self.plural))

    def get_url(
            self,
            *,
            server: Optional[str] = None,
            namespace: Namespace = None,
            name: Optional[str] = None,
            params: Optional[Mapping[str, str]] = None,
    ) -> str:
        """
        Build a URL to be used with K8s API.

        If the namespace is not set, a cluster-wide URL is returned.
        For cluster-scoped resources, the namespace is ignored.

        If the name is not set, the URL for the resource list is returned.
        Otherwise (if set), the URL for the individual resource is returned.

        Params go to the query parameters (``?param1=value1&param2=value2...``).
        """
        if not self.namespaced and namespace is not None:
            raise ValueError("Specific namespaces are not supported for cluster-scoped resources.")
        if self.namespaced and namespace is None and name is not None:
            raise ValueError("Specific namespaces are required for specific namespaced resources.")

        parts: List[Optional[str]] = [
            '/api' if self.group == '' and self.version == 'v1' else '/apis',
            self.group,
            self.version,
            'namespaces' if self.namespaced and namespace is not None else None,
            namespace if self.namespaced and namespace is not None else None,
            self.plural,
            name,
        ]

        query = urllib.parse.urlencode(params, encoding='utf-8') if params else ''
        path = '/'.join([part for part in parts if part])
        url = path + ('?' if query else '') + query
        return url if server is None else server.rstrip('/') + '/' + url.lstrip('/')


PODS = Resource('', 'v1', 'pods', 'Pod', 'pod', namespaced=True)
SERVICES = Resource('', 'v1', 'services', 'Service', 'service', namespaced=True)
CONFIGMAPS = Resource('', 'v1', 'configmaps', 'ConfigMap', 'configmap', namespaced=True)
SECRETS = Resource('', 'v1', 'secrets', 'Secret', 'secret', namespaced=True)
SERVICEACCOUNTS = Resource('', 'v1', 'serviceaccounts', 'ServiceAccount', 'serviceaccount',
                           namespaced=True)
PERSISTENTVOLUMECLAIMS = Resource('', 'v1', 'persistentvolumeclaims', 'PersistentVolumeClaim',
                                  'persistentvolumeclaim', namespaced=True)
REPLICATIONCONTROLLERS = Resource('', 'v1', 'replicationcontrollers', 'ReplicationController',
                                  'replicationcontroller', namespaced=True)
NAMESPACES = Resource('', 'v1', 'namespaces', 'Namespace', 'namespace', namespaced=False)
NODES = Resource('', 'v1', 'nodes', 'Node', 'node', namespaced=False)
PERSISTENTVOLUMES = Resource('', 'v1', 'persistentvolumes', 'PersistentVolume',
                             'persistentvolume', namespaced=False)
DEPLOYMENTS = Resource('apps', 'v1', 'deployments', 'Deployment', 'deployment', namespaced=True)
DAEMONSETS = Resource('apps', 'v1', 'daemonsets', 'DaemonSet', 'daemonset', namespaced=True)
STATEFULSETS = Resource('apps', 'v1', 'statefulsets', 'StatefulSet', 'statefulset',
                        namespaced=True)
REPLICASETS = Resource('apps', 'v1', 'replicasets', 'ReplicaSet', 'replicaset', namespaced=True)
JOBS = Resource('batch', 'v1', 'jobs', 'Job', 'job', namespaced=True)
CRONJOBS = Resource('batch', 'v1', 'cronjobs', 'CronJob', 'cronjob', namespaced=True)
INGRESSES = Resource('networking.k8s.io', 'v1', 'ingresses', 'Ingress', 'ingress',
                     namespaced=True)
INGRESSCLASSES = Resource('networking.k8s.io', 'v1', 'ingressclasses', 'IngressClass',
                          'ingressclass', namespaced=False)
NETWORKPOLICIES = Resource('networking.k8s.io', 'v1', 'networkpolicies', 'NetworkPolicy',
                           'networkpolicy', namespaced=True)
ROLES = Resource('rbac.authorization.k8s.io', 'v1', 'roles', 'Role', 'role', namespaced=True)
ROLEBINDINGS = Resource('rbac.authorization.k8s.io', 'v1', 'rolebindings', 'RoleBinding',
                        'rolebinding', namespaced=True)
CLUSTERROLES = Resource('rbac.authorization.k8s.io', 'v1', 'clusterroles', 'ClusterRole',
                        'clusterrole', namespaced=False)
CLUSTERROLEBINDINGS = Resource('rbac.authorization.k8s.io', 'v1', 'clusterrolebindings',
                               'ClusterRoleBinding', 'clusterrolebinding', namespaced=False)
STORAGECLASSES = Resource('storage.k8s.io', 'v1', 'storageclasses', 'StorageClass',
                          'storageclass', namespaced=False)

WELL_KNOWN_RESOURCES: List[Resource] = [
    PODS, SERVICES, CONFIGMAPS, SECRETS, SERVICEACCOUNTS, PERSISTENTVOLUMECLAIMS,
    REPLICATIONCONTROLLERS, NAMESPACES, NODES, PERSISTENTVOLUMES,
    DEPLOYMENTS, DAEMONSETS, STATEFULSETS, REPLICASETS, JOBS, CRONJOBS,
    INGRESSES, INGRESSCLASSES, NETWORKPOLICIES,
    ROLES, ROLEBINDINGS, CLUSTERROLES, CLUSTERROLEBINDINGS, STORAGECLASSES,
]


def find_resource(spec: str) -> Resource:
    """
    Resolve a CLI-style resource specification into a well-known resource.

    The specification can be a plural name (``deployments``), a singular name
    (``deployment``), a kind (``Deployment``, case-insensitive), or a fully
    qualified name with the version and group (``deployments.v1.apps``).
    """
    plural, *rest = spec.split('.', 1)
    version: Optional[str] = None
    group: Optional[str] = None
    if rest:
        head, _, tail = rest[0].partition('.')
        if K8S_VERSION_PATTERN.match(head):
            version, group = head, tail
        else:
            group = rest[0]

    names: Dict[str, Resource] = {}
    for resource in WELL_KNOWN_RESOURCES:
        if group is not None and resource.group != group:
            continue
        if version is not None and resource.version != version:
            continue
        for name in [resource.plural, resource.singular, resource.kind]:
            if name:
                names.setdefault(name.lower(), resource)

    try:
        return names[plural.lower()]
    except KeyError:
        raise LookupError(f"Unknown resource: {spec!r}") from None


@dataclasses.dataclass(frozen=True)
class WatchTarget:
    """
    What is being observed: a resource kind, a scope, and a selector.

    The selector is either an exact name, or a label query, or none of them
    (i.e. all objects of the kind in the scope). The namespace is the scope;
    it is ignored for cluster-scoped resources.

    The target is immutable for the lifetime of a watching session.
    For other namespaces or selectors, derive a new target.
    """
    resource: Resource
    namespace: Namespace = None
    name: Optional[str] = None
    labels: Optional[LabelSelector] = None

    def __post_init__(self) -> None:
        if self.name is not None and self.labels is not None:
            raise TypeError("A target is selected either by the name or by the labels, not both.")
        if self.resource.namespaced is False and self.namespace is not None:
            # Since the class is frozen & read-only, post-creation field adjustment is done via a hack.
            object.__setattr__(self, 'namespace', None)

    def __str__(self) -> str:
        where = f" in {self.namespace!r}" if self.namespace is not None else ""
        if self.name is not None:
            return f"{self.resource!r} {self.name!r}{where}"
        elif self.labels is not None:
            return f"{self.resource!r} with labels {self.label_selector!r}{where}"
        else:
            return f"{self.resource!r}{where}"

    @property
    def label_selector(self) -> Optional[str]:
        if self.labels is None or isinstance(self.labels, str):
            return self.labels
        return ','.join(f'{key}={val}' for key, val in self.labels.items())

    def with_namespace(self, namespace: Namespace) -> "WatchTarget":
        return dataclasses.replace(self, namespace=namespace)

    def selector_params(self) -> Dict[str, str]:
        """ Query parameters narrowing the list & watch calls to this target. """
        params: Dict[str, str] = {}
        if self.name is not None:
            params['fieldSelector'] = f'metadata.name={self.name}'
        label_selector = self.label_selector
        if label_selector:
            params['labelSelector'] = label_selector
        return params

    def get_url(
            self,
            *,
            server: Optional[str] = None,
            name: Optional[str] = None,
            params: Optional[Mapping[str, str]] = None,
    ) -> str:
        # Namespaced kinds are listed cluster-wide if no namespace is given.
        return self.resource.get_url(server=server, namespace=self.namespace,
                                     name=name, params=params)
