"""
All the structures coming from/to the Kubernetes API.

Everything marked "raw" is a plain unwrapped unprocessed data as JSON-decoded
from Kubernetes API, usually as retrieved in watching or fetching API calls.
"Input" is a parsed JSON line as is, while "event" is an "input" without errors.
All non-used payload falls into `Any`, and is not type-checked.

The engine never modifies the bodies. The callbacks and predicates get
read-only `Body` wrappers, so that a misbehaving callback cannot corrupt
the snapshots that other consumers of the same event see.
"""
from typing import Any, Iterator, List, Mapping, Optional, Union, cast

from typing_extensions import Literal, TypedDict

from kwatch._cogs.structs import references

Labels = Mapping[str, str]
Annotations = Mapping[str, str]

RawInputType = Literal['ADDED', 'MODIFIED', 'DELETED', 'BOOKMARK', 'ERROR']


class RawMeta(TypedDict, total=False):
    uid: str
    name: str
    namespace: str
    labels: Labels
    annotations: Annotations
    finalizers: List[str]
    resourceVersion: str
    deletionTimestamp: str
    creationTimestamp: str
    generation: int


class RawBody(TypedDict, total=False):
    apiVersion: str
    kind: str
    metadata: RawMeta
    spec: Mapping[str, Any]
    status: Mapping[str, Any]


# A special payload for type==ERROR (this is not a connection or client error).
class RawError(TypedDict, total=False):
    apiVersion: str     # usually: Literal['v1']
    kind: str           # usually: Literal['Status']
    metadata: Mapping[Any, Any]
    code: int
    reason: str
    status: str
    message: str


# As received from the stream before processing the errors and special cases.
class RawInput(TypedDict, total=True):
    type: RawInputType
    object: Union[RawBody, RawError]


class Body(Mapping[str, Any]):
    """
    A read-only view of a raw body with well-known fields as properties.
    """

    def __init__(self, __src: Mapping[str, Any]) -> None:
        super().__init__()
        self._src = __src

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({dict(self._src)!r})'

    def __len__(self) -> int:
        return len(self._src)

    def __iter__(self) -> Iterator[str]:
        return iter(self._src)

    def __getitem__(self, item: str) -> Any:
        return self._src[item]

    @property
    def raw(self) -> RawBody:
        return cast(RawBody, self._src)

    @property
    def metadata(self) -> Mapping[str, Any]:
        return cast(Mapping[str, Any], self._src.get('metadata') or {})

    meta = metadata

    @property
    def spec(self) -> Mapping[str, Any]:
        return cast(Mapping[str, Any], self._src.get('spec') or {})

    @property
    def status(self) -> Mapping[str, Any]:
        return cast(Mapping[str, Any], self._src.get('status') or {})

    @property
    def name(self) -> Optional[str]:
        return cast(Optional[str], self.metadata.get('name'))

    @property
    def namespace(self) -> references.Namespace:
        return cast(references.Namespace, self.metadata.get('namespace'))

    @property
    def uid(self) -> Optional[str]:
        return cast(Optional[str], self.metadata.get('uid'))

    @property
    def resource_version(self) -> Optional[str]:
        return cast(Optional[str], self.metadata.get('resourceVersion'))

    @property
    def key(self) -> str:
        """ An identity of the object within a resource kind: ``namespace/name``. """
        namespace = self.namespace
        name = self.name or ''
        return f'{namespace}/{name}' if namespace else name
