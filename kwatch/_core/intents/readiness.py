"""
Readiness predicates of the well-known resource kinds.

Every predicate is a pure function of the object's body. The numeric fields
that are zero are usually omitted by the API server, so missing fields are
treated as zeroes. An absent ``spec.replicas`` is treated as the server-side
default of 1.
"""
from typing import Any, Callable, Dict, Mapping

from kwatch._cogs.structs import bodies, references

Predicate = Callable[[bodies.Body], bool]


def _has_condition(body: bodies.Body, type_: str, status: str = 'True') -> bool:
    conditions = body.status.get('conditions') or []
    return any(cond.get('type') == type_ and cond.get('status') == status for cond in conditions)


def _count(mapping: Mapping[str, Any], field: str) -> int:
    return int(mapping.get(field) or 0)


def exists(body: bodies.Body) -> bool:
    return True


def deployment_ready(body: bodies.Body) -> bool:
    return _has_condition(body, 'Available')


def pod_ready(body: bodies.Body) -> bool:
    return _has_condition(body, 'Ready')


def node_ready(body: bodies.Body) -> bool:
    return _has_condition(body, 'Ready')


def job_complete(body: bodies.Body) -> bool:
    return _has_condition(body, 'Complete')


def job_finished(body: bodies.Body) -> bool:
    """ A job is finished when it is either complete or failed. """
    return _has_condition(body, 'Complete') or _has_condition(body, 'Failed')


def statefulset_ready(body: bodies.Body) -> bool:
    desired = body.spec.get('replicas', 1)
    return desired == _count(body.status, 'availableReplicas')


def daemonset_ready(body: bodies.Body) -> bool:
    desired = _count(body.status, 'desiredNumberScheduled')
    return (_count(body.status, 'currentNumberScheduled') == desired and
            _count(body.status, 'numberAvailable') == desired and
            _count(body.status, 'numberReady') == desired)


def replicaset_ready(body: bodies.Body) -> bool:
    replicas = _count(body.status, 'replicas')
    return (_count(body.status, 'availableReplicas') == replicas and
            _count(body.status, 'fullyLabeledReplicas') == replicas and
            _count(body.status, 'readyReplicas') == replicas)


replicationcontroller_ready = replicaset_ready


def replicas_ready(body: bodies.Body) -> bool:
    """ All desired replicas are ready: ``status.readyReplicas == spec.replicas``. """
    desired = body.spec.get('replicas', 1)
    return desired == _count(body.status, 'readyReplicas')


PREDICATES: Dict[references.Resource, Predicate] = {
    references.DEPLOYMENTS: deployment_ready,
    references.PODS: pod_ready,
    references.NODES: node_ready,
    references.STATEFULSETS: statefulset_ready,
    references.DAEMONSETS: daemonset_ready,
    references.REPLICASETS: replicaset_ready,
    references.REPLICATIONCONTROLLERS: replicationcontroller_ready,
    references.JOBS: job_finished,
}


def get_predicate(resource: references.Resource) -> Predicate:
    """ The default readiness of a resource kind; mere existence for others. """
    return PREDICATES.get(resource, exists)
