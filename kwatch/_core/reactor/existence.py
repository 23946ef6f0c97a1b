"""
Tracking of the targets' existence within one watching session.

When a watch-stream is opened without a resource version, the API server
replays the synthetic "ADDED" events for all objects that already exist.
These are the history, not the news, and must not be delivered as additions.

To tell them apart, every (re)connection first lists the target, and seeds
the existence state from that list. An "ADDED" event for an object that is
already known to exist is the historical replay; it is suppressed.
A "DELETED" event makes the object absent again, so that its re-creation
is delivered as a new addition.

The state must be rebuilt from a fresh list on every reconnection.
Carrying it over would miss the deletions that happened while disconnected.

The state is a value: every change produces a new state. It belongs
to exactly one session and is never shared.
"""
import dataclasses
import enum
from typing import FrozenSet, Iterable, Mapping, Tuple, Union

from kwatch._cogs.structs import bodies, events


class Verdict(enum.Enum):
    """ What to do with an event after checking it against the existence state. """
    DELIVER = enum.auto()
    SUPPRESS = enum.auto()


@dataclasses.dataclass(frozen=True)
class ExistenceState:
    present: FrozenSet[str] = frozenset()

    @property
    def exists(self) -> bool:
        """ Whether at least one matching object is currently present. """
        return bool(self.present)


def initialize(
        objs: Iterable[Union[bodies.Body, Mapping[str, object]]],
) -> ExistenceState:
    keys = {obj.key if isinstance(obj, bodies.Body) else bodies.Body(obj).key for obj in objs}
    return ExistenceState(present=frozenset(keys))


def apply(
        event: events.ChangeEvent,
        state: ExistenceState,
) -> Tuple[ExistenceState, Verdict]:
    """
    Advance the existence state with one event and judge the event.
    """
    if event.snapshot is None:  # bookmarks & errors
        return state, Verdict.DELIVER

    key = event.snapshot.key
    if event.type is events.EventType.ADDED:
        if key in state.present:
            return state, Verdict.SUPPRESS
        return ExistenceState(present=state.present | {key}), Verdict.DELIVER

    elif event.type is events.EventType.DELETED:
        return ExistenceState(present=state.present - {key}), Verdict.DELIVER

    elif event.type is events.EventType.MODIFIED and key not in state.present:
        # A modified object is evidently present, even if its addition was never seen.
        return ExistenceState(present=state.present | {key}), Verdict.DELIVER

    else:
        return state, Verdict.DELIVER
