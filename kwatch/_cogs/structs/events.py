"""
Change events as seen by the engine, regardless of the transport.

A change event is a tagged snapshot: what happened (the event type)
and the state of the resource at the moment of the event.
Bookmarks and errors carry no usable snapshot.
"""
import dataclasses
import enum
from typing import Any, Mapping, Optional, cast

from kwatch._cogs.structs import bodies


class EventType(str, enum.Enum):
    ADDED = 'ADDED'
    MODIFIED = 'MODIFIED'
    DELETED = 'DELETED'
    BOOKMARK = 'BOOKMARK'
    ERROR = 'ERROR'

    def __str__(self) -> str:
        return self.value


@dataclasses.dataclass(frozen=True)
class ChangeEvent:
    type: EventType
    snapshot: Optional[bodies.Body] = None
    error: Optional[bodies.RawError] = None

    @classmethod
    def from_raw(cls, raw_input: Mapping[str, Any]) -> "ChangeEvent":
        """
        Parse a JSON-decoded watch-stream line.

        Raises `ValueError` for event types that are not known to the engine.
        """
        type = EventType(raw_input['type'])
        raw_object = raw_input.get('object') or {}
        if type is EventType.ERROR:
            return cls(type=type, error=cast(bodies.RawError, raw_object))
        elif type is EventType.BOOKMARK:
            return cls(type=type)
        else:
            return cls(type=type, snapshot=bodies.Body(raw_object))
