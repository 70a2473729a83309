from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Set
from asyncio import Queue as AsyncQueue
import time


class EventType(Enum):
    COMMAND_STARTED = "exec.started"
    COMMAND_FINISHED = "exec.finished"
    COMMAND_REMOVED = "exec.removed"
    # output of a command run with an event route
    SIGNAL = "exec.signal"


@dataclass
class ExecEvent:
    type: EventType
    number: int
    timestamp: float = field(default_factory=time.time)
    data: Dict[str, Any] = field(default_factory=dict)

    # Event route channel name (SIGNAL events only)
    channel: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "number": self.number,
            "timestamp": self.timestamp,
            "data": self.data,
            "channel": self.channel,
        }


class EventBus:
    """In-process event bus with subscription support.

    Publishing never blocks: it is called from process and timer callbacks
    running on the event loop, so subscriber queues are unbounded.
    """

    def __init__(self):
        self._subscribers: Set[AsyncQueue[ExecEvent]] = set()

    def subscribe(self) -> AsyncQueue[ExecEvent]:
        q: AsyncQueue[ExecEvent] = AsyncQueue()
        self._subscribers.add(q)
        return q

    def unsubscribe(self, q: AsyncQueue[ExecEvent]) -> None:
        self._subscribers.discard(q)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: ExecEvent) -> None:
        for q in list(self._subscribers):
            q.put_nowait(event)
