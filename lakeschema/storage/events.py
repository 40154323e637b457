"""
Progress notifications.

Stages publish through an EventPublisher, which stamps every event with a
per-session sequence number before handing it to an EventSink. Sinks are
transports only; a failing sink is logged and never fails a run.
"""
from abc import ABC, abstractmethod
from collections import defaultdict
import logging
from typing import Any, Dict, List, Optional, Sequence

from lakeschema.models import BuildEvent, EventType

logger = logging.getLogger("lakeschema.events")


class EventSink(ABC):
    """Destination for build events."""

    @abstractmethod
    async def publish(self, event: BuildEvent) -> None:
        pass


class InMemoryEventSink(EventSink):
    """Keeps every event per session; backs the HTTP events endpoint and tests."""

    def __init__(self):
        self.events: Dict[str, List[BuildEvent]] = defaultdict(list)

    async def publish(self, event: BuildEvent) -> None:
        self.events[event.session_id].append(event)

    def get_events(self, session_id: str, after: int = 0) -> List[BuildEvent]:
        return [e for e in self.events.get(session_id, []) if e.sequence > after]

    def types(self, session_id: str) -> List[str]:
        return [e.type for e in self.events.get(session_id, [])]

    def clear(self):
        self.events.clear()


class LoggingEventSink(EventSink):
    """Writes events to the log."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    async def publish(self, event: BuildEvent) -> None:
        logger.log(self.level, f"[{event.session_id} #{event.sequence}] {event.type}: {event.message}")


class FanoutEventSink(EventSink):
    """Publishes to several sinks; one failing sink does not starve the others."""

    def __init__(self, sinks: Sequence[EventSink]):
        self.sinks = list(sinks)

    async def publish(self, event: BuildEvent) -> None:
        for sink in self.sinks:
            try:
                await sink.publish(event)
            except Exception as e:
                logger.warning(f"Event sink {type(sink).__name__} failed: {e}")


class EventPublisher:
    """
    Numbers and publishes events.

    Sequence numbers are monotonic per session. The orchestrator persists
    the counter with each checkpoint and calls seed() on resume, so events
    re-emitted for an interrupted stage reuse their original numbers and
    consumers can deduplicate on (session_id, sequence).
    """

    def __init__(self, sink: EventSink):
        self.sink = sink
        self._sequences: Dict[str, int] = {}

    def seed(self, session_id: str, sequence: int):
        self._sequences[session_id] = sequence

    def current_sequence(self, session_id: str) -> int:
        return self._sequences.get(session_id, 0)

    async def emit(
        self,
        session_id: str,
        event_type: EventType,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> BuildEvent:
        sequence = self._sequences.get(session_id, 0) + 1
        self._sequences[session_id] = sequence
        event = BuildEvent(
            session_id=session_id,
            sequence=sequence,
            type=event_type.value if isinstance(event_type, EventType) else str(event_type),
            message=message,
            payload=payload or {},
        )
        try:
            await self.sink.publish(event)
        except Exception as e:
            logger.warning(f"Failed to publish {event.type} for {session_id}: {e}")
        return event
