"""
Event chain execution engine.

Provides workflow orchestration on top of EventBus, processing events
recursively until no handler produces a follow-up event.
"""

from typing import AsyncGenerator

from .events import BaseEvent, BreakEvent, EventBus, Dependencies


class EventChain:
    """Executes event-driven workflows by chaining event handler results.

    Events are produced in the caller's task, so a handler exception
    propagates out of ``execute`` to whoever iterates it.
    """

    def __init__(
        self,
        event_bus: EventBus,
        deps: Dependencies,
        max_depth: int = 32,
    ) -> None:
        """
        Initialize event chain executor.

        Args:
            event_bus: The event bus to dispatch events through.
            deps: Dependencies container to pass to handlers.
            max_depth: Guard against handlers that feed each other forever.
        """
        self.event_bus = event_bus
        self.deps = deps
        self.max_depth = max_depth

    async def execute(self, initial_event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """
        Execute event chain starting from initial event.

        Yields:
            Every event produced by handlers, depth first.
        """
        async for event in self._process_event(initial_event, 0):
            yield event

    async def _process_event(self, event: BaseEvent, depth: int) -> AsyncGenerator[BaseEvent, None]:
        if isinstance(event, BreakEvent):
            return
        if depth >= self.max_depth:
            raise RuntimeError(f"Event chain exceeded {self.max_depth} steps at {event!r}")

        async for result in self.event_bus.dispatch(event, self.deps):
            if result is None:
                continue
            if not isinstance(result, BaseEvent):
                raise TypeError(f"Handler returned unsupported type: {type(result).__name__}")
            yield result
            async for e in self._process_event(result, depth + 1):
                yield e
