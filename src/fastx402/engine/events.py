"""
Event-driven system with typed events and clear data flow.

Events carry their own data, handlers return next events, and dependencies
are injected separately from business data.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict

from ..schemas.payments import PaymentChallenge, PaymentConfig, RouteConfig, VerificationResult

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Trigger Events (External) ====================

class RequestInitEvent(BaseModel, BaseEvent):
    """External trigger: a request reached a protected resource."""
    payment_header: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        present = self.payment_header is not None
        return f"RequestInitEvent(payment_header={'***' if present else None})"


# ==================== Intermediate Events ====================

class PaymentReceivedEvent(BaseModel, BaseEvent):
    """The payment header decoded to a JSON object."""
    payload: Dict[str, Any]

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"PaymentReceivedEvent(payload_keys={sorted(self.payload.keys())})"


class VerifyFailedEvent(BaseModel, BaseEvent):
    """Result: Payment verification failed."""
    error_message: str

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"VerifyFailedEvent(error={self.error_message})"


# ==================== Result Events ====================

class AuthorizationSuccessEvent(BaseModel, BaseEvent):
    """Result: payment verified, access granted."""
    verification: VerificationResult
    challenge: Optional[PaymentChallenge] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"AuthorizationSuccessEvent(signer={self.verification.signer})"


class Http402PaymentEvent(BaseModel, BaseEvent):
    """Result: Payment required - 402 response payload."""
    challenge: PaymentChallenge
    verification_error: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return (
            f"Http402PaymentEvent(price={self.challenge.price}, "
            f"error={self.verification_error})"
        )


class BreakEvent(BaseModel, BaseEvent):
    """Returned by a user handler to stop the chain; no built-in handler emits it."""
    break_reason: str = ""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return "BreakEvent()"


# ==================== Dependencies Container ====================

@dataclass(frozen=True)
class Dependencies:
    """Container for infrastructure dependencies (read-only)."""
    config: PaymentConfig
    route_config: RouteConfig
    engine: Any = None  # servers.verification.VerificationEngine


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent, Dependencies], Awaitable[Optional[BaseEvent]]]
EventHookFunc = Callable[[BaseEvent, Dependencies], Awaitable[None]]


class EventBus:
    """Event dispatcher for publishing and subscribing to events."""

    def __init__(self) -> None:
        """Initialize with empty subscribers and hooks."""
        self._subscribers: Dict[type, List[EventHandlerFunc]] = {}
        self._hooks: Dict[type, List[EventHookFunc]] = {}

    def subscribe(self, event_class: Type[BaseEvent], handler: EventHandlerFunc) -> None:
        """
        Register an async handler for the given event class.

        Handlers run in registration order; each may return the next event.

        Raises:
            TypeError: If handler is not a coroutine function.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")

        self._subscribers.setdefault(event_class, []).append(handler)

    def hook(self, event_class: Type[BaseEvent], hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.
        Hooks are executed before subscribers when the event is dispatched.
        Their return values are ignored.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Hook must be a coroutine function, got {type(hook_func).__name__}")

        self._hooks.setdefault(event_class, []).append(hook_func)

    def has_subscribers(self, event_class: Type[BaseEvent]) -> bool:
        return bool(self._subscribers.get(event_class))

    async def dispatch(self, event: BaseEvent, deps: Dependencies) -> AsyncGenerator[Optional[BaseEvent], None]:
        """
        Dispatch an event to all registered hooks and subscribers.

        Yields:
            The result of each subscriber, in registration order.
        """
        hooks = self._hooks.get(type(event), [])
        if hooks:
            await asyncio.gather(*(hook(event, deps) for hook in hooks))

        for handler in self._subscribers.get(type(event), []):
            yield await handler(event, deps)
