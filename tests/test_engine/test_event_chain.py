"""
Test suite for EventBus dispatch and EventChain execution.
"""
import pytest

from fastx402.engine.events import (
    AuthorizationSuccessEvent,
    BreakEvent,
    Dependencies,
    EventBus,
    PaymentReceivedEvent,
    RequestInitEvent,
    VerifyFailedEvent,
)
from fastx402.engine.executors import EventChain
from fastx402.schemas.payments import VerificationResult


@pytest.fixture
def deps(payment_config, route_config):
    return Dependencies(config=payment_config, route_config=route_config)


async def to_payment(event, deps):
    return PaymentReceivedEvent(payload={"signature": "0x1"})


async def to_success(event, deps):
    return AuthorizationSuccessEvent(verification=VerificationResult.success("0xabc"))


@pytest.mark.asyncio
async def test_events_yielded_in_order(deps):
    bus = EventBus()
    bus.subscribe(RequestInitEvent, to_payment)
    bus.subscribe(PaymentReceivedEvent, to_success)

    events = [e async for e in EventChain(bus, deps).execute(RequestInitEvent(payment_header="{}"))]

    assert [type(e) for e in events] == [PaymentReceivedEvent, AuthorizationSuccessEvent]


@pytest.mark.asyncio
async def test_break_event_stops_chain(deps):
    async def stop(event, deps):
        return BreakEvent(break_reason="done")

    bus = EventBus()
    bus.subscribe(RequestInitEvent, stop)
    bus.subscribe(BreakEvent, to_success)

    events = [e async for e in EventChain(bus, deps).execute(RequestInitEvent())]

    assert [type(e) for e in events] == [BreakEvent]


@pytest.mark.asyncio
async def test_handler_exceptions_propagate(deps):
    async def explode(event, deps):
        raise RuntimeError("boom")

    bus = EventBus()
    bus.subscribe(RequestInitEvent, explode)

    with pytest.raises(RuntimeError, match="boom"):
        async for _ in EventChain(bus, deps).execute(RequestInitEvent()):
            pass


@pytest.mark.asyncio
async def test_handlers_must_return_events(deps):
    async def wrong(event, deps):
        return {"not": "an event"}

    bus = EventBus()
    bus.subscribe(RequestInitEvent, wrong)

    with pytest.raises(TypeError):
        async for _ in EventChain(bus, deps).execute(RequestInitEvent()):
            pass


@pytest.mark.asyncio
async def test_cycles_are_bounded(deps):
    async def loop(event, deps):
        return VerifyFailedEvent(error_message="again")

    bus = EventBus()
    bus.subscribe(VerifyFailedEvent, loop)

    with pytest.raises(RuntimeError):
        async for _ in EventChain(bus, deps, max_depth=5).execute(VerifyFailedEvent(error_message="start")):
            pass


@pytest.mark.asyncio
async def test_hooks_run_before_handlers(deps):
    order = []

    async def hook(event, deps):
        order.append("hook")

    async def handler(event, deps):
        order.append("handler")

    bus = EventBus()
    bus.hook(RequestInitEvent, hook)
    bus.subscribe(RequestInitEvent, handler)

    async for _ in EventChain(bus, deps).execute(RequestInitEvent()):
        pass

    assert order == ["hook", "handler"]


def test_sync_handlers_rejected():
    bus = EventBus()
    with pytest.raises(TypeError):
        bus.subscribe(RequestInitEvent, lambda event, deps: None)
    with pytest.raises(TypeError):
        bus.hook(RequestInitEvent, lambda event, deps: None)


def test_event_repr_hides_header():
    assert "secret" not in repr(RequestInitEvent(payment_header="secret"))
