"""
x402 Payment Protocol Server - event-driven FastAPI wrapper.

Provides the ``payment_required`` decorator and ``Http402Server``, a
FastAPI application that owns a payment configuration and verification
engine and protects routes with them.
"""

import inspect
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Type, Union

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response

from ..constants import PAYMENT_HEADER, PAYMENT_RESPONSE_HEADER, PAYMENT_VERIFIED_VALUE
from ..engine.events import BaseEvent, EventBus
from ..schemas.payments import PaymentConfig, RouteConfig
from .flows import setup_event_bus
from .guards import ResourceGuard
from .verification import VerificationEngine

logger = logging.getLogger(__name__)


def _as_route_config(route_config: Union[RouteConfig, Mapping[str, Any]]) -> RouteConfig:
    if isinstance(route_config, RouteConfig):
        return route_config
    return RouteConfig.from_options(**dict(route_config))


def _accepts_request(func: Callable) -> bool:
    try:
        return "request" in inspect.signature(func).parameters
    except (TypeError, ValueError):
        return False


def _verified_response(result: Any) -> Response:
    if isinstance(result, Response):
        result.headers[PAYMENT_RESPONSE_HEADER] = PAYMENT_VERIFIED_VALUE
        return result
    return JSONResponse(
        content=jsonable_encoder(result),
        headers={PAYMENT_RESPONSE_HEADER: PAYMENT_VERIFIED_VALUE},
    )


def payment_required(
    route_config: Union[RouteConfig, Mapping[str, Any]],
    engine: VerificationEngine,
    event_bus: Optional[EventBus] = None,
) -> Callable:
    """Decorator to protect a route with payment verification.

    Unpaid or badly paid requests get a 402 with a fresh challenge. Paid
    requests run the handler with the ``VerificationResult``; a handler
    that declares a ``request`` parameter also receives the request.

    Example:
        ```python
        engine = VerificationEngine(config)

        @app.get("/data")
        @payment_required({"price": "0.01"}, engine)
        async def get_data(verification):
            return {"payer": verification.signer}
        ```
    """
    guard = ResourceGuard(_as_route_config(route_config), engine, event_bus)

    def decorator(route_handler: Callable) -> Callable:
        pass_request = _accepts_request(route_handler)

        async def wrapper(request: Request):
            decision = await guard.process(request.headers.get(PAYMENT_HEADER))
            if not decision.granted:
                return JSONResponse(
                    status_code=decision.status_code,
                    content=decision.body,
                    headers=decision.headers,
                )

            request.state.x402_verified = decision.verification
            request.state.x402_challenge = decision.challenge

            if pass_request:
                result = route_handler(decision.verification, request=request)
            else:
                result = route_handler(decision.verification)
            if inspect.isawaitable(result):
                result = await result
            return _verified_response(result)

        wrapper.__name__ = getattr(route_handler, "__name__", "payment_required")
        wrapper.__doc__ = route_handler.__doc__
        wrapper.x402_guard = guard
        return wrapper

    return decorator


class Http402Server(FastAPI):
    """FastAPI server with x402 payment protocol support."""

    def __init__(
        self,
        config: Optional[PaymentConfig] = None,
        engine: Optional[VerificationEngine] = None,
        event_bus: Optional[EventBus] = None,
        **fastapi_kwargs
    ):
        """Initialize x402 payment server.

        Args:
            config: Payment configuration (default: ``load_config_from_env()``)
            engine: Verification engine (default: built from ``config``)
            event_bus: Event bus with flow handlers (default: ``setup_event_bus()``)
            **fastapi_kwargs: FastAPI arguments (title, version, etc.)
        """
        if config is None:
            if engine is not None:
                config = engine.config
            else:
                from ..configs import load_config_from_env
                config = load_config_from_env()
        self.payment_config: PaymentConfig = config
        self.verification_engine = engine or VerificationEngine(config)
        self.event_bus: EventBus = event_bus or setup_event_bus()

        super().__init__(**fastapi_kwargs)
        logger.debug(
            "Http402Server ready merchant=%s chain_id=%s mode=%s",
            config.merchant_address, config.chain_id, config.mode.value,
        )

    def subscribe(self, event_class: Type[BaseEvent], handler: Callable) -> None:
        """Register an additional event handler.

        A handler may return ``BreakEvent`` to end its branch of the chain
        without producing a follow-up event.

        Args:
            event_class: Event type to handle
            handler: Async function(event, deps) -> Optional[BaseEvent]
        """
        self.event_bus.subscribe(event_class, handler)

    def add_hook(self, event_class: Type[BaseEvent], hook: Callable) -> None:
        """Register event hook for side effects.

        Example:
            ```python
            async def log_grant(event, deps):
                audit.record(event.verification.signer)

            app.add_hook(AuthorizationSuccessEvent, log_grant)
            ```
        """
        self.event_bus.hook(event_class, hook)

    def hook(self, event_class: Type[BaseEvent]) -> Callable:
        """Decorator for registering event hooks.

        Example:
            @app.hook(Http402PaymentEvent)
            async def on_challenge(event, deps):
                metrics.increment("challenges")
        """
        def decorator(hook_func: Callable) -> Callable:
            self.event_bus.hook(event_class, hook_func)
            return hook_func
        return decorator

    def payment_required(
        self,
        route_config: Optional[Union[RouteConfig, Dict[str, Any]]] = None,
        **route_fields: Any,
    ) -> Callable:
        """Decorator to protect a route of this server.

        Example:
            ```python
            @app.get("/weather")
            @app.payment_required(price="0.001", description="Weather report")
            async def weather(verification):
                return {"forecast": "sunny", "payer": verification.signer}
            ```
        """
        if route_config is None:
            route_config = route_fields
        elif route_fields:
            merged = _as_route_config(route_config).model_dump(exclude_none=True)
            merged.update(route_fields)
            route_config = merged
        return payment_required(route_config, self.verification_engine, self.event_bus)
