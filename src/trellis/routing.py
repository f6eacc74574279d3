"""Route registration, middleware scoping and lazy multiplexer setup.

Routes and groups are collected in memory. The first request (or an
explicit :meth:`Router.setup`) composes every route's middleware chain and
registers it with the multiplexer exactly once; after that the route set is
frozen and requests go straight to the multiplexer.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast

from trellis.config import RouterConfig
from trellis.errors import RouterFrozenError
from trellis.middleware import apply_middlewares, combine_middlewares
from trellis.paths import registration_pattern

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from trellis._types import ASGIApp, Middleware, Multiplexer, Receive, Scope, Send

logger = logging.getLogger("trellis.routing")

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD", "CONNECT", "TRACE")


class RouterState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    SETUP_IN_PROGRESS = "setup_in_progress"
    READY = "ready"


def _frozen(what: str) -> RouterFrozenError:
    return RouterFrozenError(f"Cannot {what} after the router has been set up.")


class Route:
    """A single method + pattern + handler registration."""

    __slots__ = ("_sealed", "handler", "method", "middlewares", "pattern")

    def __init__(self, method: str, pattern: str, handler: ASGIApp) -> None:
        self.method = method.upper()
        self.pattern = pattern
        self.handler = handler
        self.middlewares: list[Middleware] = []
        self._sealed = False

    def use(self, *middlewares: Middleware) -> Route:
        """Append route-scoped middleware; runs innermost, right before the handler."""
        if self._sealed:
            raise _frozen("add route middleware")
        self.middlewares.extend(middlewares)
        return self

    def __repr__(self) -> str:
        return f"Route({self.method!r}, {self.pattern!r})"


class RouteGroup:
    """Routes sharing a path prefix and group-scoped middleware."""

    __slots__ = ("_sealed", "middlewares", "prefix", "routes")

    def __init__(self, prefix: str, routes: list[Route], middlewares: list[Middleware]) -> None:
        self.prefix = prefix
        self.routes = tuple(routes)
        self.middlewares = middlewares
        self._sealed = False

    def use(self, *middlewares: Middleware) -> RouteGroup:
        """Append group-scoped middleware; runs inside global, outside route middleware."""
        if self._sealed:
            raise _frozen("add group middleware")
        self.middlewares.extend(middlewares)
        return self

    def __repr__(self) -> str:
        return f"RouteGroup({self.prefix!r}, routes={len(self.routes)})"


class RouteCollector:
    """Registers routes and middleware; has no notion of groups or dispatch.

    A group's builder callback receives one of these, which is what keeps
    groups one level deep.
    """

    def __init__(self, inherited_middlewares: tuple[Middleware, ...] = ()) -> None:
        self.routes: list[Route] = []
        self.middlewares: list[Middleware] = []
        # Global middleware in effect when the group was created. Applied at
        # setup from the router's own list, never from here.
        self.inherited_middlewares = inherited_middlewares

    def _check_mutable(self, what: str) -> None:
        """Hook for owners that freeze; a bare collector never does."""

    def register_route(self, method: str, pattern: str, handler: ASGIApp) -> Route:
        self._check_mutable("register routes")
        route = Route(method, pattern, handler)
        self.routes.append(route)
        return route

    def get(self, pattern: str, handler: ASGIApp) -> Route:
        return self.register_route("GET", pattern, handler)

    def post(self, pattern: str, handler: ASGIApp) -> Route:
        return self.register_route("POST", pattern, handler)

    def put(self, pattern: str, handler: ASGIApp) -> Route:
        return self.register_route("PUT", pattern, handler)

    def delete(self, pattern: str, handler: ASGIApp) -> Route:
        return self.register_route("DELETE", pattern, handler)

    def patch(self, pattern: str, handler: ASGIApp) -> Route:
        return self.register_route("PATCH", pattern, handler)

    def options(self, pattern: str, handler: ASGIApp) -> Route:
        return self.register_route("OPTIONS", pattern, handler)

    def head(self, pattern: str, handler: ASGIApp) -> Route:
        return self.register_route("HEAD", pattern, handler)

    def connect(self, pattern: str, handler: ASGIApp) -> Route:
        return self.register_route("CONNECT", pattern, handler)

    def trace(self, pattern: str, handler: ASGIApp) -> Route:
        return self.register_route("TRACE", pattern, handler)

    def use(self, *middlewares: Middleware) -> None:
        """Append middleware to this collector's scope."""
        self._check_mutable("add middleware")
        self.middlewares.extend(middlewares)


class Router(RouteCollector):
    """ASGI app that feeds its routes to a multiplexer on first use.

    Usage::

        router = Router()
        router.use(log_requests)
        router.get("/health", health)
        router.group("api", lambda api: api.get("/users", list_users)).use(require_auth)

    Middleware order for a grouped route is global, then group, then route,
    outermost first. Registering anything once setup has started raises
    :class:`RouterFrozenError`.
    """

    def __init__(
        self,
        multiplexer: Multiplexer | None = None,
        config: RouterConfig | None = None,
    ) -> None:
        super().__init__()
        self.groups: list[RouteGroup] = []
        self.config = config or RouterConfig()
        self.multiplexer = multiplexer
        self._lock = threading.Lock()
        self._state = RouterState.UNINITIALIZED

    @property
    def state(self) -> RouterState:
        return self._state

    def _check_mutable(self, what: str) -> None:
        if self._state is not RouterState.UNINITIALIZED:
            raise _frozen(what)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def set_multiplexer(self, multiplexer: Multiplexer) -> None:
        self._check_mutable("replace the multiplexer")
        self.multiplexer = multiplexer

    def set_config(self, config: RouterConfig | Mapping[str, Any]) -> None:
        self._check_mutable("change the config")
        if isinstance(config, Mapping):
            config = RouterConfig.model_validate(config)
        self.config = config

    def group(self, prefix: str, builder: Callable[[RouteCollector], Any]) -> RouteGroup:
        """Collect the routes *builder* registers under *prefix*.

        *builder* runs once, synchronously, before this returns. Middleware it
        adds with ``use`` becomes the group's middleware.
        """
        self._check_mutable("add route groups")
        collector = RouteCollector(inherited_middlewares=tuple(self.middlewares))
        builder(collector)
        group = RouteGroup(prefix, collector.routes, collector.middlewares)
        self.groups.append(group)
        return group

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def registrations(self) -> Iterator[tuple[str, Route, RouteGroup | None]]:
        """Yield ``(pattern, route, group)`` in the order setup registers them."""
        for route in self.routes:
            path = f"/{route.pattern}"
            yield registration_pattern(route.method, path, self.config), route, None
        for group in self.groups:
            for route in group.routes:
                path = f"/{group.prefix}/{route.pattern}"
                yield registration_pattern(route.method, path, self.config), route, group

    def setup(self) -> Multiplexer:
        """Register every route with the multiplexer, once, and return it.

        Safe to call from several threads; only the first caller does the
        work, the rest wait on the lock and return. Routes, groups and the
        multiplexer attribute are only frozen once every registration has
        succeeded, so a failed setup leaves the router mutable. A multiplexer
        passed in by the caller keeps whatever patterns it already accepted.
        """
        if self._state is RouterState.READY:
            return cast("Multiplexer", self.multiplexer)
        with self._lock:
            if self._state is RouterState.READY:
                return cast("Multiplexer", self.multiplexer)
            self._state = RouterState.SETUP_IN_PROGRESS
            try:
                multiplexer = self._setup_routes()
            except BaseException:
                self._state = RouterState.UNINITIALIZED
                raise
            self.multiplexer = multiplexer
            self._seal()
            self._state = RouterState.READY
            return multiplexer

    def _setup_routes(self) -> Multiplexer:
        multiplexer = self.multiplexer
        if multiplexer is None:
            from trellis.mux import ServeMux

            logger.warning("No multiplexer set, creating a default ServeMux")
            multiplexer = ServeMux()

        count = 0
        for pattern, route, group in self.registrations():
            scopes: list[list[Middleware]] = [self.middlewares]
            if group is not None:
                scopes.append(group.middlewares)
            scopes.append(route.middlewares)

            handler = apply_middlewares(route.handler, combine_middlewares(*scopes))
            multiplexer.handle(pattern, handler)
            logger.debug("Registered %s -> %r", pattern, route.handler)
            count += 1

        logger.info("Router setup complete: %d routes registered", count)
        return multiplexer

    def _seal(self) -> None:
        for route in self.routes:
            route._sealed = True
        for group in self.groups:
            group._sealed = True
            for route in group.routes:
                route._sealed = True

    # ------------------------------------------------------------------
    # ASGI interface
    # ------------------------------------------------------------------

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await _handle_lifespan(receive, send)
            return

        multiplexer = self.setup()
        await multiplexer(scope, receive, send)

    # ------------------------------------------------------------------
    # Granian convenience
    # ------------------------------------------------------------------

    def run(
        self,
        host: str = "127.0.0.1",
        port: int = 8000,
        *,
        dev: bool = False,
        reload: bool | None = None,
        workers: int = 1,
        log_level: str = "info",
        **granian_kwargs: Any,
    ) -> None:
        """Serve this router with Granian.

        Parameters
        ----------
        dev:
            When ``True``, enables reload, debug logging, and access logs.
        reload:
            Auto-reload on code changes.  ``None`` follows *dev*.
        workers:
            Number of worker processes.
        log_level:
            Granian log level.
        """
        from trellis._server import resolve_target, serve

        serve(
            resolve_target(self),
            self,
            host=host,
            port=port,
            dev=dev,
            reload=reload,
            workers=workers,
            log_level=log_level,
            granian_kwargs=granian_kwargs or None,
        )


async def _handle_lifespan(receive: Receive, send: Send) -> None:
    """Acknowledge lifespan startup and shutdown; there is nothing to run."""
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            await send({"type": "lifespan.shutdown.complete"})
            return
