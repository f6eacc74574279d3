"""ASGI type definitions."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any, Protocol

Scope = MutableMapping[str, Any]
Receive = Callable[[], Awaitable[dict[str, Any]]]
Send = Callable[[dict[str, Any]], Awaitable[None]]
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]

# Wraps an app and returns the wrapped app: ``middleware(app) -> app``.
Middleware = Callable[[ASGIApp], ASGIApp]


class Multiplexer(Protocol):
    """Anything the router can register composed handlers with.

    ``handle`` receives ``"METHOD /path/{$}"`` patterns; calling the
    multiplexer dispatches a request to whichever handler matches.
    """

    def handle(self, pattern: str, handler: ASGIApp) -> None: ...

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None: ...
