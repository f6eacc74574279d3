"""Adapt plain request functions into ASGI handlers.

Route handlers are raw ASGI apps. ``endpoint`` lets a handler be written
as ``def f(request) -> Response | dict | list | str`` instead::

    @endpoint
    async def show_user(request: Request) -> JSONResponse:
        return JSONResponse({"id": request.path_value("id")})

    router.get("/users/{id}", show_user)
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import traceback
from typing import TYPE_CHECKING, Any

from trellis.request import Request
from trellis.responses import JSONResponse, PlainTextResponse, Response

if TYPE_CHECKING:
    from collections.abc import Callable

    from trellis._types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger("trellis.handlers")


class _HandlerMeta:
    """Pre-computed handler metadata, built once when the handler is wrapped."""

    __slots__ = ("handler", "is_coroutine", "name")

    def __init__(self, handler: Callable[..., Any]) -> None:
        self.handler = handler
        self.is_coroutine = inspect.iscoroutinefunction(handler)
        self.name = getattr(handler, "__qualname__", repr(handler))


def endpoint(func: Callable[..., Any] | None = None, *, debug: bool = False) -> Any:
    """Wrap ``func(request)`` as an ASGI handler.

    Sync functions run in the default executor. Exceptions become a 500
    JSON response; with ``debug=True`` the body includes the traceback.
    Usable bare (``@endpoint``) or with options (``@endpoint(debug=True)``).
    """

    def decorator(handler: Callable[..., Any]) -> ASGIApp:
        meta = _HandlerMeta(handler)

        @functools.wraps(handler)
        async def app(scope: Scope, receive: Receive, send: Send) -> None:
            request = Request(scope, receive)
            try:
                response = await _invoke(meta, request)
            except Exception:
                logger.exception("Unhandled error in handler %s", meta.name)
                body: dict[str, Any] = {"detail": "Internal Server Error"}
                if debug:
                    body["traceback"] = traceback.format_exc()
                await JSONResponse(body, status_code=500).send(send)
                return

            await _send_response(response, send)

        return app

    if func is not None:
        return decorator(func)
    return decorator


async def _invoke(meta: _HandlerMeta, request: Request) -> Any:
    if meta.is_coroutine:
        return await meta.handler(request)
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: meta.handler(request))


async def _send_response(response: Any, send: Send) -> None:
    if isinstance(response, Response):
        await response.send(send)
    elif isinstance(response, dict | list):
        await JSONResponse(response).send(send)
    else:
        await PlainTextResponse(str(response)).send(send)
