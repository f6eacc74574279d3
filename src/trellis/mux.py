"""Default pattern-matching multiplexer.

Patterns look like ``"GET /users/{id}/{$}"``:

- ``{name}`` matches one non-empty path segment.
- ``{name...}`` must be last and matches the rest of the path.
- ``{$}`` must be last, after a slash, and anchors the match.
- A trailing ``/`` without ``{$}`` matches the whole subtree.

The method prefix is optional; a ``GET`` pattern also answers ``HEAD``
and WebSocket upgrades. Unmatched sockets are closed.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import TYPE_CHECKING, Any

from trellis.errors import PatternConflictError, PatternError
from trellis.responses import PlainTextResponse

if TYPE_CHECKING:
    from trellis._types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger("trellis.mux")

_WILDCARD_RE = re.compile(r"^\{(\w+)(\.\.\.)?\}$")

# Segment ranks, higher is more specific.
_MULTI = 0
_SINGLE = 1
_LITERAL = 2
_END = 3


class _Pattern:
    """A parsed, compiled multiplexer pattern."""

    __slots__ = ("handler", "key", "method", "path", "raw", "regex", "shape")

    def __init__(self, raw: str, handler: ASGIApp) -> None:
        self.raw = raw
        self.handler = handler
        self.method, self.path = _split_method(raw)
        self.regex, ranks, self.shape = _compile_path(raw, self.path)
        # An exact HEAD pattern outranks the GET pattern that also answers HEAD.
        self.key = (ranks, bool(self.method), self.method != "GET")

    def allows(self, method: str) -> bool:
        if not self.method or self.method == method:
            return True
        return self.method == "GET" and method == "HEAD"

    def match(self, path: str) -> dict[str, str] | None:
        m = self.regex.match(path)
        if m is None:
            return None
        return m.groupdict()

    def __repr__(self) -> str:
        return f"_Pattern({self.raw!r})"


class ServeMux:
    """Method and path multiplexer for ASGI handlers.

    Usage::

        mux = ServeMux()
        mux.handle("GET /users/{id}/{$}", user_detail)
        await mux(scope, receive, send)
    """

    __slots__ = ("_lock", "_patterns")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._patterns: tuple[_Pattern, ...] = ()

    @property
    def patterns(self) -> list[str]:
        """Registered patterns, most specific first."""
        return [p.raw for p in self._patterns]

    def handle(self, pattern: str, handler: ASGIApp) -> None:
        """Register *handler* for *pattern*.

        Raises :class:`PatternConflictError` when a pattern with the same
        method and path shape is already registered.
        """
        compiled = _Pattern(pattern, handler)
        with self._lock:
            for existing in self._patterns:
                if existing.method == compiled.method and existing.shape == compiled.shape:
                    raise PatternConflictError(pattern, existing.raw)
            patterns = [*self._patterns, compiled]
            patterns.sort(key=lambda p: p.key, reverse=True)
            self._patterns = tuple(patterns)
        logger.debug("Registered pattern %s", pattern)

    def match(self, method: str, path: str) -> tuple[_Pattern, dict[str, str]] | None:
        """Return ``(pattern, path_params)`` for the most specific match."""
        for pattern in self._patterns:
            if not pattern.allows(method):
                continue
            params = pattern.match(path)
            if params is not None:
                return pattern, params
        return None

    def allowed_methods(self, path: str) -> set[str]:
        """Methods with a pattern matching *path*."""
        allowed: set[str] = set()
        for pattern in self._patterns:
            if pattern.match(path) is None:
                continue
            if not pattern.method:
                return set()
            allowed.add(pattern.method)
            if pattern.method == "GET":
                allowed.add("HEAD")
        return allowed

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "websocket":
            await self._handle_websocket(scope, receive, send)
            return
        if scope["type"] != "http":
            return

        method = scope["method"].upper()
        path = scope["path"]

        result = self.match(method, path)
        if result is not None:
            await _dispatch(scope, receive, send, *result)
            return

        if not path.endswith("/") and self.match(method, path + "/") is not None:
            await _redirect(scope, path + "/").send(send)
            return

        allowed = self.allowed_methods(path)
        if allowed:
            allow = ", ".join(sorted(allowed))
            await PlainTextResponse("Method Not Allowed\n", status_code=405, headers={"allow": allow}).send(send)
            return

        await PlainTextResponse("404 page not found\n", status_code=404).send(send)

    async def _handle_websocket(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Route the upgrade like a GET; close the socket when nothing matches."""
        result = self.match("GET", scope["path"])
        if result is None:
            await send({"type": "websocket.close", "code": 1000})
            return
        await _dispatch(scope, receive, send, *result)


# ------------------------------------------------------------------
# Pattern parsing
# ------------------------------------------------------------------


def _split_method(raw: str) -> tuple[str, str]:
    method, sep, path = raw.strip().partition(" ")
    if not sep:
        method, path = "", method
    path = path.lstrip(" \t")
    if not path.startswith("/"):
        msg = f"Pattern {raw!r} must have a path starting with '/' (host patterns are not supported)"
        raise PatternError(msg)
    return method.upper(), path


def _compile_path(raw: str, path: str) -> tuple[re.Pattern[str], tuple[int, ...], tuple[Any, ...]]:
    """Compile ``/users/{id}/{$}`` into a regex, specificity ranks and shape.

    The shape ignores wildcard names so ``/a/{x}`` and ``/a/{y}`` collide.
    """
    segments = path[1:].split("/")
    parts: list[str] = []
    ranks: list[int] = []
    shape: list[Any] = []
    names: set[str] = set()
    last = len(segments) - 1

    for i, seg in enumerate(segments):
        if seg == "" and i == last:
            parts.append("/.*")
            ranks.append(_MULTI)
            shape.append(_MULTI)
            continue

        if seg == "{$}":
            if i != last:
                msg = f"Pattern {raw!r}: '{{$}}' must be the final segment"
                raise PatternError(msg)
            parts.append("/")
            ranks.append(_END)
            shape.append(_END)
            continue

        if "{" in seg or "}" in seg:
            m = _WILDCARD_RE.match(seg)
            if m is None:
                msg = f"Pattern {raw!r}: bad wildcard segment {seg!r}"
                raise PatternError(msg)
            name, multi = m.group(1), m.group(2)
            if name in names:
                msg = f"Pattern {raw!r}: duplicate wildcard name {name!r}"
                raise PatternError(msg)
            names.add(name)
            if multi:
                if i != last:
                    msg = f"Pattern {raw!r}: '{{{name}...}}' must be the final segment"
                    raise PatternError(msg)
                parts.append(f"/(?P<{name}>.*)")
                ranks.append(_MULTI)
                shape.append(_MULTI)
            else:
                parts.append(f"/(?P<{name}>[^/]+)")
                ranks.append(_SINGLE)
                shape.append(_SINGLE)
            continue

        parts.append("/" + re.escape(seg))
        ranks.append(_LITERAL)
        shape.append(seg)

    return re.compile("^" + "".join(parts) + "$", re.DOTALL), tuple(ranks), tuple(shape)


async def _dispatch(
    scope: Scope,
    receive: Receive,
    send: Send,
    pattern: _Pattern,
    path_params: dict[str, str],
) -> None:
    scope["path_params"] = {**scope.get("path_params", {}), **path_params}
    scope["route_pattern"] = pattern.raw
    await pattern.handler(scope, receive, send)


def _redirect(scope: Scope, location: str) -> PlainTextResponse:
    query = scope.get("query_string", b"")
    if query:
        location = f"{location}?{query.decode('latin-1')}"
    return PlainTextResponse("Moved Permanently\n", status_code=301, headers={"location": location})
