"""Tests for middleware composition."""

from __future__ import annotations

import pytest
from conftest import marker_middleware

from trellis import apply_middlewares
from trellis.middleware import combine_middlewares


def _recording_handler(log: list[str]):
    async def handler(scope, receive, send):
        log.append("handler")

    return handler


@pytest.mark.asyncio
async def test_outermost_runs_first(call_log: list[str]) -> None:
    a = marker_middleware(call_log, "a")
    b = marker_middleware(call_log, "b")
    app = apply_middlewares(_recording_handler(call_log), [a, b])

    await app({"type": "http"}, None, None)

    assert call_log == ["a", "b", "handler"]


@pytest.mark.asyncio
async def test_empty_chain_returns_handler(call_log: list[str]) -> None:
    handler = _recording_handler(call_log)
    assert apply_middlewares(handler, []) is handler


def test_wrapping_order() -> None:
    def tag(name):
        def middleware(inner):
            return (name, inner)

        return middleware

    assert apply_middlewares("h", [tag("m0"), tag("m1"), tag("m2")]) == ("m0", ("m1", ("m2", "h")))


@pytest.mark.asyncio
async def test_composition_is_repeatable(call_log: list[str]) -> None:
    middlewares = [marker_middleware(call_log, "x"), marker_middleware(call_log, "y")]
    handler = _recording_handler(call_log)

    first = apply_middlewares(handler, middlewares)
    second = apply_middlewares(handler, middlewares)
    await first({"type": "http"}, None, None)
    await second({"type": "http"}, None, None)

    assert call_log == ["x", "y", "handler", "x", "y", "handler"]
    assert len(middlewares) == 2


def test_combine_keeps_scope_order_and_inputs() -> None:
    global_scope = ["g1", "g2"]
    group_scope = ["grp"]
    route_scope = ["r"]

    combined = combine_middlewares(global_scope, group_scope, route_scope)

    assert combined == ["g1", "g2", "grp", "r"]
    assert global_scope == ["g1", "g2"]
    assert group_scope == ["grp"]
    combined.append("extra")
    assert global_scope == ["g1", "g2"]
