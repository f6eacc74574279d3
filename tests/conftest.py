"""Shared helpers for trellis tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient

from trellis import PlainTextResponse

if TYPE_CHECKING:
    from trellis._types import ASGIApp


def make_client(app: ASGIApp) -> AsyncClient:
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    )


def text(body: str) -> ASGIApp:
    """Handler that always answers 200 with *body*."""
    return PlainTextResponse(body)


def header_middleware(name: str, value: str):
    """Middleware setting a response header on the way out."""

    def middleware(inner_app):
        async def app(scope, receive, send):
            async def custom_send(message):
                if message["type"] == "http.response.start":
                    headers = list(message.get("headers", []))
                    headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))
                    message = {**message, "headers": headers}
                await send(message)

            await inner_app(scope, receive, custom_send)

        return app

    return middleware


def marker_middleware(log: list[str], marker: str):
    """Middleware appending *marker* to *log* before calling through."""

    def middleware(inner_app):
        async def app(scope, receive, send):
            log.append(marker)
            await inner_app(scope, receive, send)

        return app

    return middleware


@pytest.fixture
def call_log() -> list[str]:
    return []
