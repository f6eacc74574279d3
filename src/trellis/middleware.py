"""Middleware composition."""

from __future__ import annotations

from itertools import chain
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from trellis._types import ASGIApp, Middleware


def apply_middlewares(handler: ASGIApp, middlewares: Sequence[Middleware]) -> ASGIApp:
    """Wrap *handler* so ``middlewares[0]`` is the outermost layer.

    ``[a, b]`` over ``h`` yields ``a(b(h))``: on a live request ``a`` runs
    first and ``b`` runs immediately before ``h``.
    """
    app = handler
    for mw in reversed(middlewares):
        app = mw(app)
    return app


def combine_middlewares(*scopes: Iterable[Middleware]) -> list[Middleware]:
    """Flatten scope lists, outermost scope first, into a new list."""
    return list(chain.from_iterable(scopes))
