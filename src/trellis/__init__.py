"""Method-first route registration and middleware scoping for ASGI."""

__version__ = "0.1.0"

from trellis.config import RouterConfig
from trellis.errors import PatternConflictError, PatternError, RouterFrozenError, TrellisError
from trellis.handlers import endpoint
from trellis.middleware import apply_middlewares
from trellis.mux import ServeMux
from trellis.paths import sanitize_path
from trellis.request import Request
from trellis.responses import JSONResponse, PlainTextResponse, Response
from trellis.routing import HTTP_METHODS, Route, RouteCollector, RouteGroup, Router, RouterState

__all__ = [
    "HTTP_METHODS",
    "JSONResponse",
    "PatternConflictError",
    "PatternError",
    "PlainTextResponse",
    "Request",
    "Response",
    "Route",
    "RouteCollector",
    "RouteGroup",
    "Router",
    "RouterConfig",
    "RouterFrozenError",
    "RouterState",
    "ServeMux",
    "TrellisError",
    "apply_middlewares",
    "endpoint",
    "sanitize_path",
]
