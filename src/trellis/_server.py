"""Granian launcher shared by ``Router.run`` and the CLI.

Granian imports the router again in every worker from a ``"module:var"``
target, so the launcher takes both: the target for Granian and the router
instance to describe in the startup banner.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from trellis.routing import Router


def serve(
    target: str,
    router: Router,
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
    dev: bool = False,
    reload: bool | None = None,
    workers: int = 1,
    log_level: str = "info",
    granian_kwargs: dict[str, Any] | None = None,
) -> None:
    """Print the route table summary and hand *target* to Granian."""
    from granian import Granian

    options = granian_options(dev=dev, reload=reload, workers=workers, log_level=log_level)
    banner = startup_banner(
        target,
        router,
        host=host,
        port=port,
        workers=workers,
        reload=options["reload"],
        dev=dev,
        color=sys.stdout.isatty(),
    )
    print("\n".join(banner), flush=True)

    server = Granian(
        target=target,
        address=host,
        port=port,
        interface="asgi",
        **options,
        **(granian_kwargs or {}),
    )
    server.serve()


def granian_options(*, dev: bool, reload: bool | None, workers: int, log_level: str) -> dict[str, Any]:
    """Granian keyword arguments; *dev* turns on reload, debug logs and access logs.

    An explicit *reload* wins over the *dev* default.
    """
    if reload is None:
        reload = dev
    return {
        "workers": workers,
        "reload": reload,
        "log_level": "debug" if dev else log_level,
        "log_access": dev,
    }


def resolve_target(router: Router) -> str:
    """Derive a ``"module:var"`` string for the given router instance.

    Searches ``__main__`` for a module-level variable bound to *router*.
    Falls back to the script's file stem when ``__main__`` has no spec
    (``python main.py``) so Granian workers can import it.
    """
    main = sys.modules.get("__main__")
    if main is None:
        msg = "Cannot auto-detect Granian target: __main__ module not found."
        raise RuntimeError(msg)

    var_name = next((name for name, val in vars(main).items() if val is router), None)
    if var_name is None:
        msg = (
            "Cannot auto-detect Granian target: no module-level variable in "
            "__main__ references this router. Use the CLI instead, e.g. "
            "`trellis run myapp:router`."
        )
        raise RuntimeError(msg)

    spec = getattr(main, "__spec__", None)
    module_name: str | None = spec.name if spec else None
    if not module_name:
        main_file = getattr(main, "__file__", None)
        module_name = Path(main_file).stem if main_file else None

    return f"{module_name}:{var_name}"


# ------------------------------------------------------------------
# Startup banner
# ------------------------------------------------------------------

_CYAN = "\033[36m"
_GREEN = "\033[32m"
_BOLD = "\033[1m"
_RESET = "\033[0m"


def startup_banner(
    target: str,
    router: Router,
    *,
    host: str,
    port: int,
    workers: int,
    reload: bool,
    dev: bool,
    color: bool = False,
) -> list[str]:
    """Describe the server and the router's route table.

    Development mode lists every pattern the router will register.
    """

    def c(code: str, text: str) -> str:
        return f"{code}{text}{_RESET}" if color else text

    patterns = [pattern for pattern, _route, _group in router.registrations()]
    groups = len(router.groups)

    mode = "development" if dev else "production"
    lines = [
        f"{c(_BOLD + _CYAN, 'Trellis')}    Starting {mode} server",
        "",
        f"{c(_GREEN, 'router')}     {target}",
        f"{c(_GREEN, 'routes')}     {len(patterns)} ({groups} {'group' if groups == 1 else 'groups'})",
        f"{c(_GREEN, 'server')}     Granian on http://{host}:{port}",
        f"{c(_GREEN, 'workers')}    {workers}",
        f"{c(_GREEN, 'reload')}     {'enabled' if reload else 'disabled'}",
    ]
    if dev and patterns:
        lines.append("")
        lines.extend(f"  {pattern}" for pattern in patterns)
    lines.append("")
    return lines
