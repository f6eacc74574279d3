"""Trellis command-line interface powered by Typer."""

import importlib
import sys
from pathlib import Path
from typing import Annotated

import typer

app = typer.Typer(name="trellis", add_completion=False, no_args_is_help=True)

_TARGET_HELP = "Python file or module:var target."


# ------------------------------------------------------------------
# Target resolution
# ------------------------------------------------------------------


def _import_module(path: str):
    file = Path(path)
    if file.suffix == ".py":
        if not file.exists():
            typer.echo(f"Error: file {path!r} not found.", err=True)
            raise typer.Exit(1)
        # Ensure the file's directory is on sys.path so we can import it.
        parent = str(file.resolve().parent)
        if parent not in sys.path:
            sys.path.insert(0, parent)
        module_name = file.stem
    else:
        module_name = path
        if "" not in sys.path:
            sys.path.insert(0, "")

    try:
        return importlib.import_module(module_name)
    except Exception as exc:
        typer.echo(f"Error importing {module_name!r}: {exc}", err=True)
        raise typer.Exit(1) from exc


def _resolve_cli_target(path: str) -> str:
    """Turn a CLI *path* argument into a ``"module:var"`` string.

    Accepted forms:
    - ``module:var``   -> returned as-is
    - ``file.py``      -> imports ``file``, scans for a Router instance
    """
    if ":" in path:
        return path

    mod = _import_module(path)
    var_name = _find_router_var(mod)
    if var_name is None:
        typer.echo(
            f"Error: no Router instance found in {path!r}. Provide an explicit target, e.g. main:router",
            err=True,
        )
        raise typer.Exit(1)

    return f"{mod.__name__}:{var_name}"


def _find_router_var(mod: object) -> str | None:
    """Scan a module for a ``Router`` instance.

    Checks ``router`` and ``app`` first, then falls back to any attribute.
    """
    from trellis.routing import Router

    for name in ("router", "app"):
        if isinstance(getattr(mod, name, None), Router):
            return name

    for name in dir(mod):
        if name.startswith("_"):
            continue
        if isinstance(getattr(mod, name, None), Router):
            return name

    return None


def _load_router(path: str):
    """Return ``(target, router)`` for a CLI *path* argument."""
    from trellis.routing import Router

    target = _resolve_cli_target(path)
    module_name, _, var_name = target.partition(":")
    mod = _import_module(module_name)
    router = getattr(mod, var_name, None)
    if not isinstance(router, Router):
        typer.echo(f"Error: {target!r} is not a Router instance.", err=True)
        raise typer.Exit(1)
    return target, router


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------


@app.command()
def routes(
    path: Annotated[str, typer.Argument(help=_TARGET_HELP)] = "main.py",
) -> None:
    """List the patterns the router will register, in setup order."""
    _target, router = _load_router(path)
    rows = [
        (pattern, getattr(route.handler, "__qualname__", repr(route.handler)))
        for pattern, route, _group in router.registrations()
    ]
    if not rows:
        typer.echo("No routes registered.")
        return

    width = max(len(pattern) for pattern, _ in rows)
    for pattern, handler_name in rows:
        typer.echo(f"{pattern.ljust(width)}  {handler_name}")


@app.command()
def dev(
    path: Annotated[str, typer.Argument(help=_TARGET_HELP)] = "main.py",
    host: Annotated[str, typer.Option(help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Bind port.")] = 8000,
    reload: Annotated[bool | None, typer.Option("--reload/--no-reload", help="Auto-reload on code changes.")] = None,
) -> None:
    """Start a development server with auto-reload and debug logging."""
    from trellis._server import serve

    target, router = _load_router(path)
    serve(target, router, host=host, port=port, dev=True, reload=reload)


@app.command()
def run(
    path: Annotated[str, typer.Argument(help=_TARGET_HELP)] = "main.py",
    host: Annotated[str, typer.Option(help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Bind port.")] = 8000,
    workers: Annotated[int, typer.Option(help="Number of worker processes.")] = 1,
) -> None:
    """Start a production server."""
    from trellis._server import serve

    target, router = _load_router(path)
    serve(target, router, host=host, port=port, workers=workers)
