"""Pattern normalization applied before routes reach the multiplexer."""

from __future__ import annotations

from trellis.config import RouterConfig

EXACT_MATCH_MARKER = "{$}"

_DEFAULT_CONFIG = RouterConfig()


def sanitize_path(path: str, config: RouterConfig | None = None) -> str:
    """Normalize *path* into the form the multiplexer expects.

    With default config ``"api//users"`` becomes ``"/api/users/{$}"``.
    When both normalization switches are off the input is returned as-is.
    """
    config = config or _DEFAULT_CONFIG
    if config.disable_trailing_slash and config.disable_exact_match_wildcard:
        return path

    while "//" in path:
        path = path.replace("//", "/")

    if not path.startswith("/"):
        path = "/" + path

    if not config.disable_trailing_slash and not path.endswith("/"):
        path += "/"

    if not config.disable_exact_match_wildcard:
        path += EXACT_MATCH_MARKER

    return path


def registration_pattern(method: str, path: str, config: RouterConfig | None = None) -> str:
    """Return the ``"METHOD /path"`` string handed to the multiplexer."""
    return f"{method} {sanitize_path(path, config)}"
