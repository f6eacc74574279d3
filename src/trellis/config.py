"""Router configuration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class RouterConfig(BaseModel):
    """Path normalization switches. Both default to normalization enabled.

    ``disable_exact_match_wildcard``
        Do not append ``{$}``, so a pattern ending in ``/`` matches its
        whole subtree in the multiplexer.
    ``disable_trailing_slash``
        Do not force a trailing ``/`` onto patterns.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    disable_exact_match_wildcard: bool = False
    disable_trailing_slash: bool = False
