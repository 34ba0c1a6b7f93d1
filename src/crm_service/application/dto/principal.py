from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity supplied by the session provider."""

    id: str
    email: str | None = None
    display_name: str | None = None
