from __future__ import annotations

from typing import Any

from crm_service.application.dto.principal import Principal


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    """Build a principal from Supabase-style access token claims."""
    metadata = payload.get("user_metadata") or {}
    return Principal(
        id=str(payload["sub"]),
        email=payload.get("email"),
        display_name=metadata.get("full_name") or metadata.get("name"),
    )
