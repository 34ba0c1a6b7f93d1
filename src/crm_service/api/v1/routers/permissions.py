from __future__ import annotations

from fastapi import APIRouter, Query

from crm_service.api.deps import CurrentPrincipal, CurrentRole, EngineDep
from crm_service.api.v1.schemas.auth import MeResponse, PermissionCheckResponse, PrincipalResponse
from crm_service.domain.value_objects.enums import Action

router = APIRouter(prefix="/api/v1", tags=["permissions"])


@router.get("/me", response_model=MeResponse)
async def me(principal: CurrentPrincipal, role: CurrentRole, engine: EngineDep) -> MeResponse:
    return MeResponse(
        principal=PrincipalResponse.model_validate(principal),
        role=role,
        permissions={
            action.value: sorted(engine.allowed_modules(role, action.value))
            for action in Action
        },
    )


@router.get("/permissions/check", response_model=PermissionCheckResponse)
async def check_permission(
    principal: CurrentPrincipal,
    role: CurrentRole,
    engine: EngineDep,
    module: str = Query(..., min_length=1),
    action: str = Query(..., min_length=1),
) -> PermissionCheckResponse:
    return PermissionCheckResponse(
        role=role,
        module=module,
        action=action,
        allowed=engine.has_permission(role, module, action),
    )
