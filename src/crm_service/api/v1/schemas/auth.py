from __future__ import annotations

from pydantic import BaseModel

from crm_service.domain.value_objects.enums import Role


class SignInRequest(BaseModel):
    email: str
    password: str


class PrincipalResponse(BaseModel):
    id: str
    email: str | None
    display_name: str | None

    model_config = {"from_attributes": True}


class SignInResponse(BaseModel):
    access_token: str
    principal: PrincipalResponse
    role: Role | None


class MeResponse(BaseModel):
    principal: PrincipalResponse
    role: Role | None
    permissions: dict[str, list[str]]


class PermissionCheckResponse(BaseModel):
    role: Role | None
    module: str
    action: str
    allowed: bool
