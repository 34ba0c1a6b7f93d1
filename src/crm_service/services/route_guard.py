"""Page access gate: Loading → Denied | Allowed."""
from __future__ import annotations

from dataclasses import dataclass

from crm_service.application.dto.principal import Principal
from crm_service.application.policies.permissions import PermissionEngine
from crm_service.domain.value_objects.enums import GuardState
from crm_service.services.auth_session import AuthSession

LOGIN_PATH = "/login"
UNAUTHORIZED_PATH = "/unauthorized"


@dataclass(frozen=True, slots=True)
class RequiredPermission:
    module: str
    action: str


@dataclass(frozen=True, slots=True)
class GuardDecision:
    state: GuardState
    redirect_to: str | None = None

    @property
    def allowed(self) -> bool:
        return self.state == GuardState.ALLOWED


def evaluate_access(
    principal: Principal | None,
    role: str | None,
    required: RequiredPermission | None,
    engine: PermissionEngine,
    *,
    resolving: bool = False,
    login_path: str = LOGIN_PATH,
    unauthorized_path: str = UNAUTHORIZED_PATH,
) -> GuardDecision:
    if resolving:
        return GuardDecision(GuardState.LOADING)
    if principal is None:
        return GuardDecision(GuardState.DENIED, login_path)
    if required is not None and not engine.has_permission(role, required.module, required.action):
        return GuardDecision(GuardState.DENIED, unauthorized_path)
    return GuardDecision(GuardState.ALLOWED)


class RouteGuard:
    def __init__(
        self,
        session: AuthSession,
        engine: PermissionEngine,
        *,
        login_path: str = LOGIN_PATH,
        unauthorized_path: str = UNAUTHORIZED_PATH,
    ) -> None:
        self._session = session
        self._engine = engine
        self._login_path = login_path
        self._unauthorized_path = unauthorized_path

    def check(self, required: RequiredPermission | None = None) -> GuardDecision:
        """Evaluate without waiting; ``loading`` while the role resolves."""
        return evaluate_access(
            self._session.principal,
            self._session.role,
            required,
            self._engine,
            resolving=self._session.loading,
            login_path=self._login_path,
            unauthorized_path=self._unauthorized_path,
        )

    async def enter(self, required: RequiredPermission | None = None) -> GuardDecision:
        """Evaluate once the session has settled."""
        if self._session.loading:
            await self._session.wait_settled()
        return self.check(required)
