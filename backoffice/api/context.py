"""
Contexto de tenant (organización, sucursal, usuario).

Se pasa explícitamente a cada API en lugar de leer un "organización actual" global.
"""

from dataclasses import dataclass, replace

from backoffice.config import ORGANIZATION_ID, BRANCH_ID, USER_ID


class MissingContextError(ValueError):
    """Falta un dato de contexto obligatorio para la operación."""


@dataclass(frozen=True)
class TenantContext:
    organization_id: int | None
    branch_id: int | None = None
    user_id: str | None = None

    @classmethod
    def from_config(cls) -> "TenantContext":
        return cls(organization_id=ORGANIZATION_ID, branch_id=BRANCH_ID, user_id=USER_ID)

    def with_branch(self, branch_id: int) -> "TenantContext":
        return replace(self, branch_id=branch_id)

    def with_user(self, user_id: str) -> "TenantContext":
        return replace(self, user_id=user_id)

    def require_organization(self) -> int:
        if not self.organization_id:
            raise MissingContextError("Organization ID no disponible")
        return self.organization_id

    def require_branch(self) -> int:
        if not self.branch_id:
            raise MissingContextError("Branch ID no disponible")
        return self.branch_id

    def require_user(self) -> str:
        if not self.user_id:
            raise MissingContextError("No se pudo determinar el usuario actual")
        return self.user_id
