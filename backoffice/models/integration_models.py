"""
Modelos de integraciones con terceros (proveedor → conector → conexión).
"""

from dataclasses import dataclass, field
from typing import Optional

from backoffice.models.fields import to_int


@dataclass
class IntegrationProvider:
    id: str
    code: str
    name: str
    category: str = ""
    auth_type: str = ""
    logo_url: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: dict) -> "IntegrationProvider":
        return cls(
            id=row["id"],
            code=row.get("code") or "",
            name=row.get("name") or "",
            category=row.get("category") or "",
            auth_type=row.get("auth_type") or "",
            logo_url=row.get("logo_url"),
            is_active=bool(row.get("is_active", True)),
        )


@dataclass
class IntegrationConnector:
    id: str
    code: str
    name: str
    provider_id: Optional[str] = None
    capabilities: dict = field(default_factory=dict)
    is_active: bool = True
    provider: Optional[IntegrationProvider] = None

    @classmethod
    def from_row(cls, row: dict) -> "IntegrationConnector":
        provider = row.get("provider")
        return cls(
            id=row["id"],
            code=row.get("code") or "",
            name=row.get("name") or "",
            provider_id=row.get("provider_id") or (provider or {}).get("id"),
            capabilities=row.get("capabilities") or {},
            is_active=bool(row.get("is_active", True)),
            provider=IntegrationProvider.from_row(provider) if provider else None,
        )


@dataclass
class IntegrationConnection:
    id: str
    organization_id: int
    connector_id: str
    name: str
    environment: str = "production"  # production | sandbox | test
    status: str = "draft"  # draft | connected | paused | error | revoked
    branch_id: Optional[int] = None
    country_code: Optional[str] = None
    settings: dict = field(default_factory=dict)
    last_health_check_at: Optional[str] = None
    last_error_at: Optional[str] = None
    last_error_message: Optional[str] = None
    error_count_24h: int = 0
    connected_at: Optional[str] = None
    created_at: Optional[str] = None
    connector: Optional[IntegrationConnector] = None

    @property
    def is_revoked(self) -> bool:
        return self.status == "revoked"

    @property
    def provider_id(self) -> Optional[str]:
        if self.connector is None:
            return None
        return self.connector.provider_id

    @classmethod
    def from_row(cls, row: dict) -> "IntegrationConnection":
        connector = row.get("connector")
        return cls(
            id=row["id"],
            organization_id=row.get("organization_id"),
            connector_id=row.get("connector_id"),
            name=row.get("name") or "",
            environment=row.get("environment") or "production",
            status=row.get("status") or "draft",
            branch_id=row.get("branch_id"),
            country_code=row.get("country_code"),
            settings=row.get("settings") or {},
            last_health_check_at=row.get("last_health_check_at"),
            last_error_at=row.get("last_error_at"),
            last_error_message=row.get("last_error_message"),
            error_count_24h=to_int(row.get("error_count_24h")),
            connected_at=row.get("connected_at"),
            created_at=row.get("created_at"),
            connector=IntegrationConnector.from_row(connector) if connector else None,
        )


@dataclass
class ConnectionStats:
    total: int = 0
    by_status: dict = field(default_factory=dict)
    by_environment: dict = field(default_factory=dict)
    errors_24h: int = 0

    @property
    def active(self) -> int:
        return self.by_status.get("connected", 0)
