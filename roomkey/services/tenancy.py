"""Tenant context and authentication scope."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class PlatformScope:
    """Platform administration surface."""


@dataclass(frozen=True)
class OrganizationScope:
    """Bound to a single organization."""

    organization_id: UUID


@dataclass(frozen=True)
class LegacyScope:
    """Single-tenant surface with no organization binding."""


Scope = PlatformScope | OrganizationScope | LegacyScope


@dataclass(frozen=True)
class TenantContext:
    """Request-scoped tenant resolution result. Never persisted."""

    organization_id: UUID | None = None
    is_platform_scope: bool = False

    @classmethod
    def platform(cls) -> "TenantContext":
        return cls(is_platform_scope=True)

    @classmethod
    def for_organization(cls, organization_id: UUID) -> "TenantContext":
        return cls(organization_id=organization_id)

    def to_scope(self) -> Scope:
        if self.is_platform_scope:
            return PlatformScope()
        if self.organization_id is not None:
            return OrganizationScope(self.organization_id)
        return LegacyScope()


def describe_scope(scope: Scope) -> str:
    """Short label for log lines."""
    if isinstance(scope, PlatformScope):
        return "platform"
    if isinstance(scope, OrganizationScope):
        return f"org:{scope.organization_id}"
    return "legacy"
