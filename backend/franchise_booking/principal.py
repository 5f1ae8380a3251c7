"""Caller identity passed explicitly into every booking operation."""

from __future__ import annotations

from dataclasses import dataclass

from .core.enums import RoleName


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller as resolved by the upstream auth gateway."""

    id: str
    role: RoleName

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN

    @property
    def is_professional(self) -> bool:
        return self.role == RoleName.PROFESSIONAL

    @property
    def is_customer(self) -> bool:
        return self.role == RoleName.CUSTOMER
