"""Domain entity describing the authenticated caller."""

from dataclasses import dataclass

ADMIN_ROLE = "Admin"


@dataclass(frozen=True)
class Principal:
    """Identity extracted from a verified bearer credential."""

    user_id: int
    role: str | None = None

    def is_admin(self) -> bool:
        """Return ``True`` when the caller holds the administrator role."""

        return (self.role or "").lower() == ADMIN_ROLE.lower()


__all__ = ["ADMIN_ROLE", "Principal"]
