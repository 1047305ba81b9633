"""Caller identity as claimed by the upstream auth collaborator.

Authentication happens before a request reaches this service; the headers
below carry its result. Nothing here verifies them.
"""

from dataclasses import dataclass

from fastapi import Header

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Identity:
    user_id: str | None = None
    role: str | None = None
    guest_email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @property
    def is_anonymous(self) -> bool:
        return not self.user_id and not self.guest_email


async def get_identity(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
    x_guest_email: str | None = Header(default=None),
) -> Identity:
    return Identity(
        user_id=x_user_id or None,
        role=(x_user_role or "").strip().lower() or None,
        guest_email=(x_guest_email or "").strip().lower() or None,
    )
