"""
Identity provider port.

The application only needs to know whether a user id is real and what
name to show for it; the concrete provider (Clerk) lives in
infrastructure.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from domain.chat.entity import ConnectedUser


@dataclass(frozen=True)
class IdentityUser:
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        return ConnectedUser.derive_display_name(self.id, self.first_name, self.last_name)


class IdentityProviderPort(Protocol):
    """Resolve a user id against the external identity provider.

    Returns None for unknown users. Transport/provider failures raise
    UpstreamFailureException.
    """

    async def get_user(self, user_id: str) -> Optional[IdentityUser]: ...


__all__ = ["IdentityUser", "IdentityProviderPort"]
