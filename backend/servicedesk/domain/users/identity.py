from __future__ import annotations

from dataclasses import dataclass

from servicedesk.settings import settings


@dataclass(frozen=True)
class Requester:
    user_id: str
    email: str | None = None
    role: str = "customer"

    @property
    def is_privileged(self) -> bool:
        return self.role.lower() in settings.privileged_roles

    @property
    def label(self) -> str:
        return self.email or self.user_id
