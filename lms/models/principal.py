from __future__ import annotations

from dataclasses import dataclass

AUTHORING_ROLES = frozenset({"admin", "instructor"})


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT.

    Carried through the request via FastAPI's dependency system.
    Learner endpoints act on ``user_id``; authoring endpoints also
    check ``roles``.
    """

    user_id: str
    roles: frozenset[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str] | frozenset[str]) -> bool:
        return bool(self.roles & roles)
