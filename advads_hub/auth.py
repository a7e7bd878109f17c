from __future__ import annotations

import hmac
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from advads_hub.abilities.registry import AbilityContext

MANAGE_OPTIONS = "manage_options"


@dataclass(frozen=True)
class Caller:
    """Who is invoking an ability, and what they may do."""

    user_id: str
    capabilities: frozenset[str] = field(default_factory=frozenset)

    def can(self, capability: str) -> bool:
        return capability in self.capabilities


ANONYMOUS = Caller(user_id="anonymous")


def admin_caller(user_id: str = "admin") -> Caller:
    return Caller(user_id=user_id, capabilities=frozenset({MANAGE_OPTIONS}))


def can_manage_options(ctx: "AbilityContext") -> bool:
    """Permission predicate shared by every advads ability."""
    return ctx.caller.can(MANAGE_OPTIONS)


def authenticate_admin_key(provided: str | None, expected: str | None) -> Caller:
    """Map an ``X-Admin-Key`` header to a caller.

    With no key configured nobody is an administrator over HTTP.
    """
    if not provided or not expected:
        return ANONYMOUS
    if hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        return admin_caller("admin-key")
    return ANONYMOUS
