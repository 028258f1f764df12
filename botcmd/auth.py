from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from botcmd.models import GROUP_CHAT_TYPES
from botcmd.registry import AuthRule, RoleRequirement


ADMIN_ROLES = ("administrator", "creator")


class RoleResolver(Protocol):
    async def resolve_role(self, chat_id: int, speaker_id: int | None) -> str | None: ...


def require_admin_in_groups(chat_type: str, share_mode: bool) -> RoleRequirement:
    if chat_type in GROUP_CHAT_TYPES:
        return ADMIN_ROLES
    return None


def require_admin_in_shared_groups(chat_type: str, share_mode: bool) -> RoleRequirement:
    if chat_type in GROUP_CHAT_TYPES:
        # members with their own context need no permission
        if not share_mode:
            return None
        return ADMIN_ROLES
    return None


class AuthOutcome(str, Enum):
    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"
    UNDETERMINED = "undetermined"


@dataclass(frozen=True)
class AuthDecision:
    outcome: AuthOutcome
    required: tuple[str, ...] = ()
    actual: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is AuthOutcome.AUTHORIZED


class AuthorizationPolicy:
    def __init__(self, resolver: RoleResolver, share_mode: bool) -> None:
        self._resolver = resolver
        self._share_mode = share_mode
        self._logger = logging.getLogger("auth")

    @property
    def share_mode(self) -> bool:
        return self._share_mode

    def evaluate(self, rule: AuthRule | None, chat_type: str) -> RoleRequirement:
        if rule is None:
            return None
        return rule(chat_type, self._share_mode) or None

    async def check(self, requirement: RoleRequirement, chat_id: int, speaker_id: int | None) -> AuthDecision:
        """Decide whether the speaker satisfies ``requirement``.

        Exceptions raised by the role resolver propagate to the caller.
        """
        if not requirement:
            return AuthDecision(AuthOutcome.AUTHORIZED)
        role = await self._resolver.resolve_role(chat_id, speaker_id)
        if role is None:
            self._logger.warning("role lookup undetermined chat_id=%s speaker_id=%s", chat_id, speaker_id)
            return AuthDecision(AuthOutcome.UNDETERMINED, required=tuple(requirement))
        if role not in requirement:
            self._logger.info(
                "insufficient role chat_id=%s speaker_id=%s role=%s required=%s",
                chat_id,
                speaker_id,
                role,
                ",".join(requirement),
            )
            return AuthDecision(AuthOutcome.UNAUTHORIZED, required=tuple(requirement), actual=role)
        return AuthDecision(AuthOutcome.AUTHORIZED, required=tuple(requirement), actual=role)
