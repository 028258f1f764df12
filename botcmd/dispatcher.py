from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from botcmd.auth import AuthOutcome, AuthorizationPolicy
from botcmd.context import CommandContext
from botcmd.errors import AuthenticationLookupFailure, HandlerExecutionFailure, InsufficientRole
from botcmd.models import IncomingMessage
from botcmd.registry import CommandDefinition, CommandRegistry
from botcmd.utils import strip_bot_mention


AUTH_UNDETERMINED_TEXT = "Permission check failed: could not determine your role in this chat."


class DispatchStage(str, Enum):
    MATCHING = "matching"
    AUTHORIZING = "authorizing"
    PARSING = "parsing"
    EXECUTING = "executing"
    RESPONDING = "responding"
    FAILED = "failed"


@dataclass(frozen=True)
class DispatchResult:
    command: str
    stage: DispatchStage
    value: Any = None
    failed_at: DispatchStage | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.stage is DispatchStage.RESPONDING


class Dispatcher:
    """Routes command messages through matching, authorization and execution.

    Every failure after a command matched is turned into exactly one chat reply;
    nothing raised by the role resolver or a handler leaves ``dispatch``.
    """

    def __init__(self, registry: CommandRegistry, policy: AuthorizationPolicy, bot_username: str = "") -> None:
        self._registry = registry
        self._policy = policy
        self._bot_username = bot_username
        self._logger = logging.getLogger("dispatcher")

    @property
    def registry(self) -> CommandRegistry:
        return self._registry

    def match(self, text: str) -> tuple[CommandDefinition, str] | None:
        normalized = strip_bot_mention(text, self._bot_username)
        if normalized is None:
            return None
        definition = self._registry.lookup(normalized)
        if definition is None:
            return None
        return definition, normalized

    async def dispatch(self, message: IncomingMessage, ctx: CommandContext) -> DispatchResult | None:
        matched = self.match(message.text or "")
        if matched is None:
            return None
        definition, text = matched
        key = definition.key
        self._logger.info("command matched key=%s chat_id=%s speaker_id=%s", key, message.chat_id, message.speaker_id)

        if definition.auth_rule is not None:
            try:
                await self._authorize(definition, message)
            except (AuthenticationLookupFailure, InsufficientRole) as exc:
                self._logger.info("command denied key=%s chat_id=%s reason=%s", key, message.chat_id, exc)
                return await self._fail(ctx, key, DispatchStage.AUTHORIZING, str(exc))
            except Exception as exc:
                self._logger.exception("authorization failed key=%s chat_id=%s", key, message.chat_id)
                return await self._fail(ctx, key, DispatchStage.AUTHORIZING, f"Authentication Error::{exc}")

        subcommand = text[len(key) :].lstrip()

        try:
            value = await definition.handler(ctx, message, key, subcommand)
        except Exception as exc:
            self._logger.exception("command failed key=%s chat_id=%s", key, message.chat_id)
            failure = HandlerExecutionFailure(key, exc)
            return await self._fail(ctx, key, DispatchStage.EXECUTING, str(failure))
        return DispatchResult(command=key, stage=DispatchStage.RESPONDING, value=value)

    async def _authorize(self, definition: CommandDefinition, message: IncomingMessage) -> None:
        requirement = self._policy.evaluate(definition.auth_rule, message.chat_type)
        decision = await self._policy.check(requirement, message.chat_id, message.speaker_id)
        if decision.outcome is AuthOutcome.UNDETERMINED:
            raise AuthenticationLookupFailure(AUTH_UNDETERMINED_TEXT)
        if decision.outcome is AuthOutcome.UNAUTHORIZED:
            raise InsufficientRole(decision.required, decision.actual)

    async def _fail(self, ctx: CommandContext, key: str, stage: DispatchStage, text: str) -> DispatchResult:
        value = None
        try:
            value = await ctx.reply(text)
        except Exception:
            self._logger.exception("failed to deliver error reply key=%s chat_id=%s", key, ctx.chat.chat_id)
        return DispatchResult(command=key, stage=DispatchStage.FAILED, value=value, failed_at=stage, error=text)
