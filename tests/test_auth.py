import pytest

from botcmd.auth import (
    ADMIN_ROLES,
    AuthOutcome,
    AuthorizationPolicy,
    require_admin_in_groups,
    require_admin_in_shared_groups,
)
from tests.fakes import ScriptedRoleResolver


NON_GROUP_TYPES = ["private", "channel"]
GROUP_TYPES = ["group", "supergroup"]


@pytest.mark.parametrize("chat_type", NON_GROUP_TYPES)
@pytest.mark.parametrize("share_mode", [True, False])
@pytest.mark.parametrize("rule", [require_admin_in_groups, require_admin_in_shared_groups])
def test_no_restriction_outside_groups(rule, share_mode, chat_type):
    assert rule(chat_type, share_mode) is None


@pytest.mark.parametrize("chat_type", GROUP_TYPES)
def test_shared_rule_follows_share_mode(chat_type):
    assert require_admin_in_shared_groups(chat_type, False) is None
    assert require_admin_in_shared_groups(chat_type, True) == ("administrator", "creator")


@pytest.mark.parametrize("chat_type", GROUP_TYPES)
@pytest.mark.parametrize("share_mode", [True, False])
def test_group_rule_always_requires_admins(chat_type, share_mode):
    assert require_admin_in_groups(chat_type, share_mode) == ADMIN_ROLES


def test_evaluate_uses_policy_share_mode():
    policy = AuthorizationPolicy(ScriptedRoleResolver(), share_mode=True)
    assert policy.evaluate(require_admin_in_shared_groups, "group") == ADMIN_ROLES
    assert policy.evaluate(None, "group") is None


@pytest.mark.asyncio
async def test_check_without_requirement_skips_lookup():
    resolver = ScriptedRoleResolver(role=None)
    policy = AuthorizationPolicy(resolver, share_mode=False)
    decision = await policy.check(None, chat_id=-100, speaker_id=1)
    assert decision.outcome is AuthOutcome.AUTHORIZED
    assert resolver.calls == []


@pytest.mark.asyncio
async def test_check_unknown_role_is_undetermined():
    policy = AuthorizationPolicy(ScriptedRoleResolver(role=None), share_mode=False)
    decision = await policy.check(ADMIN_ROLES, chat_id=-100, speaker_id=1)
    assert decision.outcome is AuthOutcome.UNDETERMINED
    assert not decision.allowed


@pytest.mark.asyncio
async def test_check_member_is_unauthorized_with_context():
    policy = AuthorizationPolicy(ScriptedRoleResolver(role="member"), share_mode=False)
    decision = await policy.check(ADMIN_ROLES, chat_id=-100, speaker_id=7)
    assert decision.outcome is AuthOutcome.UNAUTHORIZED
    assert decision.required == ADMIN_ROLES
    assert decision.actual == "member"


@pytest.mark.asyncio
async def test_check_admin_is_authorized():
    resolver = ScriptedRoleResolver(role="administrator")
    policy = AuthorizationPolicy(resolver, share_mode=False)
    decision = await policy.check(ADMIN_ROLES, chat_id=-100, speaker_id=7)
    assert decision.allowed
    assert resolver.calls == [(-100, 7)]


@pytest.mark.asyncio
async def test_check_propagates_resolver_errors():
    policy = AuthorizationPolicy(ScriptedRoleResolver(error=RuntimeError("boom")), share_mode=False)
    with pytest.raises(RuntimeError):
        await policy.check(ADMIN_ROLES, chat_id=-100, speaker_id=7)
