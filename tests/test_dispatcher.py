import pytest

from botcmd.auth import require_admin_in_groups
from botcmd.dispatcher import DispatchStage
from botcmd.registry import CommandDefinition, CommandRegistry
from tests.fakes import CommandHarness, RecordingTransport, ScriptedRoleResolver, make_config


class Recorder:
    def __init__(self, result="sent", error=None):
        self.calls = []
        self.result = result
        self.error = error

    async def __call__(self, ctx, message, command, subcommand):
        self.calls.append((command, subcommand))
        if self.error is not None:
            raise self.error
        await ctx.reply(f"ran {command}")
        return self.result


def _harness(handler, role="creator", error=None, **config):
    registry = CommandRegistry(
        [
            CommandDefinition(key="/open", help="open", handler=handler),
            CommandDefinition(key="/admin", help="admin", handler=handler, auth_rule=require_admin_in_groups),
        ]
    )
    return CommandHarness(make_config(**config), ScriptedRoleResolver(role=role, error=error), registry=registry)


@pytest.mark.asyncio
async def test_unmatched_text_is_not_handled():
    handler = Recorder()
    harness = _harness(handler)
    assert await harness.send("just chatting") is None
    assert await harness.send("/unknown") is None
    assert handler.calls == []
    assert harness.replies == []


@pytest.mark.asyncio
async def test_subcommand_is_left_trimmed_remainder():
    handler = Recorder()
    harness = _harness(handler)
    result = await harness.send("/open    some  words ")
    assert result.ok
    assert result.value == "sent"
    assert handler.calls == [("/open", "some  words ")]


@pytest.mark.asyncio
async def test_exact_match_yields_empty_subcommand():
    handler = Recorder()
    harness = _harness(handler)
    await harness.send("/open")
    assert handler.calls == [("/open", "")]


@pytest.mark.asyncio
async def test_bot_mention_suffix_is_accepted_for_this_bot_only():
    handler = Recorder()
    harness = _harness(handler)
    await harness.send("/open@test_bot arg", chat_type="group", chat_id=-100)
    assert handler.calls == [("/open", "arg")]
    assert await harness.send("/open@other_bot arg", chat_type="group", chat_id=-100) is None


@pytest.mark.asyncio
async def test_insufficient_role_names_required_and_actual_roles():
    handler = Recorder()
    harness = _harness(handler, role="member")
    result = await harness.send("/admin", chat_type="group", chat_id=-100)
    assert result.stage is DispatchStage.FAILED
    assert result.failed_at is DispatchStage.AUTHORIZING
    assert handler.calls == []
    assert len(harness.replies) == 1
    reply = harness.replies[0]
    assert "administrator" in reply and "creator" in reply and "member" in reply


@pytest.mark.asyncio
async def test_undetermined_role_has_its_own_message():
    handler = Recorder()
    harness = _harness(handler, role=None)
    result = await harness.send("/admin", chat_type="supergroup", chat_id=-100)
    assert result.failed_at is DispatchStage.AUTHORIZING
    assert handler.calls == []
    assert harness.replies == ["Permission check failed: could not determine your role in this chat."]


@pytest.mark.asyncio
async def test_resolver_exception_becomes_authentication_error_reply():
    handler = Recorder()
    harness = _harness(handler, error=RuntimeError("forbidden"))
    result = await harness.send("/admin", chat_type="group", chat_id=-100)
    assert result.failed_at is DispatchStage.AUTHORIZING
    assert harness.replies == ["Authentication Error::forbidden"]
    assert handler.calls == []


@pytest.mark.asyncio
async def test_private_chat_skips_role_lookup():
    handler = Recorder()
    harness = _harness(handler, role=None)
    result = await harness.send("/admin")
    assert result.ok
    assert harness.resolver.calls == []


@pytest.mark.asyncio
async def test_handler_exception_is_reported_not_raised():
    handler = Recorder(error=ValueError("kaput"))
    harness = _harness(handler)
    result = await harness.send("/open")
    assert result.stage is DispatchStage.FAILED
    assert result.failed_at is DispatchStage.EXECUTING
    assert harness.replies == ["Command execution failed: kaput"]


@pytest.mark.asyncio
async def test_failing_error_reply_does_not_escape(monkeypatch):
    async def broken_send(self, text, render_mode=None):
        raise ConnectionError("telegram down")

    monkeypatch.setattr(RecordingTransport, "send_text", broken_send)
    harness = _harness(Recorder(error=ValueError("kaput")))
    result = await harness.send("/open")
    assert result.stage is DispatchStage.FAILED
    assert result.error == "Command execution failed: kaput"
    assert result.value is None


@pytest.mark.asyncio
async def test_none_returning_handler_is_valid():
    async def silent(ctx, message, command, subcommand):
        return None

    registry = CommandRegistry([CommandDefinition(key="/quiet", help="quiet", handler=silent)])
    harness = CommandHarness(make_config(), ScriptedRoleResolver(), registry=registry)
    result = await harness.send("/quiet")
    assert result.ok
    assert result.value is None
