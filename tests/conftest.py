from __future__ import annotations

import pytest

from botcmd.config import AppConfig
from tests.fakes import CommandHarness, ScriptedRoleResolver, make_config


@pytest.fixture
def config() -> AppConfig:
    return make_config()


@pytest.fixture
def resolver() -> ScriptedRoleResolver:
    return ScriptedRoleResolver()


@pytest.fixture
def harness(config: AppConfig, resolver: ScriptedRoleResolver) -> CommandHarness:
    return CommandHarness(config, resolver)
