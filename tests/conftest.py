import pathlib
import sys
from types import SimpleNamespace

import pytest

# Ensure repository root is on sys.path so bot, config and smartplug import correctly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from smartplug.executor import CommandFailed


class FakeExecutor:
    """Records every kasa command; fails the ones listed in `fail_on`."""

    def __init__(self, fail_on=(), fail_all=False):
        self.calls = []
        self.fail_on = {tuple(cmd) for cmd in fail_on}
        self.fail_all = fail_all

    async def execute(self, args):
        self.calls.append(list(args))
        if self.fail_all or tuple(args) in self.fail_on:
            raise CommandFailed(1, "device unreachable")


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def failing_executor():
    return FakeExecutor(fail_all=True)


@pytest.fixture
def kasa_env(monkeypatch):
    values = {
        "DISCORD_TOKEN": "token-abc",
        "KASA_DEVICE_IP": "192.168.1.50",
        "KASA_USERNAME": "me@example.com",
        "KASA_PASSWORD": "hunter2",
        "KASA_DIR": "/opt/python-kasa",
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("KASA_COMMAND", raising=False)
    monkeypatch.delenv("SCHEDULE_TIMEZONE", raising=False)
    return values


def http_error(status=403, reason="Forbidden", message="Missing Permissions"):
    import discord

    return discord.HTTPException(SimpleNamespace(status=status, reason=reason), message)
