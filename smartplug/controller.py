"""
Light state transitions built on top of the kasa executor.

Each operation is a fixed sequence of kasa commands.  The first failing
command raises and the remaining steps are skipped.
"""

import logging
from collections.abc import Sequence
from typing import Protocol

logger = logging.getLogger(__name__)


class Executor(Protocol):
    async def execute(self, args: Sequence[str]) -> None: ...


class LightController:
    def __init__(self, executor: Executor) -> None:
        self._executor = executor

    async def turn_off(self) -> None:
        await self._executor.execute(["off"])

    async def turn_on(self) -> None:
        """Turn on and clear any auto-off left over from a timed run."""
        await self._executor.execute(["on"])
        await self.set_auto_off(False)

    async def turn_on_timed(self, minutes: int) -> None:
        """Turn on, then let the plug switch itself off after `minutes`."""
        # The plug has to be on before the auto-off timer means anything.
        await self._executor.execute(["on"])
        await self.set_auto_off(True, minutes)

    async def set_auto_off(self, enabled: bool, minutes: int | None = None) -> None:
        if minutes is not None:
            logger.debug("Setting auto-off to %d minutes", minutes)
            await self._executor.execute(["feature", "auto_off_minutes", str(minutes)])

        await self._executor.execute(
            ["feature", "auto_off_enabled", "True" if enabled else "False"]
        )
