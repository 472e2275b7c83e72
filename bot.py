"""
Kasa light Discord bot.

Keeps a dedicated #light-controls channel in every guild with buttons that
switch a Kasa smart plug on, off, or on for a fixed number of minutes.  A
daily schedule turns the light off at midnight and back on at 17:00.

Usage:
    python bot.py
"""

import asyncio
import logging
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

import discord

from config import Config
from smartplug.controller import LightController
from smartplug.executor import CommandError, KasaExecutor
from smartplug.scheduler import LightScheduler

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("lightbot")

CONTROL_CHANNEL_NAME = "light-controls"
CONTROL_MESSAGE = "Light Controls"

TIMED_MINUTES = (15, 30, 60)


# ---------------------------------------------------------------------------
# Button identifiers
# ---------------------------------------------------------------------------

class ButtonAction(Enum):
    TURN_ON = "turn_on"
    TURN_OFF = "turn_off"
    TURN_ON_TIMED = "turn_on_timed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ButtonPress:
    action: ButtonAction
    minutes: int | None = None


_BUTTONS: dict[str, ButtonPress] = {
    "light_on": ButtonPress(ButtonAction.TURN_ON),
    "light_off": ButtonPress(ButtonAction.TURN_OFF),
    **{
        f"light_on_{m}": ButtonPress(ButtonAction.TURN_ON_TIMED, m)
        for m in TIMED_MINUTES
    },
}


def parse_button(custom_id: str) -> ButtonPress:
    return _BUTTONS.get(custom_id, ButtonPress(ButtonAction.UNKNOWN))


def build_control_view() -> discord.ui.View:
    """On/off on the first row, timed shortcuts on the second."""
    view = discord.ui.View(timeout=None)
    view.add_item(discord.ui.Button(
        label="Turn On", custom_id="light_on", style=discord.ButtonStyle.success, row=0,
    ))
    view.add_item(discord.ui.Button(
        label="Turn Off", custom_id="light_off", style=discord.ButtonStyle.danger, row=0,
    ))
    for minutes in TIMED_MINUTES:
        view.add_item(discord.ui.Button(
            label=f"{minutes} min",
            custom_id=f"light_on_{minutes}",
            style=discord.ButtonStyle.secondary,
            row=1,
        ))
    return view


# ---------------------------------------------------------------------------
# Interaction router
# ---------------------------------------------------------------------------

class ButtonRouter:
    """Turns a button press into a light command and a short status line."""

    def __init__(self, controller: LightController) -> None:
        self.controller = controller

    async def handle(self, custom_id: str) -> str:
        press = parse_button(custom_id)

        if press.action is ButtonAction.TURN_ON:
            try:
                await self.controller.turn_on()
            except CommandError as exc:
                logger.error("Error turning light on: %s", exc)
                return "Failed to turn on light"
            return "Light turned on!"

        if press.action is ButtonAction.TURN_OFF:
            try:
                await self.controller.turn_off()
            except CommandError as exc:
                logger.error("Error turning light off: %s", exc)
                return "Failed to turn off light"
            return "Light turned off!"

        if press.action is ButtonAction.TURN_ON_TIMED:
            try:
                await self.controller.turn_on_timed(press.minutes)
            except CommandError as exc:
                logger.error("Error setting timed light: %s", exc)
                return "Failed to set timed light"
            return f"Light turned on for {press.minutes} minutes!"

        logger.warning("Unknown button pressed: %r", custom_id)
        return "Unknown button"

    async def respond(self, interaction: discord.Interaction) -> str:
        """Handle a component interaction and send one ephemeral reply."""
        custom_id = (interaction.data or {}).get("custom_id", "")
        content = await self.handle(custom_id)
        try:
            await interaction.response.send_message(content, ephemeral=True)
        except discord.HTTPException as exc:
            logger.error("Cannot respond to button: %s", exc)
        return content


# ---------------------------------------------------------------------------
# Control channel
# ---------------------------------------------------------------------------

class ControlSurface:
    """
    The one #light-controls channel the bot posts its buttons to.

    Rebuilt on every startup: old channels with the same name are deleted
    and a fresh one is created.  Nothing here raises, so a Discord hiccup
    never keeps the scheduler or the buttons from working.

    The channel id sits behind a single asyncio.Lock that readers and the
    writer both take; it only ever covers one read or one assignment and is
    never held across a Discord API call.
    """

    def __init__(self, name: str = CONTROL_CHANNEL_NAME) -> None:
        self.name = name
        self._lock = asyncio.Lock()
        self._channel_id: int | None = None

    async def channel_id(self) -> int | None:
        async with self._lock:
            return self._channel_id

    async def rebuild(self, guilds: Iterable[discord.Guild]) -> None:
        for guild in guilds:
            await self._rebuild_guild(guild)

    async def _rebuild_guild(self, guild: discord.Guild) -> None:
        try:
            channels = await guild.fetch_channels()
        except discord.HTTPException as exc:
            logger.error("Failed to list channels in %s: %s", guild, exc)
            channels = []

        for channel in channels:
            if channel.name != self.name:
                continue
            try:
                await channel.delete()
                logger.info("Deleted old control channel %s in %s", channel.id, guild)
            except discord.HTTPException as exc:
                logger.error("Failed to delete old control channel: %s", exc)

        try:
            channel = await guild.create_text_channel(self.name)
        except discord.HTTPException as exc:
            logger.error("Error creating control channel: %s", exc)
            return

        # Only the assignment happens under the lock; never an API call.
        async with self._lock:
            self._channel_id = channel.id
        logger.info("Control channel for %s is %s", guild, channel.id)

        try:
            await channel.send(CONTROL_MESSAGE, view=build_control_view())
        except discord.HTTPException as exc:
            logger.error("Error sending control message: %s", exc)


# ---------------------------------------------------------------------------
# Bot
# ---------------------------------------------------------------------------

class LightBot(discord.Bot):
    def __init__(self, config: Config) -> None:
        intents = discord.Intents.default()
        super().__init__(intents=intents)
        self.cfg = config

        executor = KasaExecutor(config.credentials, command=config.kasa_command)
        self.controller = LightController(executor)
        self.router = ButtonRouter(self.controller)
        self.surface = ControlSurface()
        self.scheduler = LightScheduler(self.controller, timezone=config.schedule_timezone)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def on_ready(self) -> None:
        logger.info("Logged in as %s (ID: %s)", self.user, self.user.id)
        await self.surface.rebuild(self.guilds)
        self._start_scheduler()

    def _start_scheduler(self) -> None:
        try:
            self.scheduler.start()
        except Exception:
            logger.exception("Failed to start scheduler")

    async def close(self) -> None:
        self.scheduler.shutdown()
        await super().close()

    # ------------------------------------------------------------------
    # Interactions
    # ------------------------------------------------------------------

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        if interaction.type == discord.InteractionType.component:
            await self.router.respond(interaction)
            return
        await self.process_application_commands(interaction)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    try:
        config = Config.from_env()
    except EnvironmentError as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(1)

    # Python 3.12+ no longer implicitly creates an event loop on the main
    # thread.  discord.Bot.__init__ needs one before bot.run() sets things up,
    # so we create and register it explicitly.
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    bot = LightBot(config)

    try:
        bot.run(config.discord_token, reconnect=True)
    except discord.LoginFailure:
        logger.error("Invalid Discord token. Check your DISCORD_TOKEN.")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Shutting down…")


if __name__ == "__main__":
    main()
