import os
import shlex
from dataclasses import dataclass, field

from dotenv import load_dotenv

from smartplug.executor import DeviceCredentials

load_dotenv()


@dataclass
class Config:
    # Discord bot token (from https://discord.com/developers/applications)
    discord_token: str = field(repr=False)

    # Kasa smart plug address on the local network
    kasa_device_ip: str

    # TP-Link cloud account used by newer Kasa firmware
    kasa_username: str
    kasa_password: str = field(repr=False)

    # Checkout of python-kasa that `uv run kasa` is executed from
    kasa_dir: str

    # Command prefix used to launch the kasa CLI
    kasa_command: tuple[str, ...]

    # IANA zone for the daily on/off jobs (None = process local time)
    schedule_timezone: str | None

    @property
    def credentials(self) -> DeviceCredentials:
        return DeviceCredentials(
            host=self.kasa_device_ip,
            username=self.kasa_username,
            password=self.kasa_password,
            workdir=self.kasa_dir,
        )

    @classmethod
    def from_env(cls) -> "Config":
        missing = []

        def require(key: str) -> str:
            val = os.getenv(key, "").strip()
            if not val:
                missing.append(key)
            return val

        discord_token = require("DISCORD_TOKEN")
        device_ip = require("KASA_DEVICE_IP")
        username = require("KASA_USERNAME")
        password = require("KASA_PASSWORD")
        kasa_dir = require("KASA_DIR")

        if missing:
            raise EnvironmentError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        kasa_command = tuple(shlex.split(os.getenv("KASA_COMMAND", "uv run kasa")))
        if not kasa_command:
            raise EnvironmentError("KASA_COMMAND must not be empty")

        timezone = os.getenv("SCHEDULE_TIMEZONE", "").strip() or None

        return cls(
            discord_token=discord_token,
            kasa_device_ip=device_ip,
            kasa_username=username,
            kasa_password=password,
            kasa_dir=kasa_dir,
            kasa_command=kasa_command,
            schedule_timezone=timezone,
        )
