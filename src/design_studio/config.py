"""Configuration loading from environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class Config:
    claude_dir: Path = field(default_factory=lambda: Path.home() / ".claude")
    requests_dir: Path | None = None
    agent_command: str = "claude"
    shell: str = "/bin/sh"
    debounce_seconds: float = 2.0
    force_polling: bool | None = None
    screenshots_enabled: bool = True
    slack_bot_token: str | None = None
    slack_channel: str | None = None
    host: str = "127.0.0.1"
    port: int = 8787

    def __post_init__(self):
        if self.requests_dir is None:
            self.requests_dir = self.claude_dir / "studio" / "requests"

    @property
    def projects_dir(self) -> Path:
        """Root of the per-project session logs."""
        return self.claude_dir / "projects"

    @property
    def settings_file(self) -> Path:
        return self.claude_dir / "settings.json"

    @property
    def hint_roots(self) -> list[Path]:
        return [
            self.claude_dir / "tasks",
            self.claude_dir / "teams",
            self.claude_dir / "plans",
            self.settings_file,
        ]

    @classmethod
    def from_env(cls) -> "Config":
        config = cls()

        if claude_dir := os.environ.get("STUDIO_CLAUDE_DIR"):
            config.claude_dir = Path(claude_dir)
            config.requests_dir = config.claude_dir / "studio" / "requests"

        if requests_dir := os.environ.get("STUDIO_REQUESTS_DIR"):
            config.requests_dir = Path(requests_dir)

        if agent := os.environ.get("STUDIO_AGENT_COMMAND"):
            config.agent_command = agent

        if shell := os.environ.get("SHELL"):
            config.shell = shell

        if debounce := os.environ.get("STUDIO_DEBOUNCE_SECONDS"):
            config.debounce_seconds = float(debounce)

        if os.environ.get("STUDIO_FORCE_POLLING") == "1":
            config.force_polling = True

        if os.environ.get("STUDIO_SCREENSHOTS") == "0":
            config.screenshots_enabled = False

        config.slack_bot_token = os.environ.get("SLACK_BOT_TOKEN")
        config.slack_channel = os.environ.get("STUDIO_SLACK_CHANNEL")

        if host := os.environ.get("STUDIO_HOST"):
            config.host = host

        if port := os.environ.get("STUDIO_PORT"):
            config.port = int(port)

        return config


def get_config() -> Config:
    return Config.from_env()
