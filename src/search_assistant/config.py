"""Configuration for the search assistant.

Config discovery (first match wins):
  1. explicit path (``--config`` flag)
  2. ``./search_assistant.yaml``
  3. ``~/.config/search-assistant/config.yaml``
  4. Built-in defaults
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from search_assistant.errors import ConfigError
from search_assistant.types import ChatSettings

_logger = logging.getLogger(__name__)

_CONFIG_DIR = Path.home() / ".config" / "search-assistant"


# ---------------------------------------------------------------------------
# Config data structures
# ---------------------------------------------------------------------------

@dataclass
class ProviderSpec:
    """Endpoints and client identity for a chat provider."""

    name: str = "GitHub Copilot"
    client_id: str = "Iv1.b507a08c87ecfe98"
    scope: str = "read:user"
    device_code_url: str = "https://github.com/login/device/code"
    access_token_url: str = "https://github.com/login/oauth/access_token"
    service_token_url: str = "https://api.github.com/copilot_internal/v2/token"
    chat_url: str = "https://api.githubcopilot.com/chat/completions"
    models_url: str = "https://api.githubcopilot.com/models"
    user_agent: str = "AzureAISearchExplorer"
    editor_version: str = "AzureAISearchExplorer/1.0"
    plugin_version: str = "azure-ai-search-explorer/1.0"

    def base_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            "Editor-Version": self.editor_version,
            "Editor-Plugin-Version": self.plugin_version,
        }


@dataclass
class ChatDefaults:
    """Default model settings for new conversations."""

    model: str = "gpt-5-mini"
    temperature: float = 0.2
    max_tokens: int = 1024

    def to_settings(self, system_prompt: str | None = None) -> ChatSettings:
        return ChatSettings(
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            system_prompt=system_prompt,
        )


@dataclass
class AssistantConfig:
    """Top-level config."""

    # Active provider id
    provider: str = "copilot"

    providers: dict[str, ProviderSpec] = field(
        default_factory=lambda: {"copilot": ProviderSpec()}
    )

    chat: ChatDefaults = field(default_factory=ChatDefaults)

    # Tool loop
    max_tool_iterations: int = 8

    # Device flow backoff step on slow_down (seconds)
    slow_down_step: int = 5

    # Overall chat request timeout; None waits for the stream to end
    request_timeout: float | None = None
    connect_timeout: float = 30

    credentials_path: Path | None = field(
        default_factory=lambda: _CONFIG_DIR / "credentials.yaml"
    )

    @property
    def active_provider(self) -> ProviderSpec:
        return self.providers.get(self.provider, ProviderSpec())


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_SEARCH_PATHS = [
    Path("./search_assistant.yaml"),
    _CONFIG_DIR / "config.yaml",
]


def _known(cls: type, raw: dict[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in raw.items() if k in names and v is not None}


def _parse_provider(raw: dict[str, Any] | None) -> ProviderSpec:
    return ProviderSpec(**_known(ProviderSpec, raw or {}))


def _parse_chat(raw: dict[str, Any] | None) -> ChatDefaults:
    return ChatDefaults(**_known(ChatDefaults, raw or {}))


def load_config(path: str | Path | None = None) -> AssistantConfig:
    """Load configuration from YAML.

    Parameters
    ----------
    path:
        Explicit config path.  If *None*, search default locations.

    Returns
    -------
    AssistantConfig
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            _logger.warning("Config file not found: %s - using defaults", path)
            return AssistantConfig()
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is None:
        _logger.info("No config file found - using defaults")
        return AssistantConfig()

    _logger.info("Loading config from %s", config_path)
    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid config file {config_path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Invalid config file {config_path}: expected a mapping")

    providers: dict[str, ProviderSpec] = {}
    for name, praw in (raw.get("providers") or {}).items():
        providers[name] = _parse_provider(praw)
    if not providers:
        providers["copilot"] = ProviderSpec()

    credentials_path: Path | None = _CONFIG_DIR / "credentials.yaml"
    if "credentials_path" in raw:
        cp = raw["credentials_path"]
        credentials_path = Path(cp).expanduser() if cp else None

    timeout = raw.get("request_timeout")
    return AssistantConfig(
        provider=raw.get("provider", "copilot"),
        providers=providers,
        chat=_parse_chat(raw.get("chat")),
        max_tool_iterations=int(raw.get("max_tool_iterations", 8)),
        slow_down_step=int(raw.get("slow_down_step", 5)),
        request_timeout=float(timeout) if timeout is not None else None,
        connect_timeout=float(raw.get("connect_timeout", 30)),
        credentials_path=credentials_path,
    )
