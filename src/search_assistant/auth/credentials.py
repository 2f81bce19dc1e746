"""Sign-in credential cache, optionally persisted to a YAML file."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from search_assistant.types import AUTH_MODES

_logger = logging.getLogger(__name__)


class CredentialStore:
    """Holds the long-lived credential and the mode it was obtained with.

    With *path* set the credential survives restarts; the file is written
    with owner-only permissions.  Without a path it lives in memory only.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path).expanduser() if path else None
        self._token: str | None = None
        self._mode: str | None = None
        self._load()

    def get_token(self) -> str | None:
        return self._token

    def get_mode(self) -> str | None:
        return self._mode

    def set_token(self, token: str, mode: str) -> None:
        if mode not in AUTH_MODES:
            raise ValueError(f"Unknown auth mode: {mode}")
        token = token.strip()
        if not token:
            raise ValueError("Token must not be empty")
        self._token = token
        self._mode = mode
        self._save()

    def clear(self) -> None:
        self._token = None
        self._mode = None
        if self._path is not None and self._path.exists():
            self._path.unlink()
            _logger.info("Removed stored credential %s", self._path)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            raw: Any = yaml.safe_load(self._path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            _logger.warning("Ignoring unreadable credential file %s: %s", self._path, e)
            return
        if not isinstance(raw, dict):
            return
        token = raw.get("token")
        mode = raw.get("mode")
        if isinstance(token, str) and token and mode in AUTH_MODES:
            self._token = token
            self._mode = mode

    def _save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            yaml.safe_dump({"token": self._token, "mode": self._mode}, f)
