"""Exception types raised by the assistant core."""

from __future__ import annotations


class AssistantError(Exception):
    """Base class for every error the assistant surfaces to the UI."""


class ConfigError(AssistantError):
    """Configuration file could not be read."""


class AuthError(AssistantError):
    """Base class for sign-in failures."""


class AuthStartError(AuthError):
    """The device or browser flow could not begin."""


class AuthDeniedError(AuthError):
    """The user or the provider rejected the authorization."""


class AuthExpiredError(AuthError):
    """The device code expired before the user approved it."""


class TokenAcquisitionError(AssistantError):
    """Exchanging the sign-in credential for a service token failed."""


class ChatRequestError(AssistantError):
    """The chat endpoint answered with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ToolExecutionError(AssistantError):
    """A resource tool failed while running."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class UnknownProviderError(AssistantError):
    """No chat provider is registered under the requested id."""
