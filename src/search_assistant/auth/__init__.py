"""Sign-in and token handling."""

from search_assistant.auth.credentials import CredentialStore
from search_assistant.auth.device_flow import DeviceAuthClient, DeviceAuthState
from search_assistant.auth.token_broker import TokenBroker, TokenState

__all__ = [
    "CredentialStore",
    "DeviceAuthClient",
    "DeviceAuthState",
    "TokenBroker",
    "TokenState",
]
