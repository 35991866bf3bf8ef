"""In-process stand-ins for the session provider and router collaborators."""

from collections import deque

from pickersync.common.config import settings
from pickersync.common.logging import logger


class SessionState:
    """Token and role for the signed-in user, as handed over by the auth layer."""

    def __init__(self, token: str | None = None, role: str | None = None) -> None:
        self.token = token
        self.role = (role or settings.user_role).upper()

    @classmethod
    def from_settings(cls) -> "SessionState":
        token = settings.auth_token.get_secret_value() if settings.auth_token else None
        return cls(token, settings.user_role)

    def get_auth_token(self) -> str | None:
        return self.token

    def get_current_role(self) -> str:
        return self.role


class IntentRouter:
    """Records navigation intents for the UI layer to follow."""

    def __init__(self, keep: int = 50) -> None:
        self.intents: deque[str] = deque(maxlen=keep)

    def navigate(self, path: str) -> None:
        self.intents.append(path)
        logger.info("navigation intent path=%s", path)

    @property
    def last(self) -> str | None:
        return self.intents[-1] if self.intents else None
