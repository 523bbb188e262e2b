"""Admin login session and the channel announcing failed token refreshes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from checkup_admin.log import get_logger

logger = get_logger(__name__)

AuthErrorHandler = Callable[[], None]


class AuthEvents:
    """Publish/subscribe channel for authentication failures.

    The active editing session subscribes so it can back up its form before
    the client logs out.
    """

    def __init__(self) -> None:
        self._handlers: List[AuthErrorHandler] = []

    def subscribe(self, handler: AuthErrorHandler) -> Callable[[], None]:
        """Register ``handler`` and return a callable that unregisters it."""

        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def emit(self) -> None:
        """Call every handler; one failing handler does not stop the others."""

        for handler in list(self._handlers):
            try:
                handler()
            except Exception:  # pylint: disable=broad-except
                logger.exception("Auth error handler failed")

    def __len__(self) -> int:
        return len(self._handlers)


@dataclass
class AuthSession:
    """Tokens and user of the signed-in administrator."""

    base_url: str
    http: requests.Session = field(default_factory=requests.Session, repr=False)
    user: Optional[Dict[str, Any]] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = field(default=None, repr=False)
    timeout: float = 10

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def set_auth(self, user: Optional[Dict[str, Any]], access_token: str, refresh_token: str) -> None:
        self.user = user
        self.access_token = access_token
        self.refresh_token = refresh_token

    def login(self, email: str, password: str) -> bool:
        """Sign in with ``email``/``password``; return whether it succeeded."""

        try:
            response = self.http.post(
                self._url("/auth/login"),
                json={"email": email, "password": password},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
            self.set_auth(payload.get("user"), payload["access_token"], payload["refresh_token"])
        except (requests.RequestException, KeyError, ValueError) as exc:
            logger.warning("Login failed: %s", exc)
            return False
        logger.info("Signed in as %s", (self.user or {}).get("email", email))
        return True

    def refresh(self) -> bool:
        """Exchange the refresh token for new tokens; return whether it worked."""

        if not self.refresh_token:
            return False
        try:
            response = self.http.post(
                self._url("/auth/refresh"),
                json={"refresh_token": self.refresh_token},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
            self.access_token = payload["access_token"]
            self.refresh_token = payload["refresh_token"]
        except (requests.RequestException, KeyError, ValueError) as exc:
            logger.warning("Token refresh failed: %s", exc)
            return False
        return True

    def logout(self) -> None:
        self.user = None
        self.access_token = None
        self.refresh_token = None
