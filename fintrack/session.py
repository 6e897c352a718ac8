"""Session layer: who is signed in and until when."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import pandas as pd

from .dates import now as local_now

logger = logging.getLogger(__name__)

DEFAULT_SESSION_LIFETIME_SECONDS = 3600


@dataclass(frozen=True)
class Session:
    user_id: str
    expires_at: pd.Timestamp

    def seconds_remaining(self, at: pd.Timestamp) -> float:
        return (self.expires_at - at).total_seconds()

    def is_expired(self, at: pd.Timestamp) -> bool:
        return self.seconds_remaining(at) <= 0


class SessionManager:
    """Interface the dashboard and keep-alive service talk to."""

    def current_session(self) -> Optional[Session]:
        raise NotImplementedError

    def refresh_session(self) -> Optional[Session]:
        raise NotImplementedError

    def current_user_id(self) -> Optional[str]:
        session = self.current_session()
        return session.user_id if session is not None else None


class LocalSessionManager(SessionManager):
    """In-memory sessions with a fixed lifetime, for a single local user."""

    def __init__(self, lifetime_seconds: float = DEFAULT_SESSION_LIFETIME_SECONDS,
                 clock: Callable[[], pd.Timestamp] = local_now):
        self.lifetime = pd.Timedelta(seconds=lifetime_seconds)
        self._clock = clock
        self._session: Optional[Session] = None

    def sign_in(self, user_id: str) -> Session:
        if not user_id:
            raise ValueError("user_id cannot be empty")
        self._session = Session(user_id=str(user_id), expires_at=self._clock() + self.lifetime)
        logger.info("Signed in user %s", user_id)
        return self._session

    def sign_out(self) -> None:
        if self._session is not None:
            logger.info("Signed out user %s", self._session.user_id)
        self._session = None

    def current_session(self) -> Optional[Session]:
        if self._session is None:
            return None
        if self._session.is_expired(self._clock()):
            logger.info("Session for user %s expired", self._session.user_id)
            self._session = None
        return self._session

    def refresh_session(self) -> Optional[Session]:
        session = self.current_session()
        if session is None:
            return None
        self._session = Session(user_id=session.user_id, expires_at=self._clock() + self.lifetime)
        logger.debug("Refreshed session for user %s", session.user_id)
        return self._session
