from __future__ import annotations

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from kitchen_auth.core.config import ACCOUNT_LOCKOUT_DURATION, MAX_LOGIN_ATTEMPTS
from kitchen_auth.core.errors import AuthSystemError, RateLimitedError
from kitchen_auth.models.login_attempt import LoginAttempt

logger = logging.getLogger(__name__)


class LockoutTracker(ABC):
    """Failed-attempt bookkeeping per client key with a time-windowed reset."""

    def __init__(self, max_attempts: int = MAX_LOGIN_ATTEMPTS, lockout_seconds: int = ACCOUNT_LOCKOUT_DURATION):
        self.max_attempts = max(1, int(max_attempts))
        self.lockout_seconds = max(1, int(lockout_seconds))

    @abstractmethod
    def retry_after(self, client_key: str) -> Optional[int]:
        """Seconds until ``client_key`` may try again, or None when it is not locked."""

    @abstractmethod
    def register_failure(self, client_key: str) -> int:
        """Record one failure and return the failure count inside the current window."""

    @abstractmethod
    def clear(self, client_key: str) -> None:
        ...

    def ensure_not_locked(self, client_key: str) -> None:
        remaining = self.retry_after(client_key)
        if remaining is not None:
            raise RateLimitedError(remaining)


@dataclass
class _AttemptState:
    count: int
    last_failed: float
    locked_until: Optional[float] = None


class InMemoryLockoutTracker(LockoutTracker):
    def __init__(
        self,
        max_attempts: int = MAX_LOGIN_ATTEMPTS,
        lockout_seconds: int = ACCOUNT_LOCKOUT_DURATION,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(max_attempts, lockout_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._attempts: Dict[str, _AttemptState] = {}

    def retry_after(self, client_key: str) -> Optional[int]:
        now = self._clock()
        with self._lock:
            state = self._attempts.get(client_key)
            if state is None or state.locked_until is None:
                return None
            if state.locked_until <= now:
                self._attempts.pop(client_key, None)
                return None
            return max(1, math.ceil(state.locked_until - now))

    def _prune(self, now: float) -> None:
        stale = [
            key
            for key, state in self._attempts.items()
            if now - state.last_failed > self.lockout_seconds
            and (state.locked_until is None or state.locked_until <= now)
        ]
        for key in stale:
            del self._attempts[key]

    def register_failure(self, client_key: str) -> int:
        now = self._clock()
        with self._lock:
            self._prune(now)
            state = self._attempts.get(client_key)
            if state is None or now - state.last_failed > self.lockout_seconds:
                state = _AttemptState(count=0, last_failed=now)
                self._attempts[client_key] = state
            state.count += 1
            state.last_failed = now
            if state.count >= self.max_attempts:
                state.locked_until = now + self.lockout_seconds
            return state.count

    def clear(self, client_key: str) -> None:
        with self._lock:
            self._attempts.pop(client_key, None)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DatabaseLockoutTracker(LockoutTracker):
    """Shared tracker backed by ``login_attempts``; each update runs in its own transaction."""

    def __init__(
        self,
        session_factory: sessionmaker,
        max_attempts: int = MAX_LOGIN_ATTEMPTS,
        lockout_seconds: int = ACCOUNT_LOCKOUT_DURATION,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(max_attempts, lockout_seconds)
        self._session_factory = session_factory
        self._clock = clock

    @staticmethod
    def _get(db: Session, client_key: str) -> Optional[LoginAttempt]:
        return db.query(LoginAttempt).filter(LoginAttempt.client_key == client_key).first()

    def retry_after(self, client_key: str) -> Optional[int]:
        now = self._clock()
        db = self._session_factory()
        try:
            attempt = self._get(db, client_key)
        except SQLAlchemyError as exc:
            logger.exception("Lockout lookup failed")
            raise AuthSystemError() from exc
        finally:
            db.close()
        if attempt is None or attempt.locked_until is None or attempt.locked_until <= now:
            return None
        return max(1, math.ceil((attempt.locked_until - now).total_seconds()))

    def register_failure(self, client_key: str) -> int:
        now = self._clock()
        window = timedelta(seconds=self.lockout_seconds)
        db = self._session_factory()
        try:
            attempt = self._get(db, client_key)
            if attempt is None:
                attempt = LoginAttempt(client_key=client_key, failed_count=0, first_failed_at=now)
                db.add(attempt)
            elif attempt.last_failed_at is None or (now - attempt.last_failed_at) > window:
                attempt.failed_count = 0
                attempt.first_failed_at = now
                attempt.locked_until = None
            attempt.failed_count += 1
            attempt.last_failed_at = now
            if attempt.failed_count >= self.max_attempts:
                attempt.locked_until = now + window
            count = attempt.failed_count
            db.commit()
            return count
        except IntegrityError:
            # Outra requisição criou a linha primeiro; tenta de novo sobre ela.
            db.rollback()
            db.close()
            return self.register_failure(client_key)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Lockout update failed")
            raise AuthSystemError() from exc
        finally:
            db.close()

    def clear(self, client_key: str) -> None:
        db = self._session_factory()
        try:
            db.query(LoginAttempt).filter(LoginAttempt.client_key == client_key).delete()
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Lockout reset failed")
            raise AuthSystemError() from exc
        finally:
            db.close()


def build_lockout_tracker(backend: str, session_factory: sessionmaker | None = None) -> LockoutTracker:
    if backend == "database":
        if session_factory is None:
            raise ValueError("database lockout backend requires a session factory")
        return DatabaseLockoutTracker(session_factory)
    return InMemoryLockoutTracker()
