from __future__ import annotations

import logging
import random
import time
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kitchen_auth.core import config
from kitchen_auth.core.errors import AuthSystemError
from kitchen_auth.core.logging_setup import mask_identifier
from kitchen_auth.services.auth_audit import log_auth_event
from kitchen_auth.services.lockout import LockoutTracker

logger = logging.getLogger(__name__)


def record_auth_failure(
    *,
    reason: str,
    action: str,
    client_key: Optional[str],
    tracker: Optional[LockoutTracker] = None,
    db: Optional[Session] = None,
    identifier: Optional[str] = None,
    tenant_id: Optional[str] = None,
    identity_id: Optional[str] = None,
    count_attempt: bool = True,
) -> Optional[int]:
    """Single exit for every failed authentication: log, count and audit.

    Returns the failure count inside the lockout window when the attempt was counted.
    """
    failures = None
    if count_attempt and tracker is not None and client_key:
        failures = tracker.register_failure(client_key)

    logger.warning(
        "Authentication failed action=%s reason=%s identifier=%s tenant_id=%s client_key=%s failures=%s",
        action,
        reason,
        mask_identifier(identifier),
        tenant_id,
        client_key,
        failures,
        extra={"reason": reason},
    )

    if db is not None:
        try:
            log_auth_event(
                db,
                action=action,
                reason=reason,
                tenant_id=tenant_id,
                identity_id=identity_id,
                client_key=client_key,
                meta={"identifier": mask_identifier(identifier)} if identifier else None,
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to write authentication audit entry")
            raise AuthSystemError() from exc
    return failures


def record_auth_success(
    *,
    action: str,
    client_key: Optional[str],
    identity_id: str,
    tenant_id: Optional[str],
    tracker: Optional[LockoutTracker] = None,
    db: Optional[Session] = None,
) -> None:
    if tracker is not None and client_key:
        tracker.clear(client_key)
    logger.info("Authentication succeeded action=%s identity_id=%s tenant_id=%s", action, identity_id, tenant_id)
    if db is not None:
        try:
            log_auth_event(
                db,
                action=action,
                reason="success",
                tenant_id=tenant_id,
                identity_id=identity_id,
                client_key=client_key,
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to write authentication audit entry")
            raise AuthSystemError() from exc


def apply_failure_delay(
    min_ms: Optional[int] = None,
    max_ms: Optional[int] = None,
    sleep=time.sleep,
) -> float:
    """Sleep for a random interval before answering a failed login."""
    low = config.AUTH_FAILURE_DELAY_MIN_MS if min_ms is None else min_ms
    high = config.AUTH_FAILURE_DELAY_MAX_MS if max_ms is None else max_ms
    low, high = max(0, low), max(0, high)
    if high < low:
        low, high = high, low
    if high == 0:
        return 0.0
    delay = random.uniform(low, high) / 1000.0
    sleep(delay)
    return delay
