# Overview: Audit collaborator; fire-and-forget audit records written after commit.

from __future__ import annotations

import json

from flask import current_app

from ..extensions import db
from ..models import AuditLog


def record(
    *,
    action: str,
    entity_type: str,
    entity_id,
    merchant_id: int | None = None,
    user_id: int | None = None,
    payload: dict | None = None,
) -> AuditLog | None:
    """
    Append an audit record in its own transaction.

    Failures are logged and swallowed: the business operation being audited
    has already committed and must not be reported as failed.
    """
    try:
        log = AuditLog(
            merchant_id=merchant_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            payload=json.dumps(payload, default=str) if payload is not None else None,
        )
        db.session.add(log)
        db.session.commit()
        return log
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Failed to write audit record for %s %s", entity_type, entity_id
        )
        return None
