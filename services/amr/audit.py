"""Append-only, hash-chained audit trail for assessment lifecycle events."""
import hashlib
import json
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from services.amr import models


ENTITY_SESSION = "assessment_session"


def _canonical(obj) -> str:
    return json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def compute_entry_hash(
    *,
    prev_hash: str | None,
    action: str,
    entity_type: str,
    entity_id: str | None,
    ip_hash: str | None,
    detail_json: str | None,
    ts: datetime,
) -> str:
    payload = {
        "prev_hash": prev_hash,
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "ip_hash": ip_hash,
        "detail": detail_json,
        "ts": ts.isoformat(),
    }
    return hashlib.sha256(_canonical(payload).encode("utf-8")).hexdigest()


def write_audit(
    *,
    db: Session,
    action: str,
    entity_id: str | None,
    entity_type: str = ENTITY_SESSION,
    ip_hash: str | None = None,
    detail: dict | None = None,
) -> models.AuditLog:
    # Append-only: always insert a new row.
    last = db.query(models.AuditLog).order_by(models.AuditLog.ts.desc()).first()
    prev_hash = last.entry_hash if last else None

    ts = datetime.utcnow()
    # Chain order is timestamp order, so timestamps must be strictly increasing.
    if last is not None and ts <= last.ts:
        ts = last.ts + timedelta(microseconds=1)

    detail_json = _canonical(detail) if detail is not None else None
    entry_hash = compute_entry_hash(
        prev_hash=prev_hash,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        ip_hash=ip_hash,
        detail_json=detail_json,
        ts=ts,
    )

    row = models.AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        ip_hash=ip_hash,
        detail_json=detail_json,
        ts=ts,
        prev_hash=prev_hash,
        entry_hash=entry_hash,
    )
    db.add(row)
    # Flush so the next entry in this transaction chains onto this one.
    db.flush()
    return row


def verify_audit_chain(db: Session) -> bool:
    rows = db.query(models.AuditLog).order_by(models.AuditLog.ts.asc()).all()
    prev = None
    for r in rows:
        expected = compute_entry_hash(
            prev_hash=prev,
            action=r.action,
            entity_type=r.entity_type,
            entity_id=r.entity_id,
            ip_hash=r.ip_hash,
            detail_json=r.detail_json,
            ts=r.ts,
        )
        if r.prev_hash != prev or expected != r.entry_hash:
            return False
        prev = r.entry_hash
    return True
