from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from saludplus.db.history_store import PatientHistoryStore
from saludplus.models.doctor import Doctor
from saludplus.models.history_outbox import HistoryOutbox, OutboxKind

logger = logging.getLogger(__name__)


@dataclass
class RelayStats:
    applied: int = 0
    failed: int = 0
    exhausted: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def record_append(
    session: Session,
    *,
    patient_email: str,
    patient_name: str,
    fragment: dict[str, Any],
) -> HistoryOutbox:
    entry = HistoryOutbox(
        kind=OutboxKind.append_fragment,
        dedupe_key=fragment["appointmentId"],
        payload={
            "patientEmail": patient_email,
            "patientName": patient_name,
            "fragment": fragment,
        },
        attempts=0,
    )
    session.add(entry)
    return entry


def record_doctor_rewrite(
    session: Session,
    *,
    doctor_id: int,
    old_email: str,
    name: str | None,
    email: str | None,
) -> HistoryOutbox:
    entry = HistoryOutbox(
        kind=OutboxKind.rewrite_doctor,
        dedupe_key=f"doctor:{doctor_id}",
        payload={"doctorId": doctor_id, "oldEmail": old_email, "name": name, "email": email},
        attempts=0,
    )
    session.add(entry)
    return entry


def apply_entry(session: Session, store: PatientHistoryStore, entry: HistoryOutbox) -> None:
    payload = entry.payload
    if entry.kind == OutboxKind.append_fragment:
        fragment = _refresh_doctor(session, dict(payload["fragment"]))
        store.append_fragment(payload["patientEmail"], payload["patientName"], fragment)
    elif entry.kind == OutboxKind.rewrite_doctor:
        # Current doctor values win; an older entry replayed late must not restore stale ones.
        doctor = session.get(Doctor, payload["doctorId"])
        if doctor is None:
            logger.info(
                "Doctor rewrite skipped, doctor no longer exists",
                extra={"outbox_id": entry.id, "doctor_id": payload["doctorId"]},
            )
            return
        store.rewrite_doctor(
            doctor.id,
            payload["oldEmail"],
            name=doctor.name,
            email=doctor.email,
        )
    else:
        raise ValueError(f"Unsupported outbox kind: {entry.kind}")


def try_apply(session: Session, store: PatientHistoryStore, entry: HistoryOutbox) -> bool:
    """Apply one entry and record the outcome; never raises for store failures."""
    entry.attempts += 1
    try:
        apply_entry(session, store, entry)
    except Exception as exc:
        entry.last_error = str(exc)[:2000]
        session.commit()
        logger.exception(
            "Document store write pending",
            extra={"outbox_id": entry.id, "kind": entry.kind.value, "dedupe_key": entry.dedupe_key},
        )
        return False
    entry.applied_at = datetime.now(timezone.utc)
    entry.last_error = None
    session.commit()
    return True


def apply_pending(
    session: Session,
    store: PatientHistoryStore,
    *,
    max_attempts: int,
    limit: int | None = None,
) -> RelayStats:
    stats = RelayStats()
    # Replayed appends rely on the unique patientEmail index to stay idempotent.
    store.ensure_indexes()
    stmt = select(HistoryOutbox).where(HistoryOutbox.applied_at.is_(None)).order_by(HistoryOutbox.id)
    if limit is not None:
        stmt = stmt.limit(limit)
    for entry in list(session.scalars(stmt)):
        if entry.attempts >= max_attempts:
            stats.exhausted += 1
            continue
        if try_apply(session, store, entry):
            stats.applied += 1
        else:
            stats.failed += 1
    logger.info("Outbox relay finished: %s", stats.as_dict())
    return stats


def _refresh_doctor(session: Session, fragment: dict[str, Any]) -> dict[str, Any]:
    # A rename committed after this entry was recorded must not be undone by it.
    doctor_id = fragment.get("doctorId")
    if doctor_id is None:
        return fragment
    doctor = session.get(Doctor, doctor_id)
    if doctor is not None:
        fragment["doctorName"] = doctor.name
        fragment["doctorEmail"] = doctor.email
    return fragment
