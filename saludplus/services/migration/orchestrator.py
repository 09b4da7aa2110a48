from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Callable

from sqlalchemy.orm import Session

from saludplus.db.history_store import PatientHistoryStore
from saludplus.services.migration.projection import build_histories
from saludplus.services.migration.relational import clear_relational, init_schema, upsert_batch
from saludplus.services.migration.resolver import resolve_entities
from saludplus.services.migration.source import BatchSource

logger = logging.getLogger(__name__)


@dataclass
class MigrationSummary:
    rows_read: int = 0
    rows_unresolved: int = 0
    patients: int = 0
    doctors: int = 0
    insurances: int = 0
    treatments: int = 0
    appointments: int = 0
    appointments_skipped: int = 0
    appointments_existing: int = 0
    histories: int = 0
    histories_failed: int = 0
    csv_path: str | None = None

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


def run_migration(
    session_factory: Callable[[], Session],
    store: PatientHistoryStore,
    source: BatchSource,
    *,
    clear_before: bool = False,
    source_label: str | None = None,
) -> MigrationSummary:
    """Load one batch into both stores.

    The relational side is one transaction. Document writes happen only after
    it commits and each patient history is written independently; a failed
    write is counted, not raised, and the next run repairs it.
    """
    rows = list(source.list_rows())
    summary = MigrationSummary(rows_read=len(rows), csv_path=source_label)

    session = session_factory()
    try:
        init_schema(session.get_bind())
        if clear_before:
            clear_relational(session)
            logger.info("Previous relational data cleared")

        batch = resolve_entities(rows)
        ids, stats = upsert_batch(session, batch)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    summary.rows_unresolved = batch.rows_unresolved
    summary.patients = len(batch.patients)
    summary.doctors = len(batch.doctors)
    summary.insurances = len(batch.insurances)
    summary.treatments = len(batch.treatments)
    summary.appointments = stats.appointments_created
    summary.appointments_skipped = stats.appointments_skipped
    summary.appointments_existing = stats.appointments_existing

    store.ensure_indexes()
    if clear_before:
        cleared = store.clear()
        logger.info("Previous patient histories cleared: %s", cleared)

    for history in build_histories(batch.rows, doctor_ids=ids.doctors):
        try:
            store.replace_history(history.patient_email, history.patient_name, history.appointments)
        except Exception:
            summary.histories_failed += 1
            logger.exception(
                "Patient history write failed",
                extra={"patient_email": history.patient_email},
            )
            continue
        summary.histories += 1
    logger.info(
        "Patient histories upserted: %s (failed %s)", summary.histories, summary.histories_failed
    )
    return summary
