from functools import lru_cache

from saludplus.core.settings import settings
from saludplus.db.history_store import PatientHistoryStore
from saludplus.db.session import SessionLocal
from saludplus.services.migration.source import CsvSource


@lru_cache
def _history_store() -> PatientHistoryStore:
    return PatientHistoryStore.from_settings(settings)


def get_history_store() -> PatientHistoryStore:
    return _history_store()


def get_session_factory():
    return SessionLocal


def get_batch_source() -> CsvSource:
    return CsvSource(settings.csv_path)
