import copy
import csv

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from saludplus.models import Base
from saludplus.services.migration.types import SOURCE_COLUMNS


class FakeHistoryStore:
    """In-memory stand-in for PatientHistoryStore with the same single-document semantics."""

    def __init__(self):
        self.docs: dict[str, dict] = {}
        self.fail_writes = False
        self.index_calls = 0

    def _check(self):
        if self.fail_writes:
            raise ConnectionError("document store unavailable")

    def ensure_indexes(self):
        self.index_calls += 1

    def replace_history(self, patient_email, patient_name, fragments):
        self._check()
        doc = self.docs.setdefault(patient_email, {"patientEmail": patient_email})
        doc["patientName"] = patient_name
        doc["appointments"] = copy.deepcopy(fragments)

    def append_fragment(self, patient_email, patient_name, fragment):
        self._check()
        doc = self.docs.get(patient_email)
        if doc is None:
            doc = {"patientEmail": patient_email, "patientName": patient_name, "appointments": []}
            self.docs[patient_email] = doc
        if any(item["appointmentId"] == fragment["appointmentId"] for item in doc["appointments"]):
            return False
        doc["appointments"].append(copy.deepcopy(fragment))
        return True

    def rewrite_doctor(self, doctor_id, old_email, *, name=None, email=None):
        self._check()
        modified = 0
        for doc in self.docs.values():
            touched = False
            for item in doc["appointments"]:
                matches = item.get("doctorId") == doctor_id or (
                    item.get("doctorId") is None and item.get("doctorEmail") == old_email
                )
                if not matches:
                    continue
                if name is not None:
                    item["doctorName"] = name
                if email is not None:
                    item["doctorEmail"] = email
                touched = True
            modified += int(touched)
        return modified

    def find_by_email(self, patient_email):
        doc = self.docs.get(patient_email)
        return copy.deepcopy(doc) if doc is not None else None

    def count(self):
        return len(self.docs)

    def clear(self):
        self._check()
        cleared = len(self.docs)
        self.docs.clear()
        return cleared

    def drop(self):
        self.docs.clear()

    def fragments(self):
        return [item for doc in self.docs.values() for item in doc["appointments"]]


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def store():
    return FakeHistoryStore()


def _make_row(**overrides):
    row = {
        "patient_name": "juan perez",
        "patient_email": "j@x.com",
        "patient_phone": "3001234567",
        "patient_address": "Calle 1 # 2-3",
        "doctor_name": "ana gomez",
        "doctor_email": "d@x.com",
        "specialty": "Cardiology",
        "insurance_provider": "SinSeguro",
        "coverage_percentage": "",
        "treatment_code": "T1",
        "treatment_description": "Checkup",
        "treatment_cost": "50",
        "appointment_id": "A1",
        "appointment_date": "2024-01-05",
        "amount_paid": "50",
    }
    row.update(overrides)
    return row


@pytest.fixture()
def write_csv(tmp_path):
    def _write(rows, name="batch.csv", columns=SOURCE_COLUMNS):
        path = tmp_path / name
        with path.open("w", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=list(columns), extrasaction="ignore")
            writer.writeheader()
            for row in rows:
                writer.writerow(row)
        return path

    return _write


@pytest.fixture()
def make_row():
    return _make_row
