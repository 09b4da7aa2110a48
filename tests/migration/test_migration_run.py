from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from saludplus.models import Appointment, Doctor, Insurance, Patient, Treatment
from saludplus.services.migration.orchestrator import run_migration
from saludplus.services.migration.projection import build_histories
from saludplus.services.migration.source import CsvSource
from saludplus.services.migration.types import SourceRow


def _count(session, model):
    return session.scalar(select(func.count()).select_from(model))


def _sample_rows(make_row):
    return [
        make_row(),
        make_row(
            appointment_id="A2",
            appointment_date="2024-02-10",
            doctor_name="luis  ruiz",
            doctor_email="l@x.com",
            specialty="Dermatology",
            insurance_provider="SaludTotal",
            coverage_percentage="80",
            treatment_code="T2",
            treatment_description="Skin exam",
            treatment_cost="120",
            amount_paid="24",
        ),
        make_row(
            patient_name="MARIA lopez",
            patient_email="m@x.com",
            appointment_id="A3",
            appointment_date="2024-03-01",
            amount_paid="50",
        ),
    ]


def test_migration_loads_both_stores(session_factory, store, write_csv, make_row):
    path = write_csv(_sample_rows(make_row))

    summary = run_migration(session_factory, store, CsvSource(path), source_label=str(path))

    assert summary.rows_read == 3
    assert summary.patients == 2
    assert summary.doctors == 2
    assert summary.insurances == 2
    assert summary.treatments == 2
    assert summary.appointments == 3
    assert summary.histories == 2
    assert summary.histories_failed == 0
    assert summary.csv_path == str(path)

    session = session_factory()
    try:
        patient = session.scalar(select(Patient).where(Patient.email == "j@x.com"))
        assert patient.name == "Juan Perez"
        doctor = session.scalar(select(Doctor).where(Doctor.email == "l@x.com"))
        assert doctor.name == "Luis Ruiz"
        coverage = session.scalar(
            select(Insurance.coverage_percentage).where(Insurance.name == "SaludTotal")
        )
        assert coverage == Decimal("80")
        doctor_id = doctor.id
    finally:
        session.close()

    history = store.find_by_email("j@x.com")
    assert history["patientName"] == "Juan Perez"
    assert [item["appointmentId"] for item in history["appointments"]] == ["A1", "A2"]
    second = history["appointments"][1]
    assert second == {
        "appointmentId": "A2",
        "date": "2024-02-10",
        "doctorId": doctor_id,
        "doctorName": "Luis Ruiz",
        "doctorEmail": "l@x.com",
        "specialty": "Dermatology",
        "treatmentCode": "T2",
        "treatmentDescription": "Skin exam",
        "treatmentCost": 120.0,
        "insuranceProvider": "SaludTotal",
        "coveragePercentage": 80.0,
        "amountPaid": 24.0,
    }


def test_migration_rerun_is_idempotent(session_factory, store, write_csv, make_row):
    source = CsvSource(write_csv(_sample_rows(make_row)))

    first = run_migration(session_factory, store, source)
    snapshot = {email: store.find_by_email(email) for email in ("j@x.com", "m@x.com")}
    second = run_migration(session_factory, store, source)

    assert first.appointments == 3
    assert second.appointments == 0
    assert second.appointments_existing == 3
    assert second.histories == 2
    assert {email: store.find_by_email(email) for email in snapshot} == snapshot

    session = session_factory()
    try:
        assert _count(session, Patient) == 2
        assert _count(session, Doctor) == 2
        assert _count(session, Appointment) == 3
    finally:
        session.close()


def test_duplicate_rows_keep_first_seen_values(session_factory, store, write_csv, make_row):
    rows = [
        make_row(patient_phone="111"),
        make_row(patient_name="someone else", patient_phone="222", appointment_id="A1"),
    ]
    summary = run_migration(session_factory, store, CsvSource(write_csv(rows)))

    assert summary.appointments == 1
    assert summary.appointments_existing == 1
    history = store.find_by_email("j@x.com")
    assert len(history["appointments"]) == 1

    session = session_factory()
    try:
        patient = session.scalar(select(Patient).where(Patient.email == "j@x.com"))
        assert patient.name == "Juan Perez"
        assert patient.phone == "111"
    finally:
        session.close()


def test_rows_without_treatment_are_skipped_in_both_stores(
    session_factory, store, write_csv, make_row
):
    rows = [make_row(), make_row(appointment_id="A2", treatment_code="")]

    summary = run_migration(session_factory, store, CsvSource(write_csv(rows)))

    assert summary.appointments == 1
    assert summary.appointments_skipped == 1
    ids = [item["appointmentId"] for item in store.find_by_email("j@x.com")["appointments"]]
    assert ids == ["A1"]


def test_rows_with_invalid_amount_or_date_are_skipped(session_factory, store, write_csv, make_row):
    rows = [
        make_row(appointment_id="A1", amount_paid="-5"),
        make_row(appointment_id="A2", appointment_date="not-a-date"),
        make_row(appointment_id="A3"),
    ]

    summary = run_migration(session_factory, store, CsvSource(write_csv(rows)))

    assert summary.appointments == 1
    assert summary.appointments_skipped == 2
    ids = [item["appointmentId"] for item in store.find_by_email("j@x.com")["appointments"]]
    assert ids == ["A3"]


def test_unresolved_rows_reach_neither_store(session_factory, store, write_csv, make_row):
    rows = [make_row(patient_email="", appointment_id="A9"), make_row()]

    summary = run_migration(session_factory, store, CsvSource(write_csv(rows)))

    assert summary.rows_read == 2
    assert summary.rows_unresolved == 1
    assert summary.appointments == 1
    assert "A9" not in {item["appointmentId"] for item in store.fragments()}


def test_every_relational_appointment_has_exactly_one_fragment(
    session_factory, store, write_csv, make_row
):
    rows = _sample_rows(make_row) + [
        make_row(appointment_id="A2", patient_email="m@x.com"),
        make_row(appointment_id="A4", insurance_provider=""),
        make_row(appointment_id="A5", patient_email="k@x.com", patient_name="kim"),
    ]
    run_migration(session_factory, store, CsvSource(write_csv(rows)))

    session = session_factory()
    try:
        relational_ids = sorted(session.scalars(select(Appointment.appointment_id)))
    finally:
        session.close()
    fragment_ids = sorted(item["appointmentId"] for item in store.fragments())
    assert relational_ids == fragment_ids == ["A1", "A2", "A3", "A5"]


def test_clear_before_replaces_previous_batch(session_factory, store, write_csv, make_row):
    run_migration(session_factory, store, CsvSource(write_csv(_sample_rows(make_row), "first.csv")))
    replacement = [make_row(patient_email="n@x.com", patient_name="nora", appointment_id="B1")]

    summary = run_migration(
        session_factory,
        store,
        CsvSource(write_csv(replacement, "second.csv")),
        clear_before=True,
    )

    assert summary.appointments == 1
    assert store.count() == 1
    assert store.find_by_email("j@x.com") is None
    session = session_factory()
    try:
        assert list(session.scalars(select(Patient.email))) == ["n@x.com"]
        assert list(session.scalars(select(Appointment.appointment_id))) == ["B1"]
        assert _count(session, Treatment) == 1
    finally:
        session.close()


def test_document_failures_are_counted_not_raised(session_factory, store, write_csv, make_row):
    store.fail_writes = True

    summary = run_migration(session_factory, store, CsvSource(write_csv(_sample_rows(make_row))))

    assert summary.appointments == 3
    assert summary.histories == 0
    assert summary.histories_failed == 2

    store.fail_writes = False
    repaired = run_migration(session_factory, store, CsvSource(write_csv(_sample_rows(make_row))))
    assert repaired.histories == 2
    assert len(store.fragments()) == 3


@pytest.mark.parametrize("model", [Patient, Doctor, Treatment, Insurance])
def test_referenced_rows_cannot_be_deleted(session_factory, store, write_csv, make_row, model):
    run_migration(session_factory, store, CsvSource(write_csv([make_row()])))

    session = session_factory()
    try:
        row = session.scalar(select(model))
        session.delete(row)
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()
        assert _count(session, model) == 1
        assert _count(session, Appointment) == 1
    finally:
        session.close()


def test_histories_skip_patients_without_fragments(make_row):
    rows = [
        SourceRow(**make_row(patient_email="a@x.com", appointment_id="A1")),
        SourceRow(**make_row(patient_email="b@x.com", appointment_id="A1")),
        SourceRow(**make_row(patient_email="c@x.com", appointment_id="A2", treatment_code=None)),
    ]
    histories = build_histories(rows, doctor_ids={"d@x.com": 7})

    assert [history.patient_email for history in histories] == ["a@x.com"]
    assert histories[0].appointments[0]["doctorId"] == 7


def test_single_row_scenario_round_trip(session_factory, store, write_csv, make_row):
    source = CsvSource(write_csv([make_row()]))

    for _ in range(2):
        run_migration(session_factory, store, source)

        session = session_factory()
        try:
            patient = session.scalar(select(Patient))
            doctor = session.scalar(select(Doctor))
            insurance = session.scalar(select(Insurance))
            treatment = session.scalar(select(Treatment))
            appointments = list(session.scalars(select(Appointment)))
            assert (patient.name, patient.email) == ("Juan Perez", "j@x.com")
            assert (doctor.name, doctor.email, doctor.specialty) == ("Ana Gomez", "d@x.com", "Cardiology")
            assert (insurance.name, insurance.coverage_percentage) == ("SinSeguro", Decimal("0"))
            assert (treatment.code, treatment.description, treatment.cost) == ("T1", "Checkup", Decimal("50"))
            assert len(appointments) == 1
            appointment = appointments[0]
            assert appointment.appointment_id == "A1"
            assert appointment.patient_id == patient.id
            assert appointment.doctor_id == doctor.id
            assert appointment.treatment_id == treatment.id
            assert appointment.insurance_id == insurance.id
            assert appointment.amount_paid == Decimal("50")
            doctor_id = doctor.id
        finally:
            session.close()

        history = store.find_by_email("j@x.com")
        assert history["patientName"] == "Juan Perez"
        assert history["appointments"] == [
            {
                "appointmentId": "A1",
                "date": "2024-01-05",
                "doctorId": doctor_id,
                "doctorName": "Ana Gomez",
                "doctorEmail": "d@x.com",
                "specialty": "Cardiology",
                "treatmentCode": "T1",
                "treatmentDescription": "Checkup",
                "treatmentCost": 50.0,
                "insuranceProvider": "SinSeguro",
                "coveragePercentage": 0.0,
                "amountPaid": 50.0,
            }
        ]


def test_failure_inside_transaction_rolls_back_whole_run(
    session_factory, store, write_csv, make_row
):
    rows = [
        make_row(),
        make_row(
            patient_email="m@x.com",
            appointment_id="A2",
            insurance_provider="Overcovered",
            coverage_percentage="150",
        ),
    ]

    with pytest.raises(IntegrityError):
        run_migration(session_factory, store, CsvSource(write_csv(rows)))

    session = session_factory()
    try:
        for model in (Patient, Doctor, Insurance, Treatment, Appointment):
            assert _count(session, model) == 0
    finally:
        session.close()
    assert store.count() == 0
