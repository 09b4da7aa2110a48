from saludplus.models.base import Base
from saludplus.models.patient import Patient
from saludplus.models.doctor import Doctor
from saludplus.models.insurance import Insurance
from saludplus.models.treatment import Treatment
from saludplus.models.appointment import Appointment
from saludplus.models.history_outbox import HistoryOutbox, OutboxKind

__all__ = [
    "Base",
    "Patient",
    "Doctor",
    "Insurance",
    "Treatment",
    "Appointment",
    "HistoryOutbox",
    "OutboxKind",
]
