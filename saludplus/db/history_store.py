from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from saludplus.core.settings import Settings

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PatientHistoryStore:
    """One document per patient email with the embedded appointment fragments.

    Every mutation is a single-document atomic update; nothing here spans more
    than one document or coordinates with the relational store.
    """

    def __init__(self, collection: Collection) -> None:
        self.collection = collection

    @classmethod
    def from_settings(cls, settings: Settings) -> "PatientHistoryStore":
        client: MongoClient = MongoClient(settings.mongodb_uri, tz_aware=True)
        collection = client[settings.mongodb_db][settings.history_collection]
        return cls(collection)

    def ensure_indexes(self) -> None:
        self.collection.create_index([("patientEmail", ASCENDING)], unique=True)
        self.collection.create_index([("appointments.doctorId", ASCENDING)])
        self.collection.create_index([("appointments.doctorEmail", ASCENDING)])

    def replace_history(
        self, patient_email: str, patient_name: str, fragments: list[dict[str, Any]]
    ) -> None:
        now = _now()
        self.collection.update_one(
            {"patientEmail": patient_email},
            {
                "$set": {
                    "patientName": patient_name,
                    "appointments": fragments,
                    "updatedAt": now,
                },
                "$setOnInsert": {"createdAt": now},
            },
            upsert=True,
        )

    def append_fragment(
        self, patient_email: str, patient_name: str, fragment: dict[str, Any]
    ) -> bool:
        """Append unless a fragment with the same appointmentId is already embedded.

        Returns False when the fragment was already present.
        """
        now = _now()
        try:
            self.collection.update_one(
                {
                    "patientEmail": patient_email,
                    "appointments.appointmentId": {"$ne": fragment["appointmentId"]},
                },
                {
                    "$setOnInsert": {"patientName": patient_name, "createdAt": now},
                    "$set": {"updatedAt": now},
                    "$push": {"appointments": fragment},
                },
                upsert=True,
            )
        except DuplicateKeyError:
            # The document exists and already embeds this appointment, so the
            # filter missed and the upsert collided on patientEmail.
            logger.info(
                "Fragment already embedded",
                extra={"patient_email": patient_email, "appointment_id": fragment["appointmentId"]},
            )
            return False
        return True

    def rewrite_doctor(
        self,
        doctor_id: int,
        old_email: str,
        *,
        name: str | None = None,
        email: str | None = None,
    ) -> int:
        updates: dict[str, Any] = {}
        if name is not None:
            updates["appointments.$[elem].doctorName"] = name
        if email is not None:
            updates["appointments.$[elem].doctorEmail"] = email
        if not updates:
            return 0
        updates["updatedAt"] = _now()
        result = self.collection.update_many(
            {
                "$or": [
                    {"appointments.doctorId": doctor_id},
                    {"appointments": {"$elemMatch": {"doctorId": None, "doctorEmail": old_email}}},
                ]
            },
            {"$set": updates},
            array_filters=[
                {
                    "$or": [
                        {"elem.doctorId": doctor_id},
                        {"elem.doctorId": None, "elem.doctorEmail": old_email},
                    ]
                }
            ],
        )
        return result.modified_count

    def find_by_email(self, patient_email: str) -> dict[str, Any] | None:
        return self.collection.find_one({"patientEmail": patient_email}, {"_id": 0})

    def count(self) -> int:
        return self.collection.count_documents({})

    def clear(self) -> int:
        return self.collection.delete_many({}).deleted_count

    def drop(self) -> None:
        self.collection.drop()
