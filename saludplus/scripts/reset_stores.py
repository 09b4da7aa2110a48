from __future__ import annotations

import logging

from saludplus.core.settings import configure_logging, settings
from saludplus.db.history_store import PatientHistoryStore
from saludplus.db.session import engine
from saludplus.models import Base

logger = logging.getLogger("saludplus.scripts.reset_stores")


def main() -> int:
    configure_logging(settings)
    Base.metadata.drop_all(bind=engine)
    logger.info("Relational tables dropped.")
    PatientHistoryStore.from_settings(settings).drop()
    logger.info("Collection %s dropped.", settings.history_collection)
    print("Reset complete. Both stores are clean; start the API or run a migration to recreate them.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
