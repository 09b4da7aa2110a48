from __future__ import annotations

import argparse
import json

from saludplus.core.settings import configure_logging, settings
from saludplus.db.history_store import PatientHistoryStore
from saludplus.db.session import SessionLocal
from saludplus.services.outbox import apply_pending


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Apply pending patient-history outbox entries.")
    parser.add_argument("--limit", type=int, default=None)
    parser.add_argument("--max-attempts", type=int, default=None)
    args = parser.parse_args(argv)
    configure_logging(settings)

    store = PatientHistoryStore.from_settings(settings)
    session = SessionLocal()
    try:
        stats = apply_pending(
            session,
            store,
            max_attempts=args.max_attempts or settings.outbox_max_attempts,
            limit=args.limit,
        )
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
    print(json.dumps(stats.as_dict(), indent=2, sort_keys=True))
    return 1 if stats.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
