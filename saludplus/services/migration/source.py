from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, Protocol

from saludplus.core.errors import SourceFormatError
from saludplus.services.migration.types import SOURCE_COLUMNS, SourceRow


class BatchSource(Protocol):
    def list_rows(self, limit: int | None = None) -> Iterable[SourceRow]:
        raise NotImplementedError


class CsvSource(BatchSource):
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def list_rows(self, limit: int | None = None) -> list[SourceRow]:
        if not self.path.is_file():
            raise SourceFormatError(f"CSV not found at: {self.path.resolve()}")
        try:
            with self.path.open("r", encoding="utf-8-sig", newline="") as handle:
                reader = csv.DictReader(handle)
                self._check_header(reader.fieldnames)
                items: list[SourceRow] = []
                for raw in reader:
                    cleaned = _clean_record(raw)
                    if not any(cleaned.values()):
                        continue
                    items.append(SourceRow.model_validate(cleaned))
                    if limit is not None and len(items) >= limit:
                        break
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            raise SourceFormatError(f"Unable to read CSV at {self.path}: {exc}") from exc
        return items

    def _check_header(self, fieldnames: list[str] | None) -> None:
        if not fieldnames:
            raise SourceFormatError(f"{self.path} has no header row.")
        present = {name.strip() for name in fieldnames if name}
        missing = [column for column in SOURCE_COLUMNS if column not in present]
        if missing:
            raise SourceFormatError(
                f"{self.path} is missing required columns: {', '.join(missing)}"
            )


def _clean_record(raw: dict) -> dict[str, str | None]:
    cleaned: dict[str, str | None] = {}
    for key, value in raw.items():
        if key is None:
            continue
        text = value.strip() if isinstance(value, str) else None
        cleaned[key.strip()] = text or None
    return cleaned
