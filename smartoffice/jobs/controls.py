"""
Secure Score Control Import

Loads the Secure Score controls catalog (an embedded CSV) into the 'controls'
collection. Every run upserts the full catalog, so a failed or missed run is
repaired by the next one.

CSV columns map onto ControlListEntry by header name:
- ControlName -> id, Title -> name
- Threats is a semicolon separated list
- blank cells are treated as missing, unknown columns are ignored
"""

import csv
import logging
from enum import Enum
from importlib import resources
from pathlib import Path
from typing import IO, Iterable

from pydantic import ValidationError

from smartoffice.data.context import StoreContext
from smartoffice.data.exceptions import DocumentStoreError
from smartoffice.jobs.timer import TimerInfo
from smartoffice.models.controls import ActionType, ControlCategory, ControlListEntry
from smartoffice.repositories.controls import ControlRepository

logger = logging.getLogger(__name__)

CATALOG_RESOURCE = "secure_score_controls.csv"

COLUMN_MAP = {
    "ControlName": "id",
    "Title": "name",
    "Description": "description",
    "Category": "category",
    "ActionType": "action_type",
    "MaxScore": "max_score",
    "Tier": "tier",
    "UserImpact": "user_impact",
    "ImplementationCost": "implementation_cost",
    "Threats": "threats",
    "Remediation": "remediation",
    "Deprecated": "deprecated",
}

_REQUIRED_COLUMNS = ("ControlName", "Title", "Category")
_TRUE = {"true", "yes", "y", "1"}
_FALSE = {"false", "no", "n", "0"}


class CatalogFormatError(DocumentStoreError):
    """The controls catalog is missing columns or contains a malformed row."""

    def __init__(self, message: str, line: int | None = None):
        super().__init__(message if line is None else f"Line {line}: {message}")
        self.line = line


def _enum_cell(enum_type: type[Enum], text: str) -> Enum:
    lowered = text.lower()
    for member in enum_type:
        if lowered in (member.name.lower(), str(member.value).lower()):
            return member
    allowed = ", ".join(str(m.value) for m in enum_type)
    raise ValueError(f"unknown {enum_type.__name__} {text!r} (expected one of {allowed})")


def _bool_cell(text: str) -> bool:
    lowered = text.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"expected true or false, got {text!r}")


def _row_to_entry(row: dict[str, str | None]) -> ControlListEntry:
    values = {}
    for column, attribute in COLUMN_MAP.items():
        cell = row.get(column)
        if cell is None or not cell.strip():
            continue
        text = cell.strip()

        if attribute == "category":
            values[attribute] = _enum_cell(ControlCategory, text)
        elif attribute == "action_type":
            values[attribute] = _enum_cell(ActionType, text)
        elif attribute == "max_score":
            values[attribute] = int(text)
        elif attribute == "deprecated":
            values[attribute] = _bool_cell(text)
        elif attribute == "threats":
            values[attribute] = [t.strip() for t in text.split(";") if t.strip()]
        else:
            values[attribute] = text

    return ControlListEntry.model_validate(values)


def parse_control_catalog(stream: Iterable[str]) -> list[ControlListEntry]:
    """Parse catalog CSV text (header row first) into control entries."""
    reader = csv.DictReader(stream)
    headers = reader.fieldnames or []

    missing = [c for c in _REQUIRED_COLUMNS if c not in headers]
    if missing:
        raise CatalogFormatError(f"Catalog is missing required columns: {', '.join(missing)}", line=1)

    entries = []
    for row in reader:
        if None in row:
            raise CatalogFormatError("Row has more cells than the header", line=reader.line_num)
        if not any((cell or "").strip() for cell in row.values()):
            continue
        try:
            entries.append(_row_to_entry(row))
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(x) for x in err['loc']) or 'row'}: {err['msg']}" for err in e.errors()
            )
            raise CatalogFormatError(problems, line=reader.line_num) from e
        except ValueError as e:
            raise CatalogFormatError(str(e), line=reader.line_num) from e

    return entries


def read_control_catalog(source: str | Path | None = None) -> list[ControlListEntry]:
    """Read the catalog from ``source``, or from the copy shipped with the package."""
    stream: IO[str]
    if source is None:
        resource = resources.files("smartoffice.assets").joinpath(CATALOG_RESOURCE)
        stream = resource.open("r", encoding="utf-8-sig", newline="")
    else:
        stream = open(source, "r", encoding="utf-8-sig", newline="")

    with stream:
        return parse_control_catalog(stream)


async def import_controls(
    repository: ControlRepository,
    timer: TimerInfo,
    source: str | Path | None = None,
) -> int:
    """Upsert the full controls catalog into ``repository``.

    Returns the number of entries the store acknowledged. Errors are logged
    and re-raised.
    """
    logger.info("Importing Office 365 Secure Score controls details...")

    if timer.is_past_due:
        logger.info(
            f"Control import scheduled for {timer.scheduled_time.isoformat()} is starting behind schedule"
        )

    try:
        entries = read_control_catalog(source)
        imported = await repository.add_or_update_many(entries)
    except Exception as e:
        logger.error(f"Secure Score control import failed: {e}")
        raise

    logger.info(f"✓ Imported {imported} Office 365 Secure Score controls")
    return imported


async def import_controls_job(context: StoreContext, timer: TimerInfo) -> int:
    """Scheduled entry point: make sure the collection is ready, then import."""
    repository = ControlRepository(context)
    await repository.initialize()
    return await import_controls(repository, timer)
