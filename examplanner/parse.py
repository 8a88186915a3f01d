"""
Parsing (catalog text -> ExamRecord list).

- Reads the raw exam catalogs from data/raw/ (current.csv, historical.csv)
- Each line is comma-delimited; quoted cells may contain commas
- One exam may span several physical lines: a line with blank course, section
  and times but a building or room is a continuation of the previous exam
- Writes nothing: the parsed universe lives in memory for the session

Important rules (DO NOT CHANGE):
- Malformed lines are skipped, parsing never fails as a whole
- No sorting, no deduplication: records come out in input order
- The id is computed once all continuation lines are folded in
"""

from __future__ import annotations

import argparse
import csv
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from examplanner.config import PACKAGE_DIR
from examplanner.errors import MalformedRow
from examplanner.log import get_logger
from examplanner.model import ExamRecord, Location, SourceKind

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Column layouts
# ---------------------------------------------------------------------------

CURRENT_COLUMNS: Tuple[str, ...] = (
    "course",
    "section",
    "year",
    "exam_type",
    "start_time",
    "end_time",
    "building",
    "room",
    "course_title",
)

# Older exports have no course title column
HISTORICAL_COLUMNS: Tuple[str, ...] = CURRENT_COLUMNS[:8]

_ROOM_INDEX = CURRENT_COLUMNS.index("room")

LAYOUTS: Dict[SourceKind, Tuple[str, ...]] = {
    SourceKind.CURRENT: CURRENT_COLUMNS,
    SourceKind.HISTORICAL: HISTORICAL_COLUMNS,
}

CATALOG_FILES: Dict[SourceKind, str] = {
    SourceKind.CURRENT: "current.csv",
    SourceKind.HISTORICAL: "historical.csv",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _split_line(line: str) -> List[str]:
    """
    Split one physical line into stripped cells.
    """
    try:
        cells = next(csv.reader([line], skipinitialspace=True))
    except (csv.Error, StopIteration):
        cells = line.split(",")
    return [c.strip() for c in cells]


def _to_fields(cells: List[str], columns: Tuple[str, ...]) -> Dict[str, str]:
    """
    Map cells onto the layout. Missing trailing cells default to "".
    """
    return {name: (cells[i] if i < len(cells) else "") for i, name in enumerate(columns)}


def _is_header(cells: List[str]) -> bool:
    first = cells[0].lower() if cells else ""
    return first in ("course", "course code")


def _is_continuation(row: Dict[str, str]) -> bool:
    blank_key = not (row["course"] or row["section"] or row["start_time"] or row["end_time"])
    return blank_key and bool(row["building"] or row["room"])


def _short_continuation(cells: List[str]) -> Optional[Location]:
    """
    Continuation lines are often written without the padding columns, e.g.

        ,,BuildingA,Room2

    Such a line stops before the room column, has blank course and section,
    and its one or two populated cells are the building and room.
    """
    if len(cells) > _ROOM_INDEX or any(cells[:2]):
        return None
    populated = [c for c in cells if c]
    if len(populated) == 2:
        return Location(populated[0], populated[1])
    if len(populated) == 1:
        return Location("", populated[0])
    return None


@dataclass
class _Entry:
    """
    One logical exam while its lines are still being collected.
    """

    fields: Dict[str, str]
    locations: List[Location] = field(default_factory=list)
    rows: List[int] = field(default_factory=list)

    def add_location(self, building: str, room: str) -> None:
        if not building and self.locations:
            # room-only continuation stays in the same building
            building = self.locations[-1].building
        loc = Location(building, room)
        if loc not in self.locations:
            self.locations.append(loc)

    def build(self) -> ExamRecord:
        f = self.fields
        return ExamRecord.create(
            course=f["course"],
            section=f["section"],
            year=f["year"],
            exam_type=f["exam_type"],
            start_time=f["start_time"],
            end_time=f["end_time"],
            locations=tuple(self.locations),
            rows=tuple(self.rows),
            course_title=f.get("course_title", ""),
        )


def _start_entry(row: Dict[str, str], line_no: int) -> _Entry:
    """
    Validate a primary row. Raises MalformedRow if course or start time is missing.
    """
    if not row["course"]:
        raise MalformedRow(line_no, "missing course")
    if not row["start_time"]:
        raise MalformedRow(line_no, "missing start time")

    entry = _Entry(fields=row, rows=[line_no])
    if row["building"] or row["room"]:
        entry.add_location(row["building"], row["room"])
    return entry


# ---------------------------------------------------------------------------
# Catalog parsing (CORE LOGIC)
# ---------------------------------------------------------------------------


def parse_catalog(raw_text: str, source_kind: SourceKind | str = SourceKind.CURRENT) -> List[ExamRecord]:
    """
    Parse one raw catalog block into exam records, in input order.

    Best effort: lines that cannot form a record are logged and skipped.
    """
    columns = LAYOUTS[SourceKind(source_kind)]

    records: List[ExamRecord] = []
    current: Optional[_Entry] = None
    skipped = 0

    for line_no, line in enumerate(raw_text.splitlines(), start=1):
        if not line.strip() or line.lstrip().startswith("#"):
            continue

        cells = _split_line(line)
        if _is_header(cells):
            continue

        row = _to_fields(cells, columns)
        location = _short_continuation(cells)
        if location is None and _is_continuation(row):
            location = Location(row["building"], row["room"])

        if location is not None:
            if current is None:
                skipped += 1
                log.debug("orphan_continuation_skipped", line=line_no)
                continue
            current.add_location(location.building, location.room)
            current.rows.append(line_no)
            continue

        # A new primary row closes the open entry
        if current is not None:
            records.append(current.build())
            current = None

        try:
            current = _start_entry(row, line_no)
        except MalformedRow as e:
            skipped += 1
            log.debug("malformed_row_skipped", line=e.line_no, reason=e.reason)

    if current is not None:
        records.append(current.build())

    if skipped:
        log.info("catalog_rows_skipped", source=SourceKind(source_kind).value, skipped=skipped)

    return records


def parse_historical(raw_text: str) -> List[ExamRecord]:
    return parse_catalog(raw_text, SourceKind.HISTORICAL)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def catalog_dir(download_dir: Path, raw_dir: Path) -> Path:
    """
    Catalogs fetched with `examplanner update` take the place of the bundled samples.
    """
    if any((Path(download_dir) / name).exists() for name in CATALOG_FILES.values()):
        return Path(download_dir)
    return Path(raw_dir)


def load_catalogs(raw_dir: Path = PACKAGE_DIR / "data" / "raw") -> Dict[SourceKind, List[ExamRecord]]:
    """
    Parse current.csv and historical.csv separately.

    A missing or unreadable file counts as an empty catalog.
    """
    raw_path = Path(raw_dir)
    out: Dict[SourceKind, List[ExamRecord]] = {}

    for kind, filename in CATALOG_FILES.items():
        path = raw_path / filename
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            log.warning("catalog_missing", path=str(path))
            text = ""
        except (OSError, UnicodeDecodeError) as e:
            log.warning("catalog_unreadable", path=str(path), error=str(e))
            text = ""

        out[kind] = parse_catalog(text, kind)

    return out


def load_catalog(raw_dir: Path = PACKAGE_DIR / "data" / "raw") -> List[ExamRecord]:
    """
    Return the searchable universe: current records first, then historical.
    """
    catalogs = load_catalogs(raw_dir)
    universe: List[ExamRecord] = []
    for records in catalogs.values():
        universe.extend(records)

    log.info(
        "catalog_loaded",
        total=len(universe),
        **{kind.value: len(records) for kind, records in catalogs.items()},
    )
    return universe


# ---------------------------------------------------------------------------
# CLI connection
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="examplanner.parse", description="Parse raw exam catalogs")
    p.add_argument("--raw-dir", type=Path, default=PACKAGE_DIR / "data" / "raw")
    p.add_argument("--out", type=Path, default=None, help="Optional JSON dump of all parsed exams")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    catalogs = load_catalogs(args.raw_dir)
    universe = [r for records in catalogs.values() for r in records]

    print(f"RAW_DIR : {args.raw_dir.resolve()}")
    for kind, records in catalogs.items():
        print(f"{kind.value:<10}: {len(records)} exams")
    print(f"total     : {len(universe)} exams")

    if args.out is not None:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(
            json.dumps([r.to_dict() for r in universe], ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        print(f"JSON written to {args.out.resolve()}")


if __name__ == "__main__":
    main()
