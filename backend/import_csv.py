from __future__ import annotations
import argparse
import logging
import re
import sys
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from errors import EmptyFileError, MalformedFileError, UnsupportedFormatError, UploadError

SUPPORTED_EXTENSIONS = ("csv", "xlsx", "xls")

# Ordered aliases per logical field; first non-blank match wins.
FIELD_ALIASES: Dict[str, tuple] = {
    "first_name": ("FirstName", "firstname", "First Name", "Name", "name"),
    "phone": ("Phone", "phone", "Mobile", "mobile", "Phone Number"),
    "notes": ("Notes", "notes", "Note", "note"),
}

MAX_FIRST_NAME = 50
MAX_NOTES = 500
PHONE_RE = re.compile(r"^\+?[0-9\s\-()]{7,15}$")


@dataclass(frozen=True)
class ValidatedRecord:
    first_name: str
    phone: str
    notes: str = ""


@dataclass
class ValidationReport:
    valid_records: List[ValidatedRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def fold_label(label: Any) -> str:
    return " ".join(str(label).split()).casefold()


def _folded_aliases(aliases: tuple) -> List[str]:
    out: List[str] = []
    for a in aliases:
        f = fold_label(a)
        if f not in out:
            out.append(f)
    return out


FOLDED_ALIASES: Dict[str, List[str]] = {k: _folded_aliases(v) for k, v in FIELD_ALIASES.items()}


def as_text(v) -> Optional[str]:
    if v is None or (isinstance(v, float) and pd.isna(v)) or v is pd.NA:
        return None
    s = str(v).strip()
    return s if s != "" else None


def file_extension(filename: str) -> str:
    """'Contacts.XLSX' -> 'xlsx'; a name without a suffix has no extension."""
    return Path((filename or "").strip()).suffix.lower().lstrip(".")


def supported_extension(extension: str) -> str:
    """Normalize a declared extension ('csv', '.XLSX') or raise UnsupportedFormatError."""
    ext = (extension or "").strip().lower().lstrip(".")
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError()
    return ext


def check_extension(filename: str) -> str:
    return supported_extension(file_extension(filename))


# -----------------------------------------------------------------------------
# Parsing

def _read_frame(content: bytes, ext: str) -> pd.DataFrame:
    buf = BytesIO(content)
    if ext == "csv":
        # index_col=False keeps a trailing delimiter from shifting columns into the index
        return pd.read_csv(buf, dtype=str, keep_default_na=False, index_col=False, encoding="utf-8-sig")
    engine = "openpyxl" if ext == "xlsx" else "xlrd"
    # first sheet only, header row required
    return pd.read_excel(buf, sheet_name=0, dtype=str, keep_default_na=False, engine=engine)


def parse_records(content: bytes, extension: str) -> List[Dict[str, Any]]:
    """Turn CSV/XLSX/XLS bytes into one dict per data row.

    CSV rows made only of delimiters are kept so row numbers follow the file;
    spreadsheet rows with no cell values are skipped. No schema is enforced
    here: column labels are passed through as strings.
    """
    ext = supported_extension(extension)
    if not content:
        raise EmptyFileError()

    try:
        df = _read_frame(content, ext)
    except pd.errors.EmptyDataError as exc:
        raise EmptyFileError() from exc
    except Exception as exc:
        raise MalformedFileError() from exc

    rows: List[Dict[str, Any]] = []
    for rec in df.to_dict(orient="records"):
        if ext != "csv" and not any(as_text(v) is not None for v in rec.values()):
            continue
        rows.append({str(k): v for k, v in rec.items()})

    if not rows:
        raise EmptyFileError()
    return rows


# -----------------------------------------------------------------------------
# Validation

def resolve_field(row: Dict[str, Any], field_name: str) -> Optional[str]:
    folded: Dict[str, Any] = {}
    for k, v in row.items():
        folded.setdefault(fold_label(k), v)
    for alias in FOLDED_ALIASES[field_name]:
        val = as_text(folded.get(alias))
        if val is not None:
            return val
    return None


def _constraint_errors(n: int, first_name: str, phone: str, notes: str) -> List[str]:
    errs = []
    if len(first_name) > MAX_FIRST_NAME:
        errs.append(f"Row {n}: First Name cannot exceed {MAX_FIRST_NAME} characters")
    if not PHONE_RE.match(phone) or len(phone) > 15:
        errs.append(f"Row {n}: Please enter a valid phone number")
    if len(notes) > MAX_NOTES:
        errs.append(f"Row {n}: Notes cannot exceed {MAX_NOTES} characters")
    return errs


def validate_records(rows) -> ValidationReport:
    report = ValidationReport()
    for n, row in enumerate(rows, start=1):
        first_name = resolve_field(row, "first_name")
        phone = resolve_field(row, "phone")
        notes = resolve_field(row, "notes") or ""

        if first_name is None:
            report.errors.append(f"Row {n}: First Name is required")
        if phone is None:
            report.errors.append(f"Row {n}: Phone number is required")
        if first_name is None or phone is None:
            continue

        errs = _constraint_errors(n, first_name, phone, notes)
        if errs:
            report.errors.extend(errs)
            continue
        report.valid_records.append(ValidatedRecord(first_name=first_name, phone=phone, notes=notes))
    return report


# -----------------------------------------------------------------------------
# CLI

def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Parse a CSV/XLSX/XLS file and distribute its tasks to agents")
    ap.add_argument("path")
    ap.add_argument("--dry", action="store_true", help="Distribute without saving any tasks")
    args = ap.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # imported here so parsing/validation work without a configured database
    from db import SessionLocal
    from upload import run_pipeline

    with open(args.path, "rb") as f:
        content = f.read()

    db = SessionLocal()
    try:
        summary = run_pipeline(db, content, file_extension(args.path), dry_run=args.dry)
    except UploadError as exc:
        print(f"Import failed: {exc.message}", file=sys.stderr)
        for e in exc.errors:
            print(f"  {e}", file=sys.stderr)
        return 1
    finally:
        db.close()

    for e in summary["validation_errors"]:
        print(f"skipped: {e}")
    for d in summary["distribution"]:
        print(f"{d['agent_name']} <{d['agent_email']}>: {d['record_count']} tasks")
    verb = "would save" if args.dry else "saved"
    print(f"Done. {verb} {summary['total_records']} tasks")
    return 0


if __name__ == "__main__":
    sys.exit(main())
