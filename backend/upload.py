# backend/upload.py
from __future__ import annotations

import logging
import os
import time
import uuid
from collections import defaultdict
from contextlib import contextmanager
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterator, List, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import crud
from distribute import AssignedRecord, distribute_records
from errors import (
    FileTooLargeError, PersistenceError, UnexpectedUploadError, UploadError, ValidationEmptyError,
)
from import_csv import check_extension, parse_records, supported_extension, validate_records

logger = logging.getLogger(__name__)

UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR") or Path(__file__).resolve().parent / "uploads")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))
SUMMARY_SAMPLE_SIZE = int(os.getenv("SUMMARY_SAMPLE_SIZE", "10"))
CHUNK = 64 * 1024


# -----------------------------------------------------------------------------
# Transient file

def save_upload(fileobj: BinaryIO, filename: str, upload_dir: Union[str, Path, None] = None) -> Path:
    """Stream an uploaded file to disk, enforcing extension and size limit.

    Nothing is left on disk if the upload is rejected.
    """
    ext = check_extension(filename)
    target_dir = Path(upload_dir) if upload_dir is not None else UPLOAD_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / f"file-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}.{ext}"

    written = 0
    try:
        with open(path, "wb") as out:
            while True:
                chunk = fileobj.read(CHUNK)
                if not chunk:
                    break
                written += len(chunk)
                if written > MAX_UPLOAD_BYTES:
                    raise FileTooLargeError()
                out.write(chunk)
    except BaseException:
        path.unlink(missing_ok=True)
        raise
    logger.debug("Saved upload %r to %s (%d bytes)", filename, path, written)
    return path


@contextmanager
def uploaded_file(path: Path) -> Iterator[Path]:
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)
        logger.debug("Removed transient upload %s", path)


# -----------------------------------------------------------------------------
# Pipeline

def _persist(db: Session, assigned: List[AssignedRecord]) -> List[int]:
    try:
        task_ids = crud.bulk_insert_tasks(db, assigned)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Saving %d tasks failed: %s", len(assigned), exc)
        raise PersistenceError() from exc
    return task_ids


def _preview(assigned: List[AssignedRecord], agents) -> List[Dict[str, Any]]:
    by_id = {a.id: a for a in agents}
    grouped: Dict[int, List[AssignedRecord]] = defaultdict(list)
    for rec in assigned:
        grouped[rec.agent_id].append(rec)
    out = []
    for agent_id, recs in grouped.items():
        a = by_id[agent_id]
        out.append({
            "agent_id": a.id,
            "agent_name": a.name,
            "agent_email": a.email,
            "agent_mobile": a.mobile,
            "record_count": len(recs),
            "sample_records": [
                {"id": None, "first_name": r.first_name, "phone": r.phone, "notes": r.notes}
                for r in recs[:SUMMARY_SAMPLE_SIZE]
            ],
        })
    return sorted(out, key=lambda g: (g["agent_name"], g["agent_id"]))


def run_pipeline(db: Session, content: bytes, extension: str, dry_run: bool = False) -> Dict[str, Any]:
    """parse -> validate -> distribute -> persist -> summarize.

    With `dry_run` nothing is written and the summary is built from the
    in-memory assignment.
    """
    ext = supported_extension(extension)
    rows = parse_records(content, ext)
    logger.info("Parsed %d rows from %s upload", len(rows), ext)

    report = validate_records(rows)
    logger.info("Validated rows: %d valid, %d errors", len(report.valid_records), len(report.errors))
    if not report.valid_records:
        raise ValidationEmptyError(errors=report.errors)

    agents = crud.find_agents_ordered_by_creation(db)
    assigned = distribute_records(report.valid_records, agents)

    if dry_run:
        distribution = _preview(assigned, agents)
        return {"total_records": len(assigned), "validation_errors": report.errors, "distribution": distribution}

    task_ids = _persist(db, assigned)
    logger.info("Saved %d tasks", len(task_ids))

    distribution = crud.aggregate_by_agent(db, task_ids, sample_size=SUMMARY_SAMPLE_SIZE)
    return {"total_records": len(task_ids), "validation_errors": report.errors, "distribution": distribution}


def process_upload(db: Session, path: Union[str, Path], filename: str) -> Dict[str, Any]:
    """Run the pipeline over a saved upload; the file is removed on every exit path."""
    path = Path(path)
    with uploaded_file(path):
        try:
            ext = check_extension(filename)
            return run_pipeline(db, path.read_bytes(), ext)
        except UploadError as exc:
            logger.warning("Upload %r failed (%s): %s", filename, exc.kind, exc.message)
            raise
        except Exception as exc:
            logger.exception("Upload %r failed unexpectedly", filename)
            raise UnexpectedUploadError() from exc
