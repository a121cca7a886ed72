# backend/errors.py
from __future__ import annotations

from typing import List, Optional


class UploadError(Exception):
    """Base for every failure the upload pipeline reports to the caller.

    `kind` tags the variant, `status_code` is the HTTP status it maps to and
    `message` is safe to show to the caller.
    """

    kind = "upload_error"
    status_code = 400
    default_message = "Error processing file upload"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        self.message = message or self.default_message
        self.errors = list(errors or [])
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class UnsupportedFormatError(UploadError):
    kind = "unsupported_format"
    default_message = "Invalid file type. Please upload CSV, XLS, or XLSX files only."


class EmptyFileError(UploadError):
    kind = "empty_file"
    default_message = "File is empty or contains no valid data"


class MalformedFileError(UploadError):
    kind = "malformed_file"
    default_message = "File could not be read. Check that it is a valid CSV, XLS, or XLSX file."


class FileTooLargeError(UploadError):
    kind = "file_too_large"
    status_code = 413
    default_message = "File exceeds the 5 MB upload limit"


class ValidationEmptyError(UploadError):
    kind = "validation_empty"
    default_message = "No valid tasks found in the file"


class NoWorkersError(UploadError):
    kind = "no_workers"
    default_message = "No agents found. Please create agents before uploading tasks."


class PersistenceError(UploadError):
    kind = "persistence"
    status_code = 500
    default_message = "Error saving tasks"


class UnexpectedUploadError(UploadError):
    kind = "unexpected"
    status_code = 500
