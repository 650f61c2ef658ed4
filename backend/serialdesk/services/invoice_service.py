# Overview: Purchase invoice uploads for warranty registrations.

from __future__ import annotations

import os
import uuid

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..validation import DependencyUnavailableError, ValidationError

ALLOWED_EXTENSIONS = {"pdf", "png", "jpg", "jpeg", "webp"}


def _storage_dir() -> str:
    storage_dir = current_app.config["INVOICE_STORAGE_DIR"]
    if not os.path.isabs(storage_dir):
        storage_dir = os.path.join(current_app.instance_path, storage_dir)
    return storage_dir


def store_invoice(upload: FileStorage | None) -> str:
    """
    Save an uploaded invoice and return its public URL.

    The stored name is a random prefix plus the sanitized client filename, so
    uploads never overwrite each other or leave the storage directory.

    Raises:
        ValidationError: no file, unsupported type, or larger than INVOICE_MAX_BYTES
        DependencyUnavailableError: storage not writable
    """
    if upload is None or not upload.filename:
        raise ValidationError("No invoice file provided")

    original = secure_filename(upload.filename)
    extension = original.rsplit(".", 1)[-1].lower() if "." in original else ""
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationError(f"Invoice must be one of: {', '.join(sorted(ALLOWED_EXTENSIONS))}")

    limit = current_app.config.get("INVOICE_MAX_BYTES", 5 * 1024 * 1024)
    data = upload.stream.read(limit + 1)
    if not data:
        raise ValidationError("Invoice file is empty")
    if len(data) > limit:
        raise ValidationError(f"Invoice exceeds {limit // (1024 * 1024)} MB")

    filename = f"{uuid.uuid4().hex}-{original}"
    storage_dir = _storage_dir()
    try:
        os.makedirs(storage_dir, exist_ok=True)
        with open(os.path.join(storage_dir, filename), "wb") as fh:
            fh.write(data)
    except OSError as e:
        raise DependencyUnavailableError(f"Invoice storage unavailable: {e}") from e

    base_url = current_app.config.get("INVOICE_BASE_URL", "").rstrip("/")
    return f"{base_url}/{filename}"
