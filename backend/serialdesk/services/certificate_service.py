# Overview: Warranty certificate rendering and storage.

from __future__ import annotations

import os

from flask import current_app, render_template
from werkzeug.utils import secure_filename

from ..models import Warranty
from ..validation import DependencyUnavailableError, ValidationError
from serialdesk.time_utils import to_iso_date, utcnow


def certificate_filename(warranty: Warranty) -> str:
    # Serials may contain path separators; only the sanitized form reaches the filesystem
    safe_serial = secure_filename(warranty.serial_number or "")
    if not safe_serial:
        return f"warranty-{warranty.id}.html"
    return f"warranty-{warranty.id}-{safe_serial}.html"


def render_certificate(warranty: Warranty) -> str:
    if warranty.status != "approved":
        raise ValidationError("Certificates are only issued for approved warranties")
    holder = warranty.final_customer_name if warranty.is_retailer_sale else None
    if not holder and warranty.user is not None:
        holder = warranty.user.name
    return render_template(
        "warranty_certificate.html",
        warranty=warranty,
        holder=holder or "",
        start_date=to_iso_date(warranty.warranty_start_date),
        end_date=to_iso_date(warranty.warranty_end_date),
        issued_at=to_iso_date(utcnow().date()),
    )


def store_certificate(warranty: Warranty) -> str:
    """
    Render the certificate and write it to certificate storage.

    Returns the public URL. Storage failures raise DependencyUnavailableError;
    there is no fallback store.
    """
    html = render_certificate(warranty)

    storage_dir = current_app.config["CERTIFICATE_STORAGE_DIR"]
    if not os.path.isabs(storage_dir):
        storage_dir = os.path.join(current_app.instance_path, storage_dir)
    filename = certificate_filename(warranty)

    try:
        os.makedirs(storage_dir, exist_ok=True)
        with open(os.path.join(storage_dir, filename), "w", encoding="utf-8") as fh:
            fh.write(html)
    except OSError as e:
        raise DependencyUnavailableError(f"Certificate storage unavailable: {e}") from e

    base_url = current_app.config.get("CERTIFICATE_BASE_URL", "").rstrip("/")
    return f"{base_url}/{filename}"
