from __future__ import annotations

import uuid
from datetime import datetime


def new_id() -> str:
    """Opaque primary key for every persisted record."""
    return str(uuid.uuid4())


def invoice_number_for(created_at: datetime) -> str:
    """
    Human-facing invoice number derived from the creation instant.

    Example: 2026-10-19 14:03:07.412 -> "INV-261019-140307412"
    """
    millis = created_at.microsecond // 1000
    return f"INV-{created_at:%y%m%d-%H%M%S}{millis:03d}"
