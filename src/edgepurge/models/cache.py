from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class CacheEntry(BaseModel):
    """A single cached value. ``value`` may legitimately be ``None``."""

    key: str
    value: Any  # JSON-serialisable payload
    stored_at: datetime
    expires_at: datetime
