from __future__ import annotations

from datetime import datetime, timezone


def utc_isoformat() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()
