from __future__ import annotations

import json
from fastapi import HTTPException

from app.core.settings import settings


def enforce_slot_config_size(slots: dict, metadata: dict | None = None) -> None:
    """
    Enforces a maximum serialized JSON size (in KB) for a slot configuration.
    Raises HTTP 413 on overflow, or 400 on a payload that cannot be serialized.
    """
    limit_kb = float(getattr(settings, "MAX_SLOT_CONFIG_KB", 0) or 0)
    if limit_kb <= 0:
        return
    try:
        # compact JSON to measure true wire-size
        b = json.dumps({"slots": slots, "metadata": metadata or {}}, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid JSON in slot configuration")
    kb = len(b) / 1024.0
    if kb > limit_kb:
        raise HTTPException(
            status_code=413,
            detail=f"Payload too large: configuration is {kb:.1f}KB, limit is {limit_kb:.0f}KB",
        )
