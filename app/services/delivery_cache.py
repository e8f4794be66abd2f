# app/services/delivery_cache.py
# ⟶ ETag y Cache-Control para layouts + helpers HTTP-date
from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime

from fastapi import Response


# -----------------------------
# ETags y Cache-Control básicos
# -----------------------------
def compute_etag_from_bytes(body: bytes) -> str:
    """
    ETag como sha256 hex del cuerpo bytes (entre comillas, RFC 7232).
    """
    return '"' + hashlib.sha256(body).hexdigest() + '"'


def etag_matches(if_none_match: str | None, etag: str) -> bool:
    """If-None-Match admite lista separada por comas, '*' y prefijo débil W/."""
    if not if_none_match:
        return False
    for candidate in if_none_match.split(","):
        c = candidate.strip()
        if c == "*":
            return True
        if c.startswith("W/"):
            c = c[2:]
        if c == etag or c.strip('"') == etag.strip('"'):
            return True
    return False


def apply_cache_headers(response: Response, *, stage: str) -> None:
    # solo lo publicado es cacheable; draft/acceptance son del editor
    if stage == "published":
        response.headers["Cache-Control"] = "public, max-age=60"
    else:
        response.headers["Cache-Control"] = "no-store"


# -----------------------------
# HTTP-date helpers (UTC)
# -----------------------------
def to_utc_seconds(dt: datetime | None) -> datetime | None:
    """
    Normaliza un datetime a UTC y sin microsegundos (precisión de segundos).
    Si viene naive, se asume UTC (no desplaza).
    """
    if not dt:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.replace(microsecond=0)


def httpdate(dt: datetime) -> str:
    """
    Convierte un datetime a HTTP-date (RFC 7231).
    format_datetime(..., usegmt=True) exige tz==UTC.
    """
    return format_datetime(to_utc_seconds(dt), usegmt=True)


def parse_httpdate(value: str) -> datetime | None:
    """
    Parsea un HTTP-date a datetime aware (UTC). Devuelve None si falla.
    """
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    return to_utc_seconds(dt)


# -----------------------------
# Políticas de caché Delivery
# -----------------------------
def cache_policy_for_layout() -> dict[str, str]:
    return {
        "Cache-Control": "public, max-age=300, stale-while-revalidate=600",
    }


def apply_delivery_cache_headers(
    resp: Response,
    *,
    etag: str | None,
    last_modified: datetime | None,
) -> None:
    """
    Aplica ETag, Last-Modified y Cache-Control de layouts publicados.
    """
    if etag:
        resp.headers["ETag"] = etag
    if last_modified:
        resp.headers["Last-Modified"] = httpdate(last_modified)
    for k, v in cache_policy_for_layout().items():
        resp.headers[k] = v
