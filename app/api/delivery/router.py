#  app/api/delivery/router.py
from __future__ import annotations

import json
from datetime import datetime, date, timezone

from fastapi import APIRouter, Depends, HTTPException, Response, Header
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from app.api.rendering import render_response
from app.db.session import get_db
from app.schemas.slots import DeliveryLayoutOut, RenderOut, RenderRequest
from app.services import slot_store as store
from app.services.delivery_cache import (
    apply_delivery_cache_headers,
    compute_etag_from_bytes,
    etag_matches,
    parse_httpdate,
    to_utc_seconds,
)

router = APIRouter(prefix="/delivery/v1", tags=["Delivery"])


# --- Helper para serializar datetimes en JSON ---
def _json_default(o):
    """
    Serializa datetime/date a ISO-8601. Para datetime naive, asume UTC.
    """
    if isinstance(o, datetime):
        # normalizamos a segundos para estabilidad (sin microsegundos)
        return to_utc_seconds(o).isoformat()
    if isinstance(o, date):
        return o.isoformat()
    # para tipos no soportados, deja que json lance TypeError
    raise TypeError(f"Type not serializable: {type(o)}")


def _get_published_or_404(db: Session, store_id: str, page_type: str):
    cfg = store.get_published(db, store_id, page_type)
    if not cfg:
        raise HTTPException(status_code=404, detail="Layout not found or not published")
    return cfg


@router.get(
    "/layouts/{store_id}/{page_type}",
    response_model=DeliveryLayoutOut,
    summary="Obtener layout publicado (público)",
)
def get_published_layout(
    store_id: str,
    page_type: str,
    db: Session = Depends(get_db),
    if_none_match: str | None = Header(default=None, alias="If-None-Match"),
    if_modified_since: str | None = Header(default=None, alias="If-Modified-Since"),
):
    """
    Devuelve la configuración publicada del scope. Aplica:
    - ETag (If-None-Match → 304, prioridad sobre If-Modified-Since)
    - Last-Modified (If-Modified-Since → 304)
    - Cache-Control de layouts
    """
    cfg = _get_published_or_404(db, store_id, page_type)

    out = DeliveryLayoutOut(
        store_id=cfg.store_id,
        page_type=cfg.page_type,
        status=cfg.status,
        version_id=cfg.version_id,
        slots=cfg.slots or {},
        metadata=cfg.config_metadata or {},
        updated_at=cfg.updated_at,
    )

    # Serializamos para ETag estable
    body_bytes = json.dumps(
        out.model_dump(mode="json"), separators=(",", ":"), ensure_ascii=False, sort_keys=True, default=_json_default
    ).encode("utf-8")
    etag = compute_etag_from_bytes(body_bytes)
    last_modified = to_utc_seconds(cfg.updated_at or cfg.created_at)

    # 1) If-None-Match (prioridad)
    if etag_matches(if_none_match, etag):
        resp = Response(status_code=304)
        apply_delivery_cache_headers(resp, etag=etag, last_modified=last_modified)
        return resp

    # 2) If-Modified-Since
    if not if_none_match and if_modified_since and last_modified:
        ims = parse_httpdate(if_modified_since)
        if ims and last_modified <= ims:
            resp = Response(status_code=304)
            apply_delivery_cache_headers(resp, etag=etag, last_modified=last_modified)
            return resp

    resp = Response(content=body_bytes, media_type="application/json")
    apply_delivery_cache_headers(resp, etag=etag, last_modified=last_modified)
    return resp


@router.post(
    "/layouts/{store_id}/{page_type}/render",
    response_model=RenderOut,
    summary="Renderizar layout publicado contra un contexto (público)",
)
def render_published_layout(
    store_id: str,
    page_type: str,
    payload: RenderRequest,
    db: Session = Depends(get_db),
):
    """Árbol resuelto + HTML del layout publicado. No se cachea (depende del contexto)."""
    cfg = _get_published_or_404(db, store_id, page_type)
    return render_response(store_id, page_type, cfg.slots or {}, payload)


@router.post(
    "/layouts/{store_id}/{page_type}/html",
    response_class=HTMLResponse,
    summary="HTML del layout publicado (público)",
)
def render_published_layout_html(
    store_id: str,
    page_type: str,
    payload: RenderRequest,
    db: Session = Depends(get_db),
):
    cfg = _get_published_or_404(db, store_id, page_type)
    rendered = render_response(store_id, page_type, cfg.slots or {}, payload.model_copy(update={"include_html": True}))
    return HTMLResponse(content=rendered.html or "")
