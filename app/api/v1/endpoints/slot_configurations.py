# =============================================================================
# Slot Configuration Endpoints (Draft, Acceptance, Production, History, Revert)
# app/api/v1/endpoints/slot_configurations.py
# =============================================================================
from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, TypeVar

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.slots import (
    DefaultsOut,
    DestroyOut,
    DraftCreate,
    DraftUpdate,
    MergeDefaultsIn,
    MergeDefaultsOut,
    PreviewRenderRequest,
    PublishAllOut,
    RenderOut,
    SlotConfigurationOut,
    SlotPatch,
    SlotVersionDetailOut,
    SlotVersionListOut,
    SlotVersionOut,
    UnpublishedStatusOut,
)
from app.deps.auth import get_current_user_id
from app.services import slot_store as store
from app.services import slot_versioning_service as versioning
from app.services.delivery_cache import apply_cache_headers
from app.services.errors import SlotConfigError
from app.services.slot_validation import validate_slots
from app.api.rendering import render_response
from app.utils.payload_guard import enforce_slot_config_size

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")


# =======================
# Helpers
# =======================
def _run(db: Session, op: Callable[[], T]) -> T:
    """
    Ejecuta una operación de servicio en una transacción: commit si sale bien,
    rollback y re-raise ante error de dominio (los handlers de app/main.py mapean el status).
    """
    try:
        result = op()
        db.commit()
        return result
    except SlotConfigError:
        db.rollback()
        raise


def _out(cfg) -> SlotConfigurationOut:
    return SlotConfigurationOut.model_validate(cfg)


def _expected_version(body_value: Optional[int], if_match: Optional[str]) -> int:
    """Token optimista desde el body o el header If-Match ('3', '"3"' o 'W/"3"')."""
    if body_value is not None:
        return body_value
    if if_match:
        raw = if_match.strip()
        if raw.startswith("W/"):
            raw = raw[2:]
        raw = raw.strip('"')
        if raw.isdigit():
            return int(raw)
        raise HTTPException(status_code=400, detail="If-Match must carry the draft lock_version")
    raise HTTPException(status_code=428, detail="expected_version (body) or If-Match header is required")


# =======================
# Draft
# =======================
@router.get("/draft/{store_id}/{page_type}", response_model=SlotConfigurationOut)
def get_or_create_draft_endpoint(
    store_id: str,
    page_type: str,
    response: Response,
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    """Devuelve el draft del scope; lo crea (desde published / defaults) si no existe."""
    draft = _run(db, lambda: versioning.get_or_create_draft(db, store_id, page_type, user_id=current_user_id))
    apply_cache_headers(response, stage="draft")
    response.headers["ETag"] = f'"{draft.lock_version}"'
    return _out(draft)


@router.put("/draft/{draft_id}", response_model=SlotConfigurationOut)
def update_draft_endpoint(
    draft_id: int,
    payload: DraftUpdate,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    """
    Reemplaza el slot set del draft. Requiere el token optimista:
    - 409 si otro editor escribió antes (re-leer y reintentar)
    - 422 si el slot set es inválido (no se persiste nada)
    """
    expected = _expected_version(payload.expected_version, if_match)
    enforce_slot_config_size(payload.slots, payload.metadata)
    draft = _run(
        db,
        lambda: versioning.update_draft(
            db, draft_id, payload.slots, expected,
            metadata=payload.metadata, is_reset=payload.is_reset,
        ),
    )
    response.headers["ETag"] = f'"{draft.lock_version}"'
    return _out(draft)


@router.patch("/draft/{draft_id}/slots/{slot_id}", response_model=SlotConfigurationOut)
def patch_draft_slot_endpoint(
    draft_id: int,
    slot_id: str,
    payload: SlotPatch,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    """Edición puntual de styles / className / content de un slot del draft."""
    expected = _expected_version(payload.expected_version, if_match) if (payload.expected_version or if_match) else None
    draft = _run(
        db,
        lambda: versioning.patch_draft_slot(
            db, draft_id, slot_id,
            styles=payload.styles, class_name=payload.className, content=payload.content,
            expected_version=expected,
        ),
    )
    return _out(draft)


@router.delete("/draft/{draft_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_draft_endpoint(
    draft_id: int,
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    _run(db, lambda: versioning.delete_draft(db, draft_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =======================
# Promociones
# =======================
@router.post("/draft/{draft_id}/acceptance", response_model=SlotConfigurationOut)
def promote_to_acceptance_endpoint(
    draft_id: int,
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    acceptance = _run(db, lambda: versioning.promote_to_acceptance(db, draft_id, user_id=current_user_id))
    return _out(acceptance)


@router.post("/acceptance/{acceptance_id}/production", response_model=SlotConfigurationOut)
def promote_to_production_endpoint(
    acceptance_id: int,
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    published = _run(db, lambda: versioning.promote_to_production(db, acceptance_id, user_id=current_user_id))
    return _out(published)


@router.post("/draft/{draft_id}/publish", response_model=SlotConfigurationOut)
def publish_draft_endpoint(
    draft_id: int,
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    """draft -> acceptance -> production en una sola transacción."""
    published = _run(db, lambda: versioning.publish_draft(db, draft_id, user_id=current_user_id))
    return _out(published)


@router.get("/acceptance/{store_id}/{page_type}", response_model=SlotConfigurationOut)
def get_acceptance_endpoint(
    store_id: str,
    page_type: str,
    response: Response,
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    cfg = versioning.get_stage(db, store_id, page_type, store.ACCEPTANCE)
    apply_cache_headers(response, stage="acceptance")
    return _out(cfg)


@router.get("/published/{store_id}/{page_type}", response_model=SlotConfigurationOut)
def get_published_endpoint(
    store_id: str,
    page_type: str,
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    return _out(versioning.get_stage(db, store_id, page_type, store.PUBLISHED))


# =======================
# Estado de publicación
# =======================
@router.get("/unpublished-status/{store_id}", response_model=UnpublishedStatusOut)
def unpublished_status_endpoint(
    store_id: str,
    page_types: List[str] | None = Query(default=None, alias="page_type"),
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    return versioning.get_unpublished_status(db, store_id, page_types)


@router.post("/publish-all/{store_id}", response_model=PublishAllOut)
def publish_all_endpoint(
    store_id: str,
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    published = _run(db, lambda: versioning.publish_all(db, store_id, user_id=current_user_id))
    return PublishAllOut(store_id=store_id, published=[_out(p) for p in published])


# =======================
# Historial / revert
# =======================
@router.get("/history/{store_id}/{page_type}", response_model=SlotVersionListOut)
def list_history_endpoint(
    store_id: str,
    page_type: str,
    limit: int | None = Query(default=None, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    """Historial de publicaciones, más reciente primero."""
    items = versioning.list_history(db, store_id, page_type, limit=limit)
    return SlotVersionListOut(
        total=store.count_version_history(db, store_id, page_type),
        items=[SlotVersionOut.model_validate(v) for v in items],
    )


@router.get("/versions/{version_id}", response_model=SlotVersionDetailOut)
def get_version_endpoint(
    version_id: int,
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    version = store.get_version(db, version_id)
    if not version:
        raise HTTPException(status_code=404, detail="Version not found")
    return SlotVersionDetailOut.model_validate(version)


@router.post("/versions/{version_id}/revert", response_model=SlotConfigurationOut)
def revert_to_version_endpoint(
    version_id: int,
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    """Siembra el draft con la versión; published no cambia hasta una nueva promoción."""
    draft = _run(db, lambda: versioning.revert_to_version(db, version_id, user_id=current_user_id))
    return _out(draft)


@router.post("/draft/{draft_id}/undo-revert")
def undo_revert_endpoint(
    draft_id: int,
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
) -> Any:
    """Restaura el draft previo al revert. Si no había draft previo, el draft se borra (204)."""
    draft = _run(db, lambda: versioning.undo_revert(db, draft_id))
    if draft is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return _out(draft)


@router.post("/destroy/{store_id}/{page_type}", response_model=DestroyOut)
def destroy_layout_endpoint(
    store_id: str,
    page_type: str,
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    deleted = _run(db, lambda: versioning.destroy_layout(db, store_id, page_type))
    logger.info("layout %s/%s destroyed by %s", store_id, page_type, current_user_id)
    return DestroyOut(store_id=store_id, page_type=page_type, deleted=deleted)


# =======================
# Defaults empaquetados
# =======================
@router.get("/defaults/{page_type}", response_model=DefaultsOut)
def get_defaults_endpoint(
    page_type: str,
    current_user_id: str = Depends(get_current_user_id),
):
    """Layout estático empaquetado del page_type (fallback del editor). 404 si no hay."""
    config = versioning.get_page_defaults(page_type)
    return DefaultsOut(page_type=page_type, slots=config["slots"], metadata=config.get("metadata") or {})


@router.post("/merge-defaults/{store_id}/{page_type}", response_model=MergeDefaultsOut)
def merge_defaults_endpoint(
    store_id: str,
    page_type: str,
    payload: MergeDefaultsIn | None = Body(default=None),
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    """
    Agrega al draft los slots nuevos de los defaults sin pisar los existentes.
    Published no cambia hasta la próxima promoción.
    """
    expected = payload.expected_version if payload else None
    if expected is None and if_match:
        expected = _expected_version(None, if_match)
    draft, added = _run(
        db,
        lambda: versioning.merge_defaults_into_draft(
            db, store_id, page_type, expected_version=expected, user_id=current_user_id,
        ),
    )
    return MergeDefaultsOut(draft=_out(draft), added_slots=added)


# =======================
# Preview render
# =======================
@router.post("/render", response_model=RenderOut)
def preview_render_endpoint(
    payload: PreviewRenderRequest,
    response: Response,
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    """
    Renderiza cualquier etapa (o un slot set sin guardar) contra un contexto.
    Nunca escribe en la DB.
    """
    if payload.slots is not None:
        enforce_slot_config_size(payload.slots)
        validate_slots(payload.slots)
        slots = payload.slots
    else:
        slots = versioning.get_stage(db, payload.store_id, payload.page_type, payload.stage).slots or {}

    apply_cache_headers(response, stage=payload.stage)
    return render_response(payload.store_id, payload.page_type, slots, payload)


# =======================
# Draft con fallback estático
# =======================
# Registrada al final: /draft/{store_id}/{page_type} taparía /draft/{draft_id}/acceptance, /publish, /undo-revert
@router.post("/draft/{store_id}/{page_type}", response_model=SlotConfigurationOut)
def create_draft_endpoint(
    store_id: str,
    page_type: str,
    payload: DraftCreate | None = Body(default=None),
    db: Session = Depends(get_db),
    current_user_id: str = Depends(get_current_user_id),
):
    """Igual que GET, pero permite mandar el layout estático del cliente como fallback."""
    payload = payload or DraftCreate()
    if payload.static_configuration:
        enforce_slot_config_size(payload.static_configuration.get("slots") or {}, payload.static_configuration.get("metadata"))
    draft = _run(
        db,
        lambda: versioning.get_or_create_draft(
            db, store_id, page_type,
            static_fallback=payload.static_configuration,
            user_id=current_user_id,
        ),
    )
    return _out(draft)
