# app/services/slot_versioning_service.py
# Ciclo de vida de layouts: draft -> acceptance -> published, historial, revert / undo.
#
# Reglas:
# - Cada etapa es una copia completa e independiente; promover INSERTA un registro nuevo.
# - Nada hace commit: el endpoint hace db.commit() o db.rollback() ante error, así una
#   promoción (registro + entrada de historial) se confirma entera o no se confirma.
from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import null
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.settings import settings
from app.models.slots import SlotConfiguration, SlotConfigurationVersion
from app.seeds.slot_defaults_loader import load_page_defaults, to_configuration
from app.services import slot_store as store
from app.services.errors import ConflictError, NotFoundError, ValidationError
from app.services.slot_validation import validate_configuration, validate_slots

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _stamp(metadata: Optional[Dict[str, Any]], page_type: str) -> Dict[str, Any]:
    meta = copy.deepcopy(dict(metadata or {}))
    now = _now_iso()
    meta.setdefault("page_type", page_type)
    meta.setdefault("created", now)
    meta["lastModified"] = now
    return meta


def _require(cfg, what: str, ident: Any):
    if cfg is None:
        raise NotFoundError(f"{what} {ident} not found")
    return cfg


# -------- Draft --------
def get_or_create_draft(
    db: Session,
    store_id: str,
    page_type: str,
    static_fallback: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
) -> SlotConfiguration:
    """
    Devuelve el draft del scope; si no existe lo siembra, en este orden, desde:
    published -> static_fallback del cliente -> defaults empaquetados -> layout vacío.
    """
    draft = store.get_draft(db, store_id, page_type)
    if draft is not None:
        return draft

    published = store.get_published(db, store_id, page_type)
    if published is not None:
        source, config = "published", published.as_configuration()
    elif static_fallback:
        source, config = "static", to_configuration(static_fallback, page_type)
        validate_configuration(config)
    else:
        config = load_page_defaults(page_type)
        source = "defaults" if config is not None else "empty"
        config = config or {"slots": {}, "metadata": {"page_type": page_type}}

    try:
        draft = store.insert_stage(
            db,
            store_id=store_id,
            page_type=page_type,
            status=store.DRAFT,
            slots=config["slots"],
            metadata=_stamp(config.get("metadata"), page_type),
            has_unpublished_changes=False,
            created_by=user_id,
        )
    except IntegrityError as e:
        raise ConflictError(f"Draft for {store_id}/{page_type} was created concurrently") from e

    logger.info("draft created for %s/%s from %s (id=%s)", store_id, page_type, source, draft.id)
    return draft


def update_draft(
    db: Session,
    draft_id: int,
    new_slots: Dict[str, Any],
    expected_version: int,
    metadata: Optional[Dict[str, Any]] = None,
    is_reset: bool = False,
) -> SlotConfiguration:
    """
    Reemplaza el slot set completo del draft (nunca merge parcial).
    - Valida antes de escribir: un set inválido no se persiste.
    - expected_version != lock_version actual -> ConflictError.
    - is_reset=True vuelve a marcar el draft como sin cambios pendientes.
    """
    draft = _require(store.get_by_id(db, draft_id, store.DRAFT), "Draft", draft_id)
    validate_slots(new_slots)

    meta = dict(draft.config_metadata or {})
    if metadata:
        meta.update(metadata)

    return store.put_draft(
        db,
        draft,
        expected_version=expected_version,
        slots=new_slots,
        metadata=_stamp(meta, draft.page_type),
        has_unpublished_changes=not is_reset,
    )


def patch_draft_slot(
    db: Session,
    draft_id: int,
    slot_id: str,
    *,
    styles: Optional[Dict[str, Any]] = None,
    class_name: Optional[str] = None,
    content: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> SlotConfiguration:
    """Edición puntual de un slot (styles merge, className / content reemplazo) vía update_draft."""
    draft = _require(store.get_by_id(db, draft_id, store.DRAFT), "Draft", draft_id)
    slots = copy.deepcopy(draft.slots or {})
    slot = slots.get(slot_id)
    if slot is None:
        raise NotFoundError(f"Slot '{slot_id}' not found in draft {draft_id}")

    if styles:
        slot["styles"] = {**(slot.get("styles") or {}), **styles}
    if class_name is not None:
        slot["className"] = class_name
    if content is not None:
        slot["content"] = content

    token = expected_version if expected_version is not None else draft.lock_version
    return update_draft(db, draft_id, slots, token)


def delete_draft(db: Session, draft_id: int) -> None:
    draft = _require(store.get_by_id(db, draft_id, store.DRAFT), "Draft", draft_id)
    store.delete_configuration(db, draft)
    logger.info("draft %s deleted", draft_id)


# -------- Defaults empaquetados --------
def get_page_defaults(page_type: str) -> Dict[str, Any]:
    config = load_page_defaults(page_type)
    if config is None:
        raise NotFoundError(f"No default configuration for page type '{page_type}'")
    return config


def merge_defaults_into_draft(
    db: Session,
    store_id: str,
    page_type: str,
    expected_version: Optional[int] = None,
    user_id: Optional[str] = None,
) -> Tuple[SlotConfiguration, List[str]]:
    """
    Agrega al draft los slots de los defaults que todavía no existen (por id).
    Los slots existentes no se tocan y published no cambia: el resultado hay que
    promoverlo como cualquier otra edición. Devuelve (draft, ids agregados).
    """
    defaults = get_page_defaults(page_type)
    draft = get_or_create_draft(db, store_id, page_type, user_id=user_id)

    current = draft.slots or {}
    added = [sid for sid in defaults["slots"] if sid not in current]
    if not added:
        return draft, []

    merged = copy.deepcopy(current)
    for sid in added:
        merged[sid] = copy.deepcopy(defaults["slots"][sid])

    token = expected_version if expected_version is not None else draft.lock_version
    draft = update_draft(db, draft.id, merged, token, metadata={"mergedFromDefaults": page_type})
    logger.info("merged %d default slots into draft %s (%s/%s)", len(added), draft.id, store_id, page_type)
    return draft, added


# -------- Promociones --------
def promote_to_acceptance(db: Session, draft_id: int, user_id: Optional[str] = None) -> SlotConfiguration:
    draft = _require(store.get_by_id(db, draft_id, store.DRAFT), "Draft", draft_id)
    acceptance = store.insert_stage(
        db,
        store_id=draft.store_id,
        page_type=draft.page_type,
        status=store.ACCEPTANCE,
        slots=draft.slots,
        metadata=draft.config_metadata,
        reverted_from_version_id=draft.reverted_from_version_id,
        created_by=user_id,
    )
    logger.info(
        "draft %s promoted to acceptance for %s/%s (id=%s)",
        draft.id, draft.store_id, draft.page_type, acceptance.id,
    )
    return acceptance


def promote_to_production(db: Session, acceptance_id: int, user_id: Optional[str] = None) -> SlotConfiguration:
    """
    Publica la acceptance como registro nuevo + entrada de historial (misma transacción).
    El draft no se toca. Si el contenido viene de un revert, la entrada queda con source="revert".
    """
    acceptance = _require(store.get_by_id(db, acceptance_id, store.ACCEPTANCE), "Acceptance", acceptance_id)
    source = "revert" if acceptance.reverted_from_version_id else "manual"

    try:
        published = store.insert_stage(
            db,
            store_id=acceptance.store_id,
            page_type=acceptance.page_type,
            status=store.PUBLISHED,
            slots=acceptance.slots,
            metadata=acceptance.config_metadata,
            reverted_from_version_id=acceptance.reverted_from_version_id,
            created_by=acceptance.created_by,
            published_by=user_id,
        )
        version = store.append_version_history(
            db,
            store_id=published.store_id,
            page_type=published.page_type,
            slots=published.slots,
            metadata=published.config_metadata,
            source=source,
            configuration_id=published.id,
            created_by=user_id,
        )
        published.version_id = version.id
        db.flush()
    except IntegrityError as e:
        raise ConflictError(
            f"Concurrent publication for {acceptance.store_id}/{acceptance.page_type}; retry"
        ) from e

    logger.info(
        "acceptance %s published for %s/%s (id=%s, version_idx=%s, source=%s)",
        acceptance.id, published.store_id, published.page_type, published.id, version.version_idx, source,
    )
    return published


def publish_draft(db: Session, draft_id: int, user_id: Optional[str] = None) -> SlotConfiguration:
    """draft -> acceptance -> published en una sola transacción del caller."""
    acceptance = promote_to_acceptance(db, draft_id, user_id=user_id)
    published = promote_to_production(db, acceptance.id, user_id=user_id)

    draft = store.get_by_id(db, draft_id, store.DRAFT)
    if draft is not None:
        draft.has_unpublished_changes = False
        db.flush()
    return published


# -------- Estado de publicación --------
def _differs(draft: Optional[SlotConfiguration], published: Optional[SlotConfiguration]) -> bool:
    if draft is None:
        return False
    if published is None:
        return True
    return (draft.slots or {}) != (published.slots or {})


def get_unpublished_status(
    db: Session,
    store_id: str,
    page_types: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """Compara draft vs published (slot set) por page_type."""
    drafts = {d.page_type: d for d in store.list_for_store(db, store_id, store.DRAFT)}
    published = {p.page_type: p for p in store.list_for_store(db, store_id, store.PUBLISHED)}

    names = list(page_types) if page_types is not None else list(settings.SLOT_PAGE_TYPES)
    names += [pt for pt in sorted(drafts) if pt not in names]

    status = {pt: _differs(drafts.get(pt), published.get(pt)) for pt in names}
    return {
        "store_id": store_id,
        "has_unpublished_changes": any(status.values()),
        "page_types": status,
    }


def publish_all(db: Session, store_id: str, user_id: Optional[str] = None) -> List[SlotConfiguration]:
    """Publica todos los drafts de la tienda que difieren de su published."""
    out: List[SlotConfiguration] = []
    for draft in store.list_for_store(db, store_id, store.DRAFT):
        if not _differs(draft, store.get_published(db, store_id, draft.page_type)):
            continue
        out.append(publish_draft(db, draft.id, user_id=user_id))
    logger.info("publish-all for %s: %d layouts published", store_id, len(out))
    return out


# -------- Revert / undo --------
def revert_to_version(db: Session, version_id: int, user_id: Optional[str] = None) -> SlotConfiguration:
    """
    Siembra el draft con el snapshot de la versión. Published no cambia.
    El estado previo del draft queda en revert_buffer (un solo nivel de undo).
    """
    version: SlotConfigurationVersion = _require(store.get_version(db, version_id), "Version", version_id)
    meta = _stamp(version.config_metadata, version.page_type)
    draft = store.get_draft(db, version.store_id, version.page_type)

    if draft is None:
        draft = store.insert_stage(
            db,
            store_id=version.store_id,
            page_type=version.page_type,
            status=store.DRAFT,
            slots=version.slots,
            metadata=meta,
            reverted_from_version_id=version.id,
            revert_buffer={"no_previous_draft": True},
            has_unpublished_changes=True,
            created_by=user_id,
        )
    else:
        buffer = {
            "slots": copy.deepcopy(draft.slots or {}),
            "metadata": copy.deepcopy(draft.config_metadata or {}),
            "reverted_from": draft.reverted_from_version_id,
            "has_unpublished_changes": bool(draft.has_unpublished_changes),
        }
        draft = store.put_draft(
            db,
            draft,
            expected_version=draft.lock_version,
            slots=version.slots,
            metadata=meta,
            reverted_from_version_id=version.id,
            revert_buffer=buffer,
            has_unpublished_changes=True,
        )

    logger.info(
        "draft for %s/%s reverted to version %s (idx=%s)",
        version.store_id, version.page_type, version.id, version.version_idx,
    )
    return draft


def undo_revert(db: Session, draft_id: int) -> Optional[SlotConfiguration]:
    """
    Restaura el draft previo al último revert. Si antes del revert no había draft,
    el draft del revert se borra y se devuelve None. Sin revert pendiente -> NotFoundError.
    """
    draft = _require(store.get_by_id(db, draft_id, store.DRAFT), "Draft", draft_id)
    buffer = draft.revert_buffer
    if not buffer:
        raise NotFoundError(f"Draft {draft_id} has no revert to undo")

    if buffer.get("no_previous_draft"):
        store.delete_configuration(db, draft)
        logger.info("undo revert: draft %s removed (no previous draft)", draft_id)
        return None

    if not isinstance(buffer.get("slots"), dict):
        raise ValidationError(f"Draft {draft_id} has a corrupt revert buffer")

    draft = store.put_draft(
        db,
        draft,
        expected_version=draft.lock_version,
        slots=buffer["slots"],
        metadata=buffer.get("metadata") or {},
        reverted_from_version_id=buffer.get("reverted_from"),
        has_unpublished_changes=bool(buffer.get("has_unpublished_changes")),
        revert_buffer=null(),
    )
    logger.info("undo revert: draft %s restored", draft_id)
    return draft


# -------- Lecturas / borrado --------
def get_stage(db: Session, store_id: str, page_type: str, stage: str) -> SlotConfiguration:
    cfg = store.get_configuration(db, store_id, page_type, stage)
    return _require(cfg, f"{stage.capitalize()} layout for", f"{store_id}/{page_type}")


def list_history(
    db: Session,
    store_id: str,
    page_type: str,
    limit: Optional[int] = None,
) -> List[SlotConfigurationVersion]:
    return store.list_version_history(db, store_id, page_type, limit=limit or settings.SLOT_HISTORY_LIMIT)


def destroy_layout(db: Session, store_id: str, page_type: str) -> int:
    """Borra draft, acceptance, published e historial del scope."""
    deleted = store.delete_all(db, store_id, page_type)
    logger.info("layout %s/%s destroyed (%d rows)", store_id, page_type, deleted)
    return deleted
