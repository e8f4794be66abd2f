# app/services/slot_store.py
# Persistencia de layouts por (store_id, page_type). No hace commit; el caller decide.
from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from app.models.slots import SlotConfiguration, SlotConfigurationVersion
from app.services.errors import ConflictError

DRAFT = "draft"
ACCEPTANCE = "acceptance"
PUBLISHED = "published"


# -------- Lectura --------
def get_configuration(db: Session, store_id: str, page_type: str, status: str) -> SlotConfiguration | None:
    return db.scalar(
        select(SlotConfiguration).where(
            SlotConfiguration.store_id == store_id,
            SlotConfiguration.page_type == page_type,
            SlotConfiguration.status == status,
        )
    )


def get_draft(db: Session, store_id: str, page_type: str) -> SlotConfiguration | None:
    return get_configuration(db, store_id, page_type, DRAFT)


def get_acceptance(db: Session, store_id: str, page_type: str) -> SlotConfiguration | None:
    return get_configuration(db, store_id, page_type, ACCEPTANCE)


def get_published(db: Session, store_id: str, page_type: str) -> SlotConfiguration | None:
    return get_configuration(db, store_id, page_type, PUBLISHED)


def get_by_id(db: Session, configuration_id: int, status: Optional[str] = None) -> SlotConfiguration | None:
    cfg = db.get(SlotConfiguration, configuration_id)
    if cfg is None or (status is not None and cfg.status != status):
        return None
    return cfg


def list_for_store(db: Session, store_id: str, status: str) -> List[SlotConfiguration]:
    return list(
        db.scalars(
            select(SlotConfiguration)
            .where(SlotConfiguration.store_id == store_id, SlotConfiguration.status == status)
            .order_by(SlotConfiguration.page_type.asc())
        )
    )


# -------- Escritura de etapas --------
def insert_stage(
    db: Session,
    *,
    store_id: str,
    page_type: str,
    status: str,
    slots: Dict[str, Any],
    metadata: Dict[str, Any],
    **values: Any,
) -> SlotConfiguration:
    """
    Inserta un registro NUEVO para la etapa; el anterior de la misma etapa se borra antes.
    El delete se flushea primero: el unit of work de SQLAlchemy emite INSERTs antes que
    DELETEs y chocaría con uq_slot_configuration_stage.
    """
    previous = get_configuration(db, store_id, page_type, status)
    if previous is not None:
        db.delete(previous)
        db.flush()

    cfg = SlotConfiguration(
        store_id=store_id,
        page_type=page_type,
        status=status,
        # copia profunda: cada etapa es una instantánea independiente
        slots=copy.deepcopy(slots or {}),
        config_metadata=copy.deepcopy(metadata or {}),
        **values,
    )
    db.add(cfg)
    db.flush()
    return cfg


def put_draft(
    db: Session,
    draft: SlotConfiguration,
    *,
    expected_version: int,
    slots: Dict[str, Any],
    metadata: Dict[str, Any],
    **values: Any,
) -> SlotConfiguration:
    """
    Escritura optimista: UPDATE ... WHERE lock_version = expected_version.
    0 filas afectadas -> alguien escribió antes (ConflictError).
    """
    db.flush()
    res = db.execute(
        update(SlotConfiguration)
        .where(
            SlotConfiguration.id == draft.id,
            SlotConfiguration.status == DRAFT,
            SlotConfiguration.lock_version == expected_version,
        )
        .values(
            slots=copy.deepcopy(slots),
            config_metadata=copy.deepcopy(metadata),
            lock_version=SlotConfiguration.lock_version + 1,
            updated_at=func.now(),
            **values,
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        db.refresh(draft)
        raise ConflictError(
            f"Draft {draft.id} was modified concurrently (expected version {expected_version}, "
            f"current {draft.lock_version})",
            current_version=draft.lock_version,
        )
    db.refresh(draft)
    return draft


def delete_configuration(db: Session, cfg: SlotConfiguration) -> None:
    db.delete(cfg)
    db.flush()


# -------- Historial --------
def _next_version_idx(db: Session, store_id: str, page_type: str) -> int:
    """Siguiente version_idx del scope (monótono; el unique del scope detecta carreras)."""
    max_idx = db.scalar(
        select(func.max(SlotConfigurationVersion.version_idx)).where(
            SlotConfigurationVersion.store_id == store_id,
            SlotConfigurationVersion.page_type == page_type,
        )
    )
    return 1 if max_idx is None else int(max_idx) + 1


def append_version_history(
    db: Session,
    *,
    store_id: str,
    page_type: str,
    slots: Dict[str, Any],
    metadata: Dict[str, Any],
    source: str = "manual",
    configuration_id: Optional[int] = None,
    created_by: Optional[str] = None,
) -> SlotConfigurationVersion:
    version = SlotConfigurationVersion(
        store_id=store_id,
        page_type=page_type,
        version_idx=_next_version_idx(db, store_id, page_type),
        configuration_id=configuration_id,
        slots=copy.deepcopy(slots or {}),
        config_metadata=copy.deepcopy(metadata or {}),
        source=source,
        created_by=created_by,
    )
    db.add(version)
    db.flush()
    return version


def list_version_history(
    db: Session,
    store_id: str,
    page_type: str,
    *,
    limit: Optional[int] = None,
) -> List[SlotConfigurationVersion]:
    """Historial del scope, más reciente primero."""
    q = (
        select(SlotConfigurationVersion)
        .where(
            SlotConfigurationVersion.store_id == store_id,
            SlotConfigurationVersion.page_type == page_type,
        )
        .order_by(SlotConfigurationVersion.version_idx.desc())
    )
    if limit:
        q = q.limit(limit)
    return list(db.scalars(q))


def count_version_history(db: Session, store_id: str, page_type: str) -> int:
    return int(
        db.scalar(
            select(func.count(SlotConfigurationVersion.id)).where(
                SlotConfigurationVersion.store_id == store_id,
                SlotConfigurationVersion.page_type == page_type,
            )
        )
        or 0
    )


def get_version(db: Session, version_id: int) -> SlotConfigurationVersion | None:
    return db.get(SlotConfigurationVersion, version_id)


# -------- Borrado total --------
def delete_all(db: Session, store_id: str, page_type: str) -> int:
    """Borra draft, acceptance, published e historial del scope. Devuelve filas borradas."""
    configs = db.execute(
        delete(SlotConfiguration)
        .where(SlotConfiguration.store_id == store_id, SlotConfiguration.page_type == page_type)
        .execution_options(synchronize_session="fetch")
    )
    versions = db.execute(
        delete(SlotConfigurationVersion)
        .where(SlotConfigurationVersion.store_id == store_id, SlotConfigurationVersion.page_type == page_type)
        .execution_options(synchronize_session="fetch")
    )
    db.flush()
    return int(configs.rowcount or 0) + int(versions.rowcount or 0)
