# app/seeds/slot_defaults_loader.py
from __future__ import annotations
import json
import logging
import pathlib
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.settings import settings
from app.services.slot_validation import validate_configuration

logger = logging.getLogger(__name__)

PACKAGED_DEFAULTS_DIR = pathlib.Path(__file__).resolve().parent / "slot_defaults"


def defaults_dir() -> pathlib.Path:
    return pathlib.Path(settings.SLOT_DEFAULTS_DIR) if settings.SLOT_DEFAULTS_DIR else PACKAGED_DEFAULTS_DIR


def _read_json(path: pathlib.Path) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"No existe el archivo de layout: {path.as_posix()}")
    raw = path.read_bytes()
    txt = raw.decode("utf-8-sig")  # tolera BOM/UTF-8
    data = json.loads(txt)
    if not isinstance(data, dict):
        raise ValueError(f"El layout en {path.name} debe ser un objeto JSON.")
    return data


def to_configuration(raw: Dict[str, Any], page_type: str) -> Dict[str, Any]:
    """
    Normaliza un layout estático al shape de Configuration:
    {"page_name", "slot_type", "slots"} -> {"slots", "metadata": {...}}
    """
    meta = dict(raw.get("metadata") or {})
    for key in ("page_name", "slot_type"):
        if raw.get(key) is not None:
            meta.setdefault(key, raw[key])
    meta.setdefault("page_type", page_type)
    return {"slots": dict(raw.get("slots") or {}), "metadata": meta}


def list_default_page_types(base_dir: Optional[pathlib.Path] = None) -> List[str]:
    base = base_dir or defaults_dir()
    if not base.is_dir():
        return []
    return sorted(p.stem for p in base.glob("*.json"))


def load_page_defaults(page_type: str, base_dir: Optional[pathlib.Path] = None) -> Dict[str, Any] | None:
    """
    Layout estático del page_type o None si no hay archivo.
    Un archivo inválido es un error de despliegue: se propaga (ValidationError / ValueError).
    """
    path = (base_dir or defaults_dir()) / f"{page_type}.json"
    if not path.exists():
        return None
    config = to_configuration(_read_json(path), page_type)
    validate_configuration(config)
    return config


def seed_store_drafts(
    db: Session,
    *,
    store_id: str,
    page_types: Iterable[str],
    user_id: Optional[str] = None,
) -> List[int]:
    """
    Crea (si faltan) los drafts de una tienda a partir de los defaults.
    No maneja transacciones: el caller hace commit/rollback.
    """
    from app.services.slot_versioning_service import get_or_create_draft

    ids: List[int] = []
    for page_type in page_types:
        draft = get_or_create_draft(db, store_id, page_type, user_id=user_id)
        ids.append(int(draft.id))
        logger.info("[seed] %s · %s draft OK (id=%s)", store_id, page_type, draft.id)
    return ids
