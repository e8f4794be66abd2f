# scripts/seed_slot_defaults.py
# Crea (si faltan) los drafts de una tienda desde los layouts estáticos (app/seeds/slot_defaults/<page_type>.json)
# y opcionalmente los publica.

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List

# Ensure "app" is importable when run as a script
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy.orm import Session  # noqa: E402

from app.core.logging import configure_logging  # noqa: E402
from app.core.settings import settings  # noqa: E402
from app.db.session import SessionLocal  # noqa: E402
from app.seeds.slot_defaults_loader import defaults_dir, list_default_page_types, seed_store_drafts  # noqa: E402
from app.services import slot_versioning_service as versioning  # noqa: E402


def run(
    store_id: str,
    page_types: List[str] | None = None,
    publish: bool = False,
    dry_run: bool = False,
) -> None:
    names = page_types or list_default_page_types()
    print(f"[INFO] Store='{store_id}'  DefaultsDir='{defaults_dir().as_posix()}'")
    for pt in names:
        print(f"  - {pt}")

    if not names:
        raise SystemExit("[ERR] No hay layouts por defecto que sembrar.")
    if dry_run:
        print("[DRY-RUN] No se realizaron cambios.")
        return

    db: Session = SessionLocal()
    try:
        ids = seed_store_drafts(db, store_id=store_id, page_types=names, user_id="seed")
        if publish:
            for draft_id in ids:
                published = versioning.publish_draft(db, draft_id, user_id="seed")
                print(f"[OK] {published.page_type} publicado (version_id={published.version_id})")
        db.commit()
        print(f"[OK] {len(ids)} drafts listos para '{store_id}'.")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def main():
    configure_logging(settings.LOG_LEVEL)
    ap = argparse.ArgumentParser(description="Siembra los drafts de una tienda desde los layouts por defecto")
    ap.add_argument("store_id", help="id de la tienda (ej. store-1)")
    ap.add_argument(
        "--page-type", dest="page_types", action="append", default=[],
        help="page_type a sembrar (repetible); por defecto todos los JSON disponibles",
    )
    ap.add_argument("--publish", action="store_true", help="publicar cada draft sembrado (draft -> acceptance -> published)")
    ap.add_argument("--dry-run", action="store_true", help="solo mostrar, no aplicar cambios")
    args = ap.parse_args()

    run(store_id=args.store_id, page_types=args.page_types, publish=args.publish, dry_run=args.dry_run)


if __name__ == "__main__":
    main()
