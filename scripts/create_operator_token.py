# scripts/create_operator_token.py
# Emite un JWT de operador para usar la API de slot-configurations (Authorization: Bearer ...)
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.security.jwt import create_access_token  # noqa: E402


def main():
    ap = argparse.ArgumentParser(description="Genera un access token para un operador")
    ap.add_argument("operator_id", help="id que quedará en created_by / published_by")
    ap.add_argument("--minutes", type=int, default=None, help="vigencia en minutos (default: JWT_ACCESS_TOKEN_EXPIRE_MINUTES)")
    args = ap.parse_args()

    print(create_access_token(args.operator_id, minutes=args.minutes))


if __name__ == "__main__":
    main()
