# tests/conftest.py
from __future__ import annotations

import os

# BD en memoria antes de importar la app (settings se lee al importar)
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.session import get_db
import app.models.slots  # noqa: F401  registra las tablas en Base.metadata
from app.security.jwt import create_access_token

# Una sola conexión compartida: el threadpool de FastAPI ve las mismas tablas en memoria
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    future=True,
)

TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture(scope="function")
def db() -> Session:
    """
    Esquema limpio por prueba. Los endpoints hacen commit de verdad,
    así que en lugar de rollback se recrean las tablas.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session):
    """
    TestClient con get_db apuntando a la sesión de la prueba en curso.
    """
    from app.main import app  # import tardío para evitar ciclos

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {create_access_token('operator-1')}"}
