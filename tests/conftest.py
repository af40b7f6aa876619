# tests/conftest.py
import sys
from pathlib import Path

# --- Configuración del Path ---
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import os

import pytest
import pytest_asyncio
import httpx
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool
from typing import Generator

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-cart-service")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_cart.db")
os.environ.setdefault("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///./test_cart.db")

from app.main import app
from app.api.deps import get_cart_service
from app.core.config import settings
from app.core.security import create_access_token
from app.db.session import Base, SessionLocal, engine as sync_engine
from app.db.session_async import build_async_engine, build_sessionmaker
from app.repositories.cart_store import CartStore
from app.services.cart_service import CartService


# ---------- Fixtures ----------
@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Crea las tablas en SQLite solo una vez por sesión de tests."""
    import app.models.cart  # noqa: F401

    Base.metadata.create_all(bind=sync_engine)
    yield
    Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with sync_engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Sesión sync corta para verificar lo que quedó persistido."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def count_rows(db_session: Session):
    """Cuenta filas de carts / line_items fuera de cualquier transacción del test."""

    def _count(model) -> int:
        db_session.expire_all()
        try:
            return db_session.scalar(select(func.count()).select_from(model))
        finally:
            # Release the SQLite read lock so later writes in the test can commit.
            db_session.rollback()

    return _count


@pytest_asyncio.fixture(scope="function")
async def cart_engine():
    """AsyncEngine sin pool, ligado al event loop de cada test."""
    engine = build_async_engine(settings.ASYNC_DATABASE_URL, poolclass=NullPool)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def store(cart_engine) -> CartStore:
    return CartStore(build_sessionmaker(cart_engine))


@pytest.fixture(scope="function")
def cart_service(store: CartStore) -> CartService:
    return CartService(store)


@pytest_asyncio.fixture(scope="function")
async def client(cart_service: CartService):
    """AsyncClient enlazado a la app, con el servicio apuntando a la base de tests."""
    app.dependency_overrides[get_cart_service] = lambda: cart_service
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def auth_headers() -> dict[str, str]:
    token = create_access_token(subject="cart-tests")
    return {"Authorization": f"Bearer {token}"}

