"""
Fixtures compartidos: servicio de assets falso, settings y engine armado.
"""

import asyncio
from contextlib import contextmanager
from typing import Dict, Iterable, List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from livingdoc_core.config import Settings
from livingdoc_core.db.database import Base
from livingdoc_core.domain_models import MediaReference
from livingdoc_core.engine import build_engine
from livingdoc_core.errors import AssetJobError


class FakeAssetService:
    """
    Servicio de assets en proceso.

    - `delays`: segundos de latencia por source_url.
    - `fail`: source_urls que terminan en error.
    Registra llamadas, completados y cancelados para los asserts.
    """

    def __init__(self, delays: Dict[str, float] | None = None, fail: Iterable[str] = ()):
        self.delays = dict(delays or {})
        self.fail = set(fail)
        self.calls: List[str] = []
        self.completed: List[str] = []
        self.cancelled: List[str] = []

    async def process(self, source_url: str) -> MediaReference:
        self.calls.append(source_url)
        try:
            await asyncio.sleep(self.delays.get(source_url, 0))
        except asyncio.CancelledError:
            self.cancelled.append(source_url)
            raise
        if source_url in self.fail:
            raise AssetJobError(source_url, "imagen corrupta")
        self.completed.append(source_url)
        name = source_url.rsplit("/", 1)[-1]
        return MediaReference(
            url=f"https://cdn.test/{name}",
            width=800,
            height=600,
            size=1024,
            mime_type="image/jpeg",
        )


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        asset_service_url="http://assets.test",
    )


@pytest.fixture
def assets():
    return FakeAssetService()


@pytest.fixture
def engine(settings, assets):
    return build_engine(settings=settings, asset_service=assets)


@pytest.fixture
def session_factory():
    """Fábrica de sesiones sobre SQLite en memoria, con la semántica de get_db_session()."""
    import livingdoc_core.db.models  # noqa: F401

    db_engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(db_engine)
    Session = sessionmaker(bind=db_engine, autoflush=False)

    @contextmanager
    def factory():
        session = Session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    yield factory
    db_engine.dispose()
