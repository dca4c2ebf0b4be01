import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from nutriaccess.api.deps import get_now
from nutriaccess.db import Base, get_db
from nutriaccess.main import app
from nutriaccess.services.rate_limit import code_attempts

from seed_data import PRO_CODE, seed_catalog, seed_professionals

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


class Clock:
    """get_now override; tests move time forward explicitly."""

    def __init__(self, now: datetime):
        self.now = now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return Clock(T0)


@pytest.fixture
def session_factory(tmp_path):
    # 테스트마다 새 sqlite 파일, 커넥션은 재사용하지 않음 (이벤트 루프가 매번 다름)
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def init():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with factory() as session:
            await seed_professionals(session)
            await seed_catalog(session)
            await session.commit()

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    asyncio.run(init())
    yield factory
    asyncio.run(engine.dispose())


@pytest.fixture
def run(session_factory):
    """Run ``fn(session)`` to completion on a fresh session and return its result."""

    def _run(fn):
        async def go():
            async with session_factory() as session:
                return await fn(session)

        return asyncio.run(go())

    return _run


@pytest.fixture(autouse=True)
def reset_limiter():
    code_attempts._failures.clear()
    yield
    code_attempts._failures.clear()


@pytest.fixture
def client(session_factory, clock):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: clock.now
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def pro_headers():
    return {"x-professional-code": PRO_CODE}
