# backend/migrations/env.py
import os
from logging.config import fileConfig

from sqlalchemy import create_engine, pool
from alembic import context

# alembic.ini 의 prepend_sys_path 로 backend/ 가 import 경로에 들어옴
import nutriaccess.models  # noqa: F401  (모델 등록)
from nutriaccess.db import Base, sync_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def migration_url() -> str:
    """
    마이그레이션 대상 DB:
    1) ALEMBIC_DB_URL / DATABASE_URL (동기 드라이버 URL 그대로)
    2) 없으면 앱이 쓰는 ASYNC_DATABASE_URL 을 동기 드라이버로 바꿔서 사용
    """
    return os.getenv("ALEMBIC_DB_URL") or os.getenv("DATABASE_URL") or sync_database_url()


def run_migrations_offline() -> None:
    """SQL 스크립트만 출력"""
    context.configure(
        url=migration_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(migration_url(), poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # sqlite 는 ALTER TABLE 이 제한적이라 batch 모드
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()
    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
