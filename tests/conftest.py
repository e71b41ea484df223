import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_ALGORITHM", "HS256")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from docportal.db import Base
from docportal.models.document_file import DocumentFile, FileVisibility
from docportal.services.file_access import Actor
from docportal.services.file_replace import file_replacements
from tests.mocks import FakeStorage


@pytest.fixture()
def engine():
    database_url = os.getenv("TEST_DATABASE_URL")
    if database_url:
        engine = create_engine(database_url)
    else:
        engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def fake_storage(monkeypatch):
    storage = FakeStorage()
    monkeypatch.setattr(file_replacements, "storage", storage)
    return storage


@pytest.fixture()
def old_content() -> bytes:
    return b"%PDF-1.4 old content"


@pytest.fixture()
def document_file(db_session, fake_storage, old_content):
    record = DocumentFile(
        id="file_123",
        file_name="old_file.pdf",
        file_type="application/pdf",
        file_size=len(old_content),
        file_path="documents/file_123_old_file.pdf",
        storage_bucket="documents",
        uploaded_by="user_1",
        visibility=FileVisibility.team,
        team_id="team-a",
    )
    db_session.add(record)
    db_session.commit()
    db_session.refresh(record)
    fake_storage.objects[record.file_path] = old_content
    fake_storage.content_types[record.file_path] = "application/pdf"
    return record


@pytest.fixture()
def owner() -> Actor:
    return Actor(actor_id="user_1")


@pytest.fixture()
def admin() -> Actor:
    return Actor(actor_id="admin_1", roles=frozenset({"admin"}))


@pytest.fixture()
def stranger() -> Actor:
    return Actor(actor_id="user_2", groups=frozenset({"team-b"}))
