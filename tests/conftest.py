"""Shared test fixtures."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.core.artifact.naming import NameResolver
from src.core.artifact.registry import ArtifactRegistry
from src.core.artifact.source import JsonArtifactSource
from src.db.database import get_db
from src.main import app

ARTIFACT_SEED_PATH = Path("src/data/artifacts.json")

TEST_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
)
TestSession = sessionmaker(bind=TEST_ENGINE, autocommit=False, autoflush=False)


def _override_get_db():
    db = TestSession()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = _override_get_db


@pytest.fixture()
def client() -> TestClient:
    """FastAPI TestClient wired to an in-memory SQLite database."""
    return TestClient(app)


@pytest.fixture()
def artifact_registry() -> ArtifactRegistry:
    """seed JSON에서 바로 읽는 레지스트리"""
    registry = ArtifactRegistry(JsonArtifactSource(ARTIFACT_SEED_PATH))
    registry.load()
    return registry


@pytest.fixture()
def name_resolver(artifact_registry: ArtifactRegistry) -> NameResolver:
    return NameResolver(artifact_registry)
